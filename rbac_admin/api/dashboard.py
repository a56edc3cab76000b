"""Dashboard API router."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac_admin.db.session import get_db
from rbac_admin.schemas.schemas import (
    ActivityLogOut, DashboardStats, RoleDistributionOut, SystemHealthOut,
)
from rbac_admin.services.dashboard_service import dashboard_service
from rbac_admin.core.access import Principal, RequirePermission, require_admin

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_stats(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("dashboard", "read")),
):
    """User and role counts."""
    return dashboard_service.get_stats(db)


@router.get("/role-distribution", response_model=List[RoleDistributionOut])
def get_role_distribution(
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("dashboard", "read")),
):
    return dashboard_service.get_role_distribution(db)


@router.get("/recent-activity", response_model=List[ActivityLogOut])
def get_recent_activity(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(RequirePermission("activity_logs", "read")),
):
    """Latest activity across all users."""
    return dashboard_service.get_recent_activity(db, limit)


@router.get("/system-health", response_model=SystemHealthOut)
def get_system_health(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return dashboard_service.get_system_health(db)
