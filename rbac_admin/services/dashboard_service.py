"""Dashboard service — headline counts and recent activity."""

import logging
from datetime import timedelta
from typing import List

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac_admin.db.base import utcnow
from rbac_admin.models.activity_log import ActivityLog
from rbac_admin.models.role import Role
from rbac_admin.models.user import User

logger = logging.getLogger("rbac_admin.dashboard")


class DashboardService:
    """Read-only aggregates for the admin dashboard."""

    @staticmethod
    def get_stats(db: Session) -> dict:
        now = utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        total = db.query(func.count(User.id)).scalar()
        active = db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar()
        return {
            "total_users": total,
            "active_users": active,
            "inactive_users": total - active,
            "new_users_today": db.query(func.count(User.id)).filter(
                User.created_at >= start_of_day
            ).scalar(),
            "new_users_this_week": db.query(func.count(User.id)).filter(
                User.created_at >= now - timedelta(days=7)
            ).scalar(),
            "total_roles": db.query(func.count(Role.id)).scalar(),
        }

    @staticmethod
    def get_role_distribution(db: Session) -> List[dict]:
        """User count per role, including roles nobody holds."""
        rows = (
            db.query(Role.name, func.count(User.id))
            .outerjoin(User, User.role_id == Role.id)
            .group_by(Role.id, Role.name)
            .order_by(Role.id)
            .all()
        )
        return [{"role_name": name, "user_count": count} for name, count in rows]

    @staticmethod
    def get_recent_activity(db: Session, limit: int = 20) -> List[ActivityLog]:
        return (
            db.query(ActivityLog)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_system_health(db: Session) -> dict:
        try:
            db.execute(text("SELECT 1"))
            database_status = "healthy"
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            db.rollback()
            database_status = "unhealthy"

        if database_status != "healthy":
            return {"database_status": database_status, "total_activity": 0, "active_sessions": 0}

        active_since = utcnow() - timedelta(hours=24)
        return {
            "database_status": database_status,
            "total_activity": db.query(func.count(ActivityLog.id)).scalar(),
            "active_sessions": db.query(func.count(User.id)).filter(
                User.is_active.is_(True), User.last_login_at > active_since,
            ).scalar(),
        }


dashboard_service = DashboardService()
