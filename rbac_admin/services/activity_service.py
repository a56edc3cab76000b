"""Activity service — append-only trail of user activity."""

from typing import Optional
from sqlalchemy.orm import Session
from fastapi import Request

from rbac_admin.models.activity_log import ActivityLog


class ActivityService:
    """Records immutable activity log entries."""

    @staticmethod
    def log(
        db: Session,
        user_id: int,
        action: str,
        resource: str,
        details: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        commit: bool = True,
    ) -> ActivityLog:
        """Write a single activity log record.

        Args:
            action: e.g. "login", "user.deactivated", "role.created"
            resource: auth, users, roles

        Pass ``commit=False`` to write the entry inside the caller's
        transaction.
        """
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            resource=resource,
            details=details,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
        )
        db.add(entry)
        if commit:
            db.commit()
        return entry

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        user_id: int,
        action: str,
        resource: str,
        details: Optional[str] = None,
    ) -> ActivityLog:
        """Write an activity entry extracting IP and user-agent from the request."""
        ip, ua = client_info(request)
        return ActivityService.log(
            db=db,
            user_id=user_id,
            action=action,
            resource=resource,
            details=details,
            ip_address=ip,
            user_agent=ua,
        )

    @staticmethod
    def query_logs(
        db: Session,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ):
        """Query activity logs with filters and pagination, newest first."""
        query = db.query(ActivityLog)

        if user_id:
            query = query.filter(ActivityLog.user_id == user_id)
        if action:
            query = query.filter(ActivityLog.action == action)

        total = query.count()
        logs = (
            query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "activities": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }


def client_info(request: Request):
    """Return ``(ip_address, user_agent)`` for a request."""
    ip = request.client.host if request.client else None
    ua = request.headers.get("user-agent", "")[:500]
    return ip, ua


activity_service = ActivityService()
