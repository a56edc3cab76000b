"""CORS, request-id, and logging middleware."""

import uuid
import time
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from rbac_admin.core.config import settings

logger = logging.getLogger("rbac_admin.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Add a unique request ID and timing to every request/response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response: Response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration)

        principal = getattr(request.state, "principal", None)
        logger.info(
            "%s %s %s %sms user=%s rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            principal.user_id if principal else "-",
            request_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
    )

    # Request ID + timing
    app.add_middleware(RequestIdMiddleware)
