"""Custom exception classes for the RBAC admin service."""

from fastapi import HTTPException, status


class RBACAdminError(Exception):
    """Base exception for the RBAC admin service."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class InvalidCredentialsError(RBACAdminError):
    """Raised when login credentials do not match a user.

    Unknown email and wrong password both raise this with the same message.
    """
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class AccountDeactivatedError(RBACAdminError):
    """Raised when an inactive account tries to obtain tokens."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Account is deactivated"):
        super().__init__(message)


class AuthError(RBACAdminError):
    """Raised when a bearer token fails validation.

    ``kind`` is one of ``expired``, ``malformed`` or ``wrong-kind``.
    """
    status_code = status.HTTP_401_UNAUTHORIZED

    EXPIRED = "expired"
    MALFORMED = "malformed"
    WRONG_KIND = "wrong-kind"

    def __init__(self, kind: str, message: str = "Invalid or expired token"):
        self.kind = kind
        super().__init__(message)


class ForbiddenError(RBACAdminError):
    """Raised when an authenticated user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class NotFoundError(RBACAdminError):
    """Raised when a user, role, permission or token lookup misses."""
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateIdentityError(RBACAdminError):
    """Raised when a unique email, username or role name already exists."""
    status_code = status.HTTP_409_CONFLICT


class ProtectedRoleError(RBACAdminError):
    """Raised when renaming or deleting a system role."""
    pass


class RoleInUseError(RBACAdminError):
    """Raised when deleting a role still assigned to users."""
    pass


class InvalidResetTokenError(RBACAdminError):
    """Raised when a reset token is unknown, expired or already used."""

    def __init__(self, message: str = "Invalid or expired token"):
        super().__init__(message)


class ConfigurationError(RBACAdminError):
    """Raised when required seed data (e.g. the default role) is missing."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class HashingError(RBACAdminError):
    """Raised when password hashing fails on entropy or resource exhaustion."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# HTTP exception shortcuts
def not_found(detail: str = "Resource not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def bad_request(detail: str = "Bad request") -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
