"""Password hashing and JWT access/refresh token service."""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import List, Optional, Tuple

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from rbac_admin.core.config import settings
from rbac_admin.core.exceptions import AuthError, HashingError

logger = logging.getLogger("rbac_admin.security")

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


def _prepare_password(password: str) -> bytes:
    # bcrypt ignores everything past 72 bytes, so feed it a fixed-size digest.
    digest = hashlib.sha256(password.encode("utf-8")).digest()
    return base64.b64encode(digest)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt over its SHA-256 digest."""
    try:
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(_prepare_password(password), salt)
    except (ValueError, OSError, MemoryError) as e:
        raise HashingError("Failed to hash password") from e
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash in constant time."""
    try:
        return bcrypt.checkpw(
            _prepare_password(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError:
        # Malformed stored hash
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_password(secrets.token_hex(16))


def verify_dummy_password(plain_password: str) -> bool:
    """Spend the same bcrypt work as a real check when no user matched."""
    verify_password(plain_password, _dummy_hash())
    return False


@dataclass(frozen=True)
class PermissionGrant:
    """A permission as embedded in access-token claims."""
    name: str
    resource: str
    action: str


@dataclass
class TokenClaims:
    """Validated token payload."""
    user_id: int
    token_type: str
    expires_at: datetime
    issued_at: Optional[datetime] = None
    jti: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None
    permissions: List[PermissionGrant] = field(default_factory=list)


class TokenService:
    """Issues and validates signed, expiring access and refresh tokens.

    Access tokens embed a snapshot of the user's role and permissions so a
    request can be authorized without a database round trip. A permission
    revoked mid-session is honoured until the access token expires; expiry is
    the only revocation mechanism. Refresh tokens carry identity only.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, claims: dict, ttl: timedelta) -> Tuple[str, datetime]:
        now = datetime.now(timezone.utc)
        expires_at = now + ttl
        claims.update({
            "iat": now,
            "exp": expires_at,
            "jti": secrets.token_urlsafe(16),
        })
        token = jwt.encode(claims, self.secret, algorithm=self.algorithm)
        return token, expires_at

    def issue_access_token(
        self, user, expires_delta: Optional[timedelta] = None
    ) -> Tuple[str, datetime]:
        """Create an access token carrying the user's role snapshot."""
        role = user.role
        permissions = [
            {"name": p.name, "resource": p.resource, "action": p.action}
            for p in (role.permissions if role else [])
        ]
        claims = {
            "sub": str(user.id),
            "type": ACCESS_TOKEN,
            "email": user.email,
            "username": user.username,
            "role": role.name if role else None,
            "permissions": permissions,
        }
        return self._encode(claims, expires_delta or self.access_ttl)

    def issue_refresh_token(
        self, user, expires_delta: Optional[timedelta] = None
    ) -> Tuple[str, datetime]:
        """Create a refresh token carrying only the user id."""
        claims = {"sub": str(user.id), "type": REFRESH_TOKEN}
        return self._encode(claims, expires_delta or self.refresh_ttl)

    def validate_access_token(self, token: str) -> TokenClaims:
        return self._validate(token, ACCESS_TOKEN)

    def validate_refresh_token(self, token: str) -> TokenClaims:
        return self._validate(token, REFRESH_TOKEN)

    def _validate(self, token: str, expected_type: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.info("Rejected expired %s token", expected_type)
            raise AuthError(AuthError.EXPIRED, "Token has expired")
        except JWTError:
            logger.info("Rejected malformed %s token", expected_type)
            raise AuthError(AuthError.MALFORMED, "Invalid token")

        token_type = payload.get("type")
        if token_type != expected_type:
            logger.warning(
                "Rejected %s token presented as %s token", token_type, expected_type
            )
            raise AuthError(AuthError.WRONG_KIND, "Invalid token type")

        try:
            user_id = int(payload["sub"])
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
            permissions = [
                PermissionGrant(p["name"], p["resource"], p["action"])
                for p in payload.get("permissions") or []
            ]
        except (KeyError, TypeError, ValueError):
            raise AuthError(AuthError.MALFORMED, "Invalid token payload")

        issued_at = payload.get("iat")
        return TokenClaims(
            user_id=user_id,
            token_type=token_type,
            expires_at=expires_at,
            issued_at=(
                datetime.fromtimestamp(issued_at, tz=timezone.utc)
                if issued_at is not None else None
            ),
            jti=payload.get("jti"),
            email=payload.get("email"),
            username=payload.get("username"),
            role=payload.get("role"),
            permissions=permissions,
        )


token_service = TokenService(
    secret=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
    access_ttl=timedelta(minutes=settings.JWT_ACCESS_EXPIRY_MINUTES),
    refresh_ttl=timedelta(days=settings.JWT_REFRESH_EXPIRY_DAYS),
)
