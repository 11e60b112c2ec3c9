"""
Account scoping for the API.

Sessions are HS256 JWTs issued by ``/auth/sync``. A token carries the
account id as ``sub`` and, optionally, the lowercased email used for admin
checks. ``AuthContext`` both issues and parses them, so the claim layout
lives in one place.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import is_admin_email, settings

SESSION_TOKEN_TYPE = "idea_session"
SESSION_ISSUER = "idea-expansion-api"

auth_scheme = HTTPBearer(auto_error=False)


class SessionTokenError(ValueError):
    """Raised when a bearer token cannot scope a request to an account."""


@dataclass(frozen=True)
class IssuedSession:
    token: str
    expires_at: int


@dataclass
class AuthContext:
    account_id: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return bool(self.email) and is_admin_email(self.email)

    def issue_session(self, expires_hours: Optional[int] = None) -> IssuedSession:
        now = datetime.now(timezone.utc)
        ttl_hours = max(int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24), 1)
        expires_at = int((now + timedelta(hours=ttl_hours)).timestamp())
        claims: Dict[str, Any] = {
            "sub": self.account_id,
            "iss": SESSION_ISSUER,
            "type": SESSION_TOKEN_TYPE,
            "iat": int(now.timestamp()),
            "exp": expires_at,
        }
        if self.email:
            claims["email"] = self.email.lower()
        token = jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
        return IssuedSession(token=token, expires_at=expires_at)

    @classmethod
    def from_session_token(cls, token: str) -> "AuthContext":
        """
        Parse a session token into an account scope.

        Raises:
            SessionTokenError: Bad signature, expired, foreign issuer or type,
                or account claims that are missing or not strings
        """
        try:
            claims = jwt.decode(
                token,
                settings.JWT_SECRET,
                algorithms=[settings.JWT_ALGORITHM],
                issuer=SESSION_ISSUER,
                options={"require_exp": True, "require_iss": True},
            )
        except JWTError as exc:
            raise SessionTokenError("Invalid or expired session token.") from exc

        if claims.get("type") != SESSION_TOKEN_TYPE:
            raise SessionTokenError("Invalid session token type.")
        account_id = claims.get("sub")
        if not isinstance(account_id, str) or not account_id.strip():
            raise SessionTokenError("Session token missing account.")
        email = claims.get("email")
        if email is not None and not isinstance(email, str):
            raise SessionTokenError("Session token email claim is malformed.")
        return cls(account_id=account_id, email=email or None)


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the authenticated account from a Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")

    try:
        return AuthContext.from_session_token(credentials.credentials)
    except SessionTokenError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc


async def require_admin(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required.")
    return auth
