from __future__ import annotations

import hmac
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import jwt
from fastapi import Cookie, HTTPException, Response, status

from settings import Settings


OperatorIdentity = Dict[str, Optional[str]]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class AuthService:
    """Single-operator login backed by a JWT cookie.

    The token carries the operator's display name and email so content
    commits can be authored without another lookup.
    """

    algorithm = "HS256"

    def __init__(self, settings: Settings):
        self.login_user = settings.login_user
        self.login_password = settings.login_password
        self.display_name = (settings.login_display_name or "").strip() or None
        self.email = (settings.login_email or "").strip() or None
        self.jwt_secret_key = settings.jwt_secret_key
        self.token_lifetime = timedelta(minutes=int(settings.jwt_expire_minutes or 60))
        self.cookie_name = settings.auth_cookie_name
        self.cookie_secure = bool(settings.auth_cookie_secure)
        self.cookie_domain = (settings.auth_cookie_domain or "").strip() or None

        if not self.jwt_secret_key or self.jwt_secret_key == "change-me":
            raise RuntimeError("JWT_SECRET_KEY must be configured with a non-default value.")

    def authenticate(self, username: str, password: str) -> Optional[OperatorIdentity]:
        user_ok = hmac.compare_digest(username.encode(), self.login_user.encode())
        password_ok = hmac.compare_digest(password.encode(), self.login_password.encode())
        if not (user_ok and password_ok):
            return None
        return {"username": username, "display_name": self.display_name, "email": self.email}

    def issue_token(self, identity: OperatorIdentity) -> Tuple[str, datetime]:
        issued_at = datetime.now(timezone.utc)
        expires_at = issued_at + self.token_lifetime
        claims = {
            "sub": identity["username"],
            "name": identity.get("display_name"),
            "email": identity.get("email"),
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(claims, self.jwt_secret_key, algorithm=self.algorithm), expires_at

    def set_auth_cookie(self, response: Response, token: str, expires_at: datetime) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=token,
            httponly=True,
            secure=self.cookie_secure,
            samesite="lax",
            max_age=int(self.token_lifetime.total_seconds()),
            expires=int(expires_at.timestamp()),
            domain=self.cookie_domain,
            path="/",
        )

    def clear_auth_cookie(self, response: Response) -> None:
        response.delete_cookie(key=self.cookie_name, domain=self.cookie_domain, path="/")

    def identity_from_token(self, token: Optional[str]) -> OperatorIdentity:
        if not token:
            raise _unauthorized("Authentication cookie missing.")
        try:
            claims = jwt.decode(token, self.jwt_secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise _unauthorized("Authentication token expired.") from exc
        except jwt.InvalidTokenError as exc:
            raise _unauthorized("Invalid authentication token.") from exc

        if claims.get("sub") != self.login_user:
            raise _unauthorized("Unknown authentication subject.")
        return {
            "username": claims["sub"],
            "display_name": claims.get("name"),
            "email": claims.get("email"),
        }

    def build_auth_dependency(self):
        async def dependency(
            auth_token: Optional[str] = Cookie(default=None, alias=self.cookie_name)
        ) -> OperatorIdentity:
            return self.identity_from_token(auth_token)

        return dependency
