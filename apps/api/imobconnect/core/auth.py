from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from imobconnect.core.config import get_settings
from imobconnect.core.context import request_context


@dataclass
class AuthUser:
    sub: int
    role: str


def _bearer_token(request: Request) -> str:
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    return token.strip() if scheme.lower() == "bearer" else ""


def _decode(token: str) -> AuthUser | None:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return AuthUser(sub=int(payload["sub"]), role=str(payload.get("role", "agent")))
    except (JWTError, KeyError, TypeError, ValueError):
        return None


async def get_current_user(request: Request) -> AuthUser:
    """Resolve the caller from a bearer JWT, falling back to the fixed agent account."""
    token = _bearer_token(request)
    user = _decode(token) if token else None
    if user is None:
        # TODO: Reject anonymous requests once session login replaces the fixed agent account.
        settings = get_settings()
        user = AuthUser(sub=settings.stub_user_id, role=settings.stub_user_role)

    context = request_context(request)
    if context is not None:
        context.user_id = user.sub
    return user


@dataclass
class ActorUser:
    user_id: int
    role: str = "agent"
    correlation_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
