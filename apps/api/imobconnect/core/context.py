from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

DEFAULT_LOCALE = "pt-BR"


@dataclass
class RequestContext:
    correlation_id: str | None
    locale: str = DEFAULT_LOCALE
    user_id: int | None = None


def request_context(request: Request) -> RequestContext | None:
    return getattr(request.state, "context", None)


def _preferred_locale(request: Request) -> str:
    header = request.headers.get("accept-language", "")
    first = header.split(",")[0].split(";")[0].strip()
    return first or DEFAULT_LOCALE


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        request.state.context = RequestContext(
            correlation_id=getattr(request.state, "correlation_id", None),
            locale=_preferred_locale(request),
        )
        return await call_next(request)
