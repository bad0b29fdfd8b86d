import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from zora.util.logs import get_logger

log = get_logger("zora.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = req_id
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = req_id
        log.info("%s %s -> %s (%.1f ms) [%s]", request.method, request.url.path,
                 response.status_code, (time.perf_counter() - started) * 1000, req_id)
        return response
