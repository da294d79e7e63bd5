import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from flag_notifier.utils.context import set_request_id

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Echoes a valid incoming X-Request-ID or assigns a new one; queued jobs carry it along."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            request_id = str(uuid.UUID(request.headers.get(REQUEST_ID_HEADER)))
        except (ValueError, TypeError):
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id
        set_request_id(request_id)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
