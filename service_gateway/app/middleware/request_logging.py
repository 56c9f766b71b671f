"""
Request logging stage for the Gateway.

Runs after admission, so rejected requests are never logged here. Every
admitted request produces a ``request.started`` and a ``request.completed``
record; the completion record is written from a ``finally`` block and so
survives downstream errors and client disconnects.
"""

import asyncio
import time
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from shared.logging import clear_context, get_logger, set_request_id, set_user_context
from shared.metrics import MetricsCollector
from shared.security import get_client_ip, get_user_id_from_headers
from service_gateway.app.routing import RouteTable

REQUEST_ID_HEADER = "X-Request-ID"
# nginx convention for a request the client abandoned
CLIENT_CLOSED_REQUEST = 499
UNMATCHED_ENDPOINT = "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, metrics: MetricsCollector, route_table: Optional[RouteTable] = None):
        super().__init__(app)
        self.metrics = metrics
        self.route_table = route_table
        self.logger = get_logger("gateway.request_logging")

    def endpoint_label(self, path: str, status_code: int) -> str:
        """Metrics label for ``path``.

        Forwarded requests are grouped by route prefix and unknown paths
        share one label, so resource ids never become label values.
        """
        if self.route_table is not None:
            route = self.route_table.resolve(path)
            if route is not None:
                return route.prefix
        if status_code == 404:
            return UNMATCHED_ENDPOINT
        return path

    async def dispatch(self, request: Request, call_next):
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER) or None)
        user_id = get_user_id_from_headers(request)
        set_user_context(user_id)

        method = request.method
        uri = str(request.url)
        self.logger.info(
            "request.started",
            method=method,
            uri=uri,
            client_id=get_client_ip(request),
            user_id=user_id or "anonymous",
        )

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except asyncio.CancelledError:
            status_code = CLIENT_CLOSED_REQUEST
            raise
        finally:
            duration = time.perf_counter() - start_time
            self.logger.info(
                "request.completed",
                method=method,
                uri=uri,
                status_code=status_code,
                duration_ms=round(duration * 1000, 2),
            )
            self.metrics.record_http_request(
                method=method,
                endpoint=self.endpoint_label(request.url.path, status_code),
                status_code=status_code,
                duration=duration,
            )
            clear_context()
