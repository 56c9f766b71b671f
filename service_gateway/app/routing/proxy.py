"""
Forwarding of matched gateway requests to downstream services.
"""

from typing import Dict, Optional

import httpx
from fastapi import Request, Response

from shared.errors import ExternalServiceError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .routes import RouteDefinition

# Connection-scoped headers plus the ones httpx/Starlette recompute per hop
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
    "content-encoding",
})


class DownstreamProxy:
    """Relays requests to the service a route points at. No retries."""

    def __init__(
        self,
        timeout: float = 30.0,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.metrics = metrics
        self.transport = transport
        self.logger = get_logger("gateway.proxy")
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self.transport)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def forward(self, route: RouteDefinition, request: Request) -> Response:
        """Send ``request`` to ``route`` and relay the downstream response."""
        url = route.uri.rstrip("/") + request.url.path
        if request.url.query:
            url = f"{url}?{request.url.query}"

        headers = self._forward_headers(request)
        body = await request.body()

        try:
            upstream = await self._get_client().request(
                request.method,
                url,
                headers=headers,
                content=body,
            )
        except httpx.TimeoutException as e:
            self._record(route, "timeout")
            self.logger.error("Downstream timeout", route=route.route_id, url=url, error=str(e))
            raise ExternalServiceError(route.route_id, "timed out", details={"url": url})
        except httpx.HTTPError as e:
            self._record(route, "error")
            self.logger.error("Downstream unavailable", route=route.route_id, url=url, error=str(e))
            raise ExternalServiceError(route.route_id, "unavailable", details={"url": url})

        self._record(route, "ok")
        response = Response(content=upstream.content, status_code=upstream.status_code)
        # multi_items keeps repeated headers such as Set-Cookie
        for name, value in upstream.headers.multi_items():
            if name.lower() not in HOP_BY_HOP_HEADERS:
                response.headers.append(name, value)
        return response

    def _forward_headers(self, request: Request) -> Dict[str, str]:
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        }
        if request.client and request.client.host:
            forwarded_for = request.headers.get("X-Forwarded-For")
            headers["x-forwarded-for"] = (
                f"{forwarded_for}, {request.client.host}" if forwarded_for else request.client.host
            )
        return headers

    def _record(self, route: RouteDefinition, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("upstream_requests_total", service=route.route_id, outcome=outcome)
