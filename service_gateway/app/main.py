"""
API Gateway service for the Unified ERP backend.

Request pipeline, outermost first:

1. ``CORSMiddleware`` from the base service.
2. ``RateLimitMiddleware`` - fixed-window admission per client IP.
3. ``RequestLoggingMiddleware`` - start/completion records for admitted
   requests.
4. Local routes (health, metrics, route catalog) or the static route table,
   which forwards to the owning downstream service.
"""

from typing import Any, Dict, Optional

from fastapi import Request

from shared.audit import AuditLogService, AuditModule
from shared.audit_repository import AuditLogRepository
from shared.base_service import BaseService, SERVICE_VERSION
from shared.errors import ErpException, RouteNotFoundError
from service_gateway.app.middleware import RequestLoggingMiddleware
from service_gateway.app.ratelimit import FixedWindowRateLimiter, RateLimitMiddleware
from service_gateway.app.routing import DownstreamProxy, build_route_table

GATEWAY_PORT = 8080
PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class GatewayService(BaseService):
    """API Gateway service implementation."""

    def __init__(self, **config_overrides):
        super().__init__("gateway", GATEWAY_PORT, **config_overrides)

        self.rate_limiter = FixedWindowRateLimiter(
            self.config.redis_url,
            limit=self.config.rate_limit_requests,
            window_seconds=self.config.rate_limit_window_seconds,
            strict=self.config.rate_limit_strict,
            socket_timeout=self.config.rate_limit_socket_timeout,
            metrics=self.metrics,
        )
        self.route_table = build_route_table(self.config)
        self.proxy = DownstreamProxy(
            timeout=self.config.proxy_timeout_seconds,
            metrics=self.metrics,
        )

        self.audit_repository: Optional[AuditLogRepository] = None
        self.audit_service: Optional[AuditLogService] = None
        if self.config.audit_enabled:
            self.audit_repository = AuditLogRepository(self.config.postgres_dsn)
            self.audit_service = AuditLogService(self.audit_repository)

        self._setup_gateway_middleware()
        self._setup_gateway_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.gateway_service = self

    def _setup_middleware(self):
        # Registered from _setup_gateway_middleware once the limiter exists
        pass

    def _setup_gateway_middleware(self):
        """Set up the gateway pipeline. Starlette runs the last added middleware first."""
        self.app.add_middleware(
            RequestLoggingMiddleware,
            metrics=self.metrics,
            route_table=self.route_table,
        )
        self.app.add_middleware(
            RateLimitMiddleware,
            rate_limiter=self.rate_limiter,
            enabled=self.config.rate_limit_enabled,
        )
        # CORS wraps admission so 429 responses carry CORS headers
        super()._setup_middleware()

    def _setup_gateway_routes(self):
        """Set up gateway routes. The catch-all forwarder must stay last."""

        @self.app.get("/")
        async def root():
            return {
                "service": "gateway",
                "message": "Unified ERP - API Gateway",
                "version": SERVICE_VERSION,
            }

        @self.app.get("/api/v1/routes")
        async def list_routes():
            routes = self.route_table.describe()
            return {"routes": routes, "count": len(routes)}

        @self.app.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
        async def forward(request: Request):
            route = self.route_table.resolve(request.url.path)
            if route is None:
                raise RouteNotFoundError(request.url.path)
            return await self.proxy.forward(route, request)

    async def on_startup(self) -> None:
        if self.audit_repository is None:
            return
        try:
            await self.audit_repository.start()
        except ErpException as e:
            self.logger.error("Audit logging disabled, persistence unavailable", error=e.message)
            self.audit_repository = None
            self.audit_service = None
            return
        self.audit_service.log_system_event(
            "GATEWAY_STARTED", AuditModule.SYSTEM, "API gateway started", {"port": self.port}
        )

    async def on_shutdown(self) -> None:
        if self.audit_service is not None:
            self.audit_service.log_system_event(
                "GATEWAY_STOPPED", AuditModule.SYSTEM, "API gateway stopped"
            )
            await self.audit_service.drain()
            await self.audit_repository.stop()
        await self.proxy.close()
        await self.rate_limiter.close()

    async def _check_dependencies(self) -> Dict[str, Any]:
        """Check gateway dependencies.

        The rate limit store is informational only: the gateway keeps
        admitting traffic while it is down.
        """
        return {"rate_limit_store": await self.rate_limiter.check_health()}


def create_app(**config_overrides):
    """Create FastAPI application."""
    service = GatewayService(**config_overrides)
    return service.app


if __name__ == "__main__":
    service = GatewayService()
    service.run()
