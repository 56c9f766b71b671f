"""
API Gateway Service package for the Unified ERP backend.

The gateway fronts client requests, enforcing:
- Admission: fixed-window rate limiting per client IP on a shared Redis
  counter, failing open when Redis is unavailable
- Request logging: structured start/completion records per request
- Routing: static path-prefix mapping to the downstream ERP services

Structure:
- app.main: GatewayService, middleware order and route wiring.
- app.ratelimit: Fixed-window limiter and admission middleware.
- app.middleware: Request logging middleware.
- app.routing: Route table and downstream proxy.
"""
