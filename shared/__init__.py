"""
Shared utilities for the Unified ERP backend.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- validation: Input validation predicates
- security: Caller identity helpers for gateway-forwarded headers
- audit / audit_repository: Asynchronous audit logging to PostgreSQL
- base_service: FastAPI service scaffold

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
