"""
Static route table mapping gateway path prefixes to downstream services.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from shared.config import BaseConfig


@dataclass(frozen=True)
class RouteDefinition:
    """A downstream service reachable under a path prefix."""

    route_id: str
    prefix: str
    uri: str

    def matches(self, path: str) -> bool:
        # "/api/jobs" covers "/api/jobs" and "/api/jobs/..." but not "/api/jobsearch"
        return path == self.prefix or path.startswith(self.prefix + "/")

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.route_id, "path": f"{self.prefix}/**", "uri": self.uri}


class RouteTable:
    """Ordered collection of routes; the first matching prefix wins."""

    def __init__(self, routes: List[RouteDefinition]):
        self.routes = list(routes)

    def resolve(self, path: str) -> Optional[RouteDefinition]:
        for route in self.routes:
            if route.matches(path):
                return route
        return None

    def describe(self) -> List[Dict[str, str]]:
        return [route.to_dict() for route in self.routes]


def build_route_table(config: BaseConfig) -> RouteTable:
    """Build the ERP route table from service URLs in ``config``."""
    return RouteTable([
        RouteDefinition("employee-service", "/api/employees", config.employee_service_url),
        RouteDefinition("invoice-service", "/api/invoices", config.invoice_service_url),
        RouteDefinition("quiz-service", "/api/quizzes", config.quiz_service_url),
        RouteDefinition("job-service", "/api/jobs", config.job_service_url),
        RouteDefinition("crud-service", "/api/crud", config.crud_service_url),
    ])
