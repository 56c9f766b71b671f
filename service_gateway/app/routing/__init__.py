"""
Static path-prefix routing to the downstream ERP services.
"""

from .proxy import DownstreamProxy
from .routes import RouteDefinition, RouteTable, build_route_table

__all__ = ["DownstreamProxy", "RouteDefinition", "RouteTable", "build_route_table"]
