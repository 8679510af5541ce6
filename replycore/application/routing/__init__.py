"""Provider routing."""

from .service import RoutingService, calculate_cost, estimate_cost

__all__ = ["RoutingService", "calculate_cost", "estimate_cost"]
