"""
Service API Routers.
"""
from . import aggregation, health, statistics

__all__ = ["aggregation", "health", "statistics"]
