"""
Web API Package - HTTP transport for aggregation and statistics.
"""

from web_api.main import create_app


__all__ = ["create_app"]
