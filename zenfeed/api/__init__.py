"""
FastAPI content aggregation service.

Provides REST API for content sources with:
- POST /content-sources/fetch - Batch fetch with partial-failure reporting
- GET /content-sources/fetch - Single-source preview fetch
- POST /content-sources/validate - Source validation
- GET /content-sources/platforms - Supported source types
- GET /health - Service health check
"""

from zenfeed.api.app import create_app

__all__ = ["create_app"]
