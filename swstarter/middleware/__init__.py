"""
Middleware components for request processing.

- Request context (request ID, client address)
- CORS
"""

from swstarter.middleware.cors import CORSMiddleware
from swstarter.middleware.request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware", "CORSMiddleware"]
