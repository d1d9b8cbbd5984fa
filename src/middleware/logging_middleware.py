"""
Logging Middleware
Logs all HTTP requests and responses and exposes caller details to the audit trail
"""

import time
from contextvars import ContextVar
from typing import Dict, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.helpers import get_client_ip
from src.utils.logger import setup_logger

logger = setup_logger()

# Client address and agent of the request being served
request_info: ContextVar[Optional[Dict[str, str]]] = ContextVar("request_info", default=None)


def get_request_info() -> Dict[str, str]:
    """Caller details for the current request (empty outside a request)"""
    return request_info.get() or {}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests and responses"""

    async def dispatch(self, request: Request, call_next):
        """Process request and log details"""
        start_time = time.time()
        client_ip = get_client_ip(request)

        token = request_info.set({
            "ip_address": client_ip,
            "user_agent": request.headers.get("User-Agent", "")
        })

        logger.info(f"Request: {request.method} {request.url.path} | Client: {client_ip}")

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            logger.info(
                f"Response: {request.method} {request.url.path} | "
                f"Status: {response.status_code} | "
                f"Duration: {duration:.3f}s"
            )

            return response

        except Exception:
            duration = time.time() - start_time
            logger.exception(
                f"Error: {request.method} {request.url.path} | "
                f"Duration: {duration:.3f}s"
            )
            raise
        finally:
            request_info.reset(token)
