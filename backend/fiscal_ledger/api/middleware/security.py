"""
Middleware de seguridad.
Cabeceras de seguridad y registro de peticiones para auditoría.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import logging
import time

logger = logging.getLogger("fiscal_ledger.audit")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Agrega headers de seguridad a todas las respuestas.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


class AuditLogMiddleware(BaseHTTPMiddleware):
    """
    Registra todas las peticiones: método, ruta, estado y duración.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} "
            f"- {response.status_code} - {process_time:.3f}s "
            f"- IP: {request.client.host if request.client else 'unknown'}"
        )

        return response
