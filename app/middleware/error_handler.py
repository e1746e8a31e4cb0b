"""Global exception handler middleware."""

import uuid
from typing import Any, Dict

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.utils.exceptions import Dear23Exception
from app.utils.logger import bind_context, get_logger, reset_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Turns application exceptions into ``{"success": false, "error": ...}`` responses."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Any) -> JSONResponse:
        """
        Handle exceptions and return proper JSON responses.

        A request id (taken from ``X-Request-ID`` or generated) is bound to
        every log line written while serving the request and echoed back.

        Args:
            request: HTTP request.
            call_next: Next middleware/route handler.

        Returns:
            JSON response with error details.
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        context = bind_context(request_id=request_id)
        try:
            response = await self._handle(request, call_next)
        finally:
            reset_context(context)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    async def _handle(self, request: Request, call_next: Any):
        if request.method == "OPTIONS":
            return await call_next(request)

        try:
            return await call_next(request)
        except Dear23Exception as e:
            log = logger.error if e.status_code >= 500 else logger.warning
            log(
                f"{request.method} {request.url.path} -> {e.status_code} {e.error_code}: {e.message}",
                extra={"extra_data": {"error_code": e.error_code, "details": e.details}},
            )
            return self._create_error_response(
                status_code=e.status_code,
                error_code=e.error_code,
                message=e.message,
                details=e.details,
            )
        except Exception as e:
            logger.error(
                f"Unhandled exception on {request.method} {request.url.path}: {e}",
                extra={"extra_data": {"exception_type": type(e).__name__}},
                exc_info=True,
            )
            return self._create_error_response(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                error_code="INTERNAL_SERVER_ERROR",
                message="An unexpected error occurred",
                details={"error": str(e), "type": type(e).__name__} if self.debug else {},
            )

    @staticmethod
    def _create_error_response(
        status_code: int,
        error_code: str,
        message: str,
        details: Dict[str, Any],
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": details,
                },
            },
        )
