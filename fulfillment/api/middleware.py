"""
Error handling for API responses.
"""
import logging

from ariadne import format_error, unwrap_graphql_error
from django.http import JsonResponse
from graphql import GraphQLError

from fulfillment.domain.errors import DomainError

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Maps error codes to client-facing statuses."""

    ERROR_CODES = {
        "VALIDATION_ERROR": 400,
        "NOT_FOUND": 404,
        "CONFLICT": 400,
        "INVALID_STATE": 400,
        "INSUFFICIENT_STOCK": 400,
        "EXHAUSTED": 503,
        "INTERNAL_ERROR": 500,
    }

    @classmethod
    def status_for(cls, code: str) -> int:
        return cls.ERROR_CODES.get(code, 500)

    @classmethod
    def classify(cls, error: Exception) -> tuple[str, str]:
        """Return (code, message) for an error raised while serving a request."""
        if isinstance(error, DomainError):
            return error.code, error.message
        if isinstance(error, ValueError):
            # Scalar and enum parsing failures
            return "VALIDATION_ERROR", str(error)

        logger.error(
            "unexpected_error",
            extra={
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
            exc_info=error,
        )
        return "INTERNAL_ERROR", "An internal error occurred"

    @classmethod
    def format_error(cls, error: GraphQLError, debug: bool = False) -> dict:
        """Ariadne error formatter adding ``extensions.code`` and ``extensions.status``."""
        formatted = format_error(error, debug)
        original = unwrap_graphql_error(error)
        if original is None:
            # Query syntax and schema validation errors
            code, message = "VALIDATION_ERROR", error.message
        else:
            code, message = cls.classify(original)

        formatted["message"] = message
        extensions = formatted.setdefault("extensions", {})
        extensions["code"] = code
        extensions["status"] = cls.status_for(code)
        return formatted

    @classmethod
    def handle_error(cls, error: Exception) -> JsonResponse:
        """Handle error raised outside GraphQL execution and return JSON response."""
        code, message = cls.classify(error)
        return JsonResponse(
            {
                "error": {
                    "code": code,
                    "message": message,
                }
            },
            status=cls.status_for(code),
        )
