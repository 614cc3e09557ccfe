"""
GraphQL view with caller identity and structured logging.
"""
import json
import logging
from uuid import uuid4

from ariadne import graphql_sync
from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from fulfillment.api.middleware import ErrorHandler
from fulfillment.api.schema import schema
from fulfillment.services.identity import resolve_actor

logger = logging.getLogger(__name__)


class FulfillmentGraphQLView:
    """GraphQL view with structured logging."""

    def dispatch(self, request, *args, **kwargs):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        actor = resolve_actor(request)

        logger.info(
            "graphql_request",
            extra={
                "request_id": request_id,
                "user_id": actor,
                "operation": "graphql",
            },
        )

        try:
            response = self._process_graphql_request(request, actor)
        except Exception as e:
            response = ErrorHandler.handle_error(e)
            logger.error(
                "graphql_error",
                extra={
                    "request_id": request_id,
                    "user_id": actor,
                    "error": str(e),
                }
            )

        response["X-Request-ID"] = request_id
        logger.info(
            "graphql_response",
            extra={
                "request_id": request_id,
                "user_id": actor,
                "status": response.status_code,
            }
        )
        return response

    def _process_graphql_request(self, request, actor):
        if request.method == "GET":
            return JsonResponse({"message": "GraphQL endpoint. Use POST for queries."})

        try:
            data = json.loads(request.body)
        except json.JSONDecodeError:
            return ErrorHandler.handle_error(ValueError("Invalid JSON"))

        success, result = graphql_sync(
            schema,
            data,
            context_value={"request": request, "actor": actor},
            error_formatter=ErrorHandler.format_error,
            debug=settings.DEBUG,
        )

        if success:
            return JsonResponse(result, status=200)
        # The most severe error decides the HTTP status
        statuses = [
            error.get("extensions", {}).get("status", 400)
            for error in result.get("errors", [])
        ]
        return JsonResponse(result, status=max(statuses, default=400))


@csrf_exempt
@require_http_methods(["GET", "POST"])
def graphql_view(request):
    """GraphQL endpoint."""
    view = FulfillmentGraphQLView()
    return view.dispatch(request)
