"""
Single place where engine errors become HTTP responses.
"""
import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.errors import EngineError

logger = logging.getLogger(__name__)


def engine_exception_handler(exc, context):
    if isinstance(exc, EngineError):
        if exc.status_code >= 500:
            logger.error("Engine error: %s", exc.message)
        return Response({"success": False, **exc.to_dict()}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and set(data) == {"detail"}:
        response.data = {"success": False, "error": str(data["detail"])}
    else:
        # serializer field errors
        response.data = {"success": False, "error": "Validation failed", "errors": data}
    return response
