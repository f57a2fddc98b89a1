"""JSON response helpers shared by the HTTP handlers."""

from typing import Any, Dict

from aiohttp import web
from aiohttp.web import Request, Response

from utils.constants import MAX_REQUEST_BODY_SIZE
from utils.exceptions import ValidationError


def error_response(message: str, status: int) -> Response:
    """Build a ``{"error": message}`` response."""
    return web.json_response({"error": message}, status=status)


async def read_json_object(request: Request) -> Dict[str, Any]:
    """
    Read the request body as a JSON object.

    Raises:
        ValidationError: If the body is too large, not JSON or not an object
    """
    if request.content_length and request.content_length > MAX_REQUEST_BODY_SIZE:
        raise ValidationError("Request body too large")

    try:
        payload: Any = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload
