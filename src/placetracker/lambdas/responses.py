"""
HTTP response helpers shared by the JSON Lambda handlers.

Functions:
    create_response: Create standardized HTTP responses
    create_error_response: Create standardized error responses
    handle_cors_preflight: Answer OPTIONS requests
    get_http_method: Read the method from REST or HTTP API events
    parse_json_body: Decode a JSON request body
    log_api_request: Log request metadata
    log_api_error: Log an error with safe context
"""

import base64
import json
import os
from datetime import datetime
from typing import Any, Dict, Optional

from ..utils.logging import log_event


def create_response(status_code: int, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a standardized HTTP response with proper headers.

    Args:
        status_code: HTTP status code
        data: Response data to serialize as JSON

    Returns:
        HTTP response dictionary
    """
    return {
        "statusCode": status_code,
        "headers": {**get_cors_headers(), "Content-Type": "application/json"},
        "body": json.dumps(data, indent=2, default=str),
    }


def create_error_response(
    status_code: int, error: str, details: str = ""
) -> Dict[str, Any]:
    """
    Create a standardized error response.

    Args:
        status_code: HTTP status code
        error: High-level error message
        details: Detailed error information

    Returns:
        HTTP error response dictionary
    """
    error_data = {
        "error": error,
        "details": details,
        "timestamp": datetime.utcnow().isoformat(),
        "status_code": status_code,
    }

    return create_response(status_code, error_data)


def handle_cors_preflight() -> Dict[str, Any]:
    return {"statusCode": 200, "headers": get_cors_headers(), "body": ""}


def get_cors_headers() -> Dict[str, str]:
    """
    Get CORS headers for API responses.

    The allowed origin comes from CORS_ORIGIN, read per call so a changed
    configuration applies without a code change.
    """
    cors_origin = os.getenv("CORS_ORIGIN", "*")

    return {
        "Access-Control-Allow-Origin": cors_origin,
        "Access-Control-Allow-Methods": "POST,OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type,Authorization",
        "Access-Control-Max-Age": "86400",
    }


def get_http_method(event: Dict[str, Any]) -> str:
    method = event.get("httpMethod")
    if not method:
        method = (event.get("requestContext") or {}).get("http", {}).get("method", "")
    return method.upper()


def parse_json_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decode the JSON object in a proxy event body.

    Raises:
        ValueError: If the body is missing, not valid JSON, or not an object
    """
    body = event.get("body")
    if not body:
        raise ValueError("Request body is required")

    if event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"Invalid base64 body: {e}") from e

    # json.JSONDecodeError is a ValueError subclass
    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError("Request body must be a JSON object")

    return payload


def log_api_request(event: Dict[str, Any], endpoint: str) -> None:
    request_context = event.get("requestContext") or {}
    log_event(
        "API_REQUEST",
        endpoint=endpoint,
        httpMethod=get_http_method(event),
        requestId=request_context.get("requestId"),
        sourceIp=request_context.get("identity", {}).get("sourceIp"),
    )


def log_api_error(
    error_type: str, error_message: str, context: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log API errors with context for debugging.

    Tokens and file payloads are dropped from the context.
    """
    safe_context = None
    if context:
        safe_context = {
            k: v
            for k, v in context.items()
            if k not in ("user_token", "file_base64", "thumbnail_base64", "body")
        }

    log_event(
        "API_ERROR",
        errorType=error_type,
        errorMessage=error_message,
        context=safe_context,
    )
