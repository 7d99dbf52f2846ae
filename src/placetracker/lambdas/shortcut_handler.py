"""
Shortcut ingestion Lambda handler for the PlaceTracker application.

The phone shortcut geocodes the current place with Nominatim and POSTs the
result here as JSON, authenticated by the user's token. The handler stores
it as a place owned by that user.

Functions:
    lambda_handler: Main entry point for API Gateway events
"""

import os
from typing import Any, Dict

from ..services.place_service import PlaceService
from .responses import (
    create_error_response,
    create_response,
    get_http_method,
    handle_cors_preflight,
    log_api_error,
    log_api_request,
    parse_json_body,
)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:  # noqa: ARG001
    """
    Main Lambda handler for shortcut submissions.

    Args:
        event: API Gateway proxy event with a JSON body
        context: AWS Lambda runtime context

    Returns:
        HTTP response dictionary with statusCode, headers, and body

    Request Body:
        {
            "user_token": "invite-token",
            "place_name": "Joe's Kansas City Bar-B-Que",
            "place_address": "3002 W 47th Ave, Kansas City, KS",
            "latitude": "39.0997",
            "longitude": -94.5786,
            "user_note": "Z-Man #bbq",
            "category": "Restaurant",
            "osm_address": {"house_number": "3002", "road": "W 47th Ave", ...},
            "osm_extratags": {"phone": "+1 913 722 3366", ...}
        }

    Response Body:
        {"status": "ok", "place_id": "uuid"}
    """
    try:
        log_api_request(event, "shortcut")

        http_method = get_http_method(event)
        if http_method == "OPTIONS":
            return handle_cors_preflight()
        if http_method != "POST":
            return create_error_response(405, "Method not allowed", "Use POST")

        try:
            payload = parse_json_body(event)
        except ValueError as e:
            return create_error_response(400, "Invalid JSON body", str(e))

        try:
            place_service = PlaceService()
        except Exception as e:
            log_api_error("SERVICE_INITIALIZATION_ERROR", str(e))
            return create_error_response(500, "Service initialization failed", str(e))

        result = place_service.ingest_shortcut(payload)
        if not result["success"]:
            if result["status_code"] >= 500:
                log_api_error("SHORTCUT_INGEST_FAILED", result["error"], payload)
            return create_error_response(result["status_code"], result["error"])

        return create_response(200, {"status": "ok", "place_id": result["place_id"]})

    except Exception as e:
        log_api_error("UNEXPECTED_ERROR", str(e))
        return create_error_response(500, "Internal Server Error", "Unexpected error occurred")


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

print(f"Shortcut Handler Lambda initialized - Environment: {ENVIRONMENT}")
