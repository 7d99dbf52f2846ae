"""
API Gateway Lambda handler for the PlaceTracker application.

This Lambda function backs the place-management web app. A single POST
endpoint dispatches on the ``action`` field of the JSON body; every action
is authenticated by the caller's ``user_token``. A GET request returns a
health check of the data stores.

Functions:
    lambda_handler: Main entry point for API Gateway events
    _handle_action: Handle POST management actions
    _handle_health_check: Handle GET health checks
"""

import os
from datetime import datetime
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


RESULT_KEYS = ("success", "status_code", "error")


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:  # noqa: ARG001
    """
    Main Lambda handler for API Gateway events.

    Args:
        event: API Gateway event containing HTTP request data
        context: AWS Lambda runtime context

    Returns:
        HTTP response dictionary with statusCode, headers, and body

    Request Body:
        {
            "action": "list|update|update_links|delete|upload_photo|
                       delete_photo|update_photo|upload_profile_photo",
            "user_token": "invite-token",
            "place_id": "uuid",
            ...action-specific fields
        }

    Response Body:
        {"status": "ok", ...action-specific data}
        or
        {"error": "...", "details": "...", "timestamp": "...", "status_code": 400}
    """
    try:
        log_api_request(event, "manage")

        http_method = get_http_method(event)
        if http_method == "OPTIONS":
            return handle_cors_preflight()
        if http_method not in ("GET", "POST"):
            return create_error_response(405, "Method not allowed", "Use POST")

        try:
            place_service = PlaceService()
        except Exception as e:
            log_api_error("SERVICE_INITIALIZATION_ERROR", str(e))
            return create_error_response(500, "Service initialization failed", str(e))

        if http_method == "GET":
            return _handle_health_check(place_service)

        try:
            payload = parse_json_body(event)
        except ValueError as e:
            return create_error_response(400, "Invalid JSON body", str(e))

        return _handle_action(place_service, payload)

    except Exception as e:
        log_api_error("UNEXPECTED_ERROR", str(e))
        return create_error_response(500, "Internal Server Error", "Unexpected error occurred")


def _handle_action(place_service: PlaceService, payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Run a management action and translate its result into a response.

    Args:
        place_service: Place service instance
        payload: Decoded JSON body

    Returns:
        HTTP response with the action's data, or a structured error
    """
    result = place_service.handle_action(payload)

    if not result["success"]:
        if result["status_code"] >= 500:
            log_api_error(
                "ACTION_FAILED",
                result["error"],
                {"action": payload.get("action"), "place_id": payload.get("place_id")},
            )
        return create_error_response(
            result["status_code"], result["error"], f"action={payload.get('action')}"
        )

    data = {k: v for k, v in result.items() if k not in RESULT_KEYS}
    return create_response(result["status_code"], {"status": "ok", **data})


def _handle_health_check(place_service: PlaceService) -> Dict[str, Any]:
    """
    Handle GET health checks.

    Response Body:
        {
            "status": "healthy|unhealthy",
            "timestamp": "2024-01-15T14:30:00Z",
            "services": {"database": {"status": ...}, "storage": {"status": ...}},
            "environment": "dev|staging|prod"
        }

    Only each service's status is returned; the full check results are logged.
    """
    checks = {"database": place_service.db_service.health_check()}

    try:
        checks["storage"] = place_service.storage_service.health_check()
    except ValueError as e:
        checks["storage"] = {"status": "unhealthy", "error": str(e)}

    healthy = all(c.get("status") == "healthy" for c in checks.values())
    if not healthy:
        log_api_error("HEALTH_CHECK_FAILED", "One or more services unhealthy", checks)

    services = {name: {"status": c.get("status")} for name, c in checks.items()}

    return create_response(
        200 if healthy else 503,
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": datetime.utcnow().isoformat(),
            "services": services,
            "environment": ENVIRONMENT,
        },
    )


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")

print(f"API Handler Lambda initialized - Environment: {ENVIRONMENT}")
