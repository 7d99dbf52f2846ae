"""
SMS Processor Lambda function for the PlaceTracker application.

This Lambda function sits behind API Gateway as the Twilio inbound-message
webhook. It parses the form-encoded webhook body, turns the message into a
stored place (map link extraction, best-effort Apple Maps enrichment,
hashtags), and answers Twilio with a TwiML confirmation message.

The Apple Maps access token cache lives at module level so that warm
containers reuse one token across invocations.

Functions:
    lambda_handler: Main entry point for the Lambda function
    build_twiml_reply: Render the TwiML confirmation message
    _log_event_received: Log the inbound request without sensitive data
"""

import os
from datetime import datetime
from typing import Any, Dict, Optional
from xml.sax.saxutils import escape

from ..models.sms import SMSMessage
from ..services.apple_maps_service import AccessTokenCache, AppleMapsService
from ..services.place_service import PlaceService
from ..utils.logging import log_event
from .responses import get_http_method


TOKEN_CACHE = AccessTokenCache()

XML_ATTRIBUTE_ENTITIES = {"\"": "&quot;", "'": "&apos;"}


def lambda_handler(
    event: Dict[str, Any], context: Any  # noqa: ARG001
) -> Dict[str, Any]:
    """
    Main Lambda handler for inbound SMS webhooks.

    Args:
        event: API Gateway proxy event carrying the Twilio form body
        context: AWS Lambda runtime context (unused but required)

    Returns:
        API Gateway proxy response. 200 carries a TwiML body; 400/405/500
        carry a short plain-text reason.

    Event Structure:
        {
            "httpMethod": "POST",
            "headers": {"Content-Type": "application/x-www-form-urlencoded"},
            "body": "From=%2B15551234567&Body=Joe%27s+https%3A%2F%2Fmaps.apple%2Fp%2Fabc",
            "isBase64Encoded": false
        }

    Example:
        >>> result = lambda_handler(event, None)
        >>> result["body"]
        '<?xml version="1.0" encoding="UTF-8"?><Response><Message>Saved (Joe&apos;s)</Message></Response>'
    """
    start_time = datetime.utcnow()
    response = _text_response(500, "Error saving place")

    try:
        _log_event_received(event)

        if get_http_method(event) != "POST":
            response = _text_response(405, "Only POST allowed")
            return response

        try:
            sms_message = SMSMessage.from_twilio_form(
                event.get("body"), bool(event.get("isBase64Encoded"))
            )
        except ValueError as e:
            log_event("SMS_EXTRACTION_ERROR", errorMessage=str(e))
            response = _text_response(400, str(e))
            return response

        log_event(
            "SMS_PARSED",
            messageId=sms_message.message_id or None,
            phoneNumber=sms_message.masked_phone_number,
            messageLength=len(sms_message.message_body),
        )

        try:
            place_service = PlaceService(
                maps_service=AppleMapsService(token_cache=TOKEN_CACHE)
            )
        except Exception as e:
            log_event("SERVICE_INITIALIZATION_ERROR", errorMessage=str(e))
            return response

        result = place_service.process_sms_message(sms_message)
        if not result["success"]:
            log_event("SMS_PROCESSING_FAILED", errorMessage=result["error"])
            return response

        response = {
            "statusCode": 200,
            "headers": {"Content-Type": "application/xml"},
            "body": build_twiml_reply(result["place"].title),
        }

    except Exception as e:
        log_event("UNEXPECTED_ERROR", errorType=type(e).__name__, errorMessage=str(e))
        response = _text_response(500, "Error saving place")

    finally:
        processing_time = (datetime.utcnow() - start_time).total_seconds() * 1000
        log_event(
            "SMS_PROCESSING_COMPLETED",
            statusCode=response["statusCode"],
            processingTime=round(processing_time, 2),
            environment=ENVIRONMENT,
        )

    return response


def build_twiml_reply(title: Optional[str]) -> str:
    """
    Render the confirmation reply for Twilio.

    The title is XML-escaped; the parenthesized title is omitted when the
    place has none.
    """
    message = f"Saved ({escape(title, XML_ATTRIBUTE_ENTITIES)})" if title else "Saved"
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f"<Response><Message>{message}</Message></Response>"
    )


def _text_response(status_code: int, message: str) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "text/plain"},
        "body": message,
    }


def _log_event_received(event: Dict[str, Any]) -> None:
    """
    Log the receipt of an SMS webhook.

    Only the request metadata is logged; the form body carries the sender's
    phone number and message text.
    """
    body = event.get("body") or ""
    log_event(
        "SMS_EVENT_RECEIVED",
        httpMethod=get_http_method(event),
        requestId=event.get("requestContext", {}).get("requestId"),
        bodyLength=len(body),
        isBase64Encoded=bool(event.get("isBase64Encoded")),
    )


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
