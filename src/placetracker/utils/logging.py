"""
Structured logging helpers for the PlaceTracker application.

Lambda writes stdout straight to CloudWatch Logs, so every log line is a
single JSON object that Logs Insights can query by field.

Functions:
    log_event: Print one structured log line
    mask_phone: Mask a phone number for logging
"""

import json
from datetime import datetime
from typing import Any, Optional


def mask_phone(phone: Optional[str]) -> str:
    """Keep the first two and last two characters of a phone number."""
    if not phone:
        return "***"
    return f"{phone[:2]}***{phone[-2:]}" if len(phone) > 4 else "***"


def log_event(event: str, **fields: Any) -> None:
    """
    Print a structured log line.

    Args:
        event: Upper-case event name, e.g. ``SMS_EVENT_RECEIVED``
        **fields: Additional JSON-serializable fields
    """
    log_data = {"event": event, "timestamp": datetime.utcnow().isoformat()}
    log_data.update({k: v for k, v in fields.items() if v is not None})

    try:
        print(json.dumps(log_data, default=str))
    except (TypeError, ValueError) as e:
        print(f"Error logging {event}: {e}")
