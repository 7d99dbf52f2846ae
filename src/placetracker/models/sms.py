"""
SMS message data model for the PlaceTracker application.

This module defines the SMSMessage model used to represent and validate
incoming SMS data delivered by the Twilio messaging webhook. It handles the
decoding of form-encoded webhook payloads and extraction of the sender and
message text.

Classes:
    SMSMessage: Pydantic model for incoming SMS message data
"""

import base64
from datetime import datetime
from typing import Optional, Dict, Any
from urllib.parse import parse_qs

from pydantic import BaseModel, Field, field_validator

from ..utils.logging import mask_phone

MAX_BODY_LENGTH = 1600


class SMSMessage(BaseModel):
    """
    Pydantic model representing an incoming SMS message.

    Twilio posts inbound messages as ``application/x-www-form-urlencoded``
    bodies. Only the sender (``From``) and text (``Body``) matter for place
    ingestion; the remaining fields are kept as metadata for logging.

    Attributes:
        message_id: Twilio message SID, or empty when not supplied
        phone_number: Sender's phone number
        message_body: Raw text content of the SMS, unmodified
        timestamp: When the message was received
        metadata: Additional webhook fields

    Example:
        >>> sms = SMSMessage.from_twilio_form(
        ...     "From=%2B15551234567&Body=Joe%27s+https%3A%2F%2Fmaps.apple%2Fp%2Fabc"
        ... )
        >>> sms.phone_number
        '+15551234567'
    """

    message_id: str = Field(default="", description="Twilio message SID")
    phone_number: str = Field(..., description="Sender phone number")
    message_body: str = Field(..., max_length=MAX_BODY_LENGTH, description="SMS message content")
    timestamp: datetime = Field(
        default_factory=datetime.utcnow, description="Message timestamp"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Additional message data"
    )

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        """
        Require a non-empty sender.

        The value is kept as sent: Twilio senders include short codes and
        alphanumeric IDs as well as E.164 numbers.
        """
        if not v.strip():
            raise ValueError("Phone number is required")
        return v

    @property
    def masked_phone_number(self) -> str:
        """Phone number safe for logs, e.g. ``+1***67``."""
        return mask_phone(self.phone_number)

    @classmethod
    def from_twilio_form(
        cls, body: Optional[str], is_base64_encoded: bool = False
    ) -> "SMSMessage":
        """
        Create an SMSMessage from a form-encoded Twilio webhook body.

        API Gateway may deliver the body base64-encoded; pass
        ``is_base64_encoded`` through from the proxy event.

        Args:
            body: Raw request body
            is_base64_encoded: Whether API Gateway base64-encoded the body

        Returns:
            SMSMessage instance

        Raises:
            ValueError: If the body cannot be decoded, From/Body are missing
                or Body is too long
        """
        if body is None:
            raise ValueError("Request body is required")

        try:
            if is_base64_encoded:
                body = base64.b64decode(body).decode("utf-8")
            fields = parse_qs(body, keep_blank_values=True, strict_parsing=False)
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"Invalid form body: {e}") from e

        if "From" not in fields or not fields["From"][0].strip():
            raise ValueError("Missing required field 'From'")
        if "Body" not in fields:
            raise ValueError("Missing required field 'Body'")
        if len(fields["Body"][0]) > MAX_BODY_LENGTH:
            raise ValueError(f"Message body too long (max {MAX_BODY_LENGTH} characters)")

        metadata = {
            "to": fields.get("To", [None])[0],
            "numMedia": fields.get("NumMedia", [None])[0],
            "fromCountry": fields.get("FromCountry", [None])[0],
        }

        return cls(
            message_id=fields.get("MessageSid", [""])[0],
            phone_number=fields["From"][0],
            message_body=fields["Body"][0],
            metadata={k: v for k, v in metadata.items() if v is not None},
        )
