"""
AWS Lambda functions for the PlaceTracker application.

Modules:
    sms_processor: Handles inbound SMS messages from the Twilio webhook
    shortcut_handler: Accepts places submitted by the phone shortcut
    api_handler: Place management endpoint for the web app
"""

# Lambda function entry points are imported directly from their modules
