"""
Unified Notification Service
Handles both email and SMS notifications for appointment and billing events.
Both channels are attempted independently; failures are logged, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .. import email_service
from ..shared.errors import NotificationError
from ..shared.validators import normalize_phone
from . import twilio_service

logger = logging.getLogger(__name__)


@dataclass
class NotificationOutcome:
    success: bool
    detail: Optional[str] = None


class NotificationGateway:
    """Sends email through Resend and SMS through Twilio"""

    async def send_email(self, to: str, subject: str, body: str) -> NotificationOutcome:
        try:
            response = await email_service.send_email(to=to, subject=subject, mjml_content=body)
        except NotificationError as e:
            return NotificationOutcome(False, str(e))
        except Exception as e:
            logger.error(f"❌ Unexpected email failure to {to}: {e}")
            return NotificationOutcome(False, str(e))
        message_id = response.get("id") if isinstance(response, dict) else None
        return NotificationOutcome(True, message_id)

    async def send_sms(self, to: str, message: str) -> NotificationOutcome:
        try:
            success, detail = await twilio_service.send_sms(to, message)
        except Exception as e:
            logger.error(f"❌ Unexpected SMS failure to {to}: {e}")
            return NotificationOutcome(False, str(e))
        return NotificationOutcome(success, detail)


@dataclass
class DeliveryReport:
    email_sent: bool = False
    sms_sent: bool = False
    email_error: Optional[str] = None
    sms_error: Optional[str] = None

    @property
    def attempted(self) -> bool:
        return self.email_sent or self.sms_sent or bool(self.email_error or self.sms_error)

    @property
    def failed(self) -> bool:
        return bool(self.email_error or self.sms_error)


async def send_notification(
    gateway: NotificationGateway,
    recipient_name: str,
    email: Optional[str],
    phone: Optional[str],
    notification_type: str,
    subject: str,
    email_body: str,
    sms_body: str,
) -> DeliveryReport:
    """
    Send one notification over email and SMS

    Args:
        gateway: Transport used for both channels
        recipient_name: Patient name for logging
        email: Email address, channel skipped when empty
        phone: Phone number, channel skipped when empty
        notification_type: Type of notification (for logging)
        subject: Email subject
        email_body: MJML email content
        sms_body: SMS text

    Returns:
        DeliveryReport with per-channel status
    """
    report = DeliveryReport()

    # Send Email
    if email:
        logger.info(f"📧 Sending {notification_type} email to {email}")
        outcome = await gateway.send_email(email, subject, email_body)
        if outcome.success:
            report.email_sent = True
            logger.info(f"✅ {notification_type} email sent successfully to {email}")
        else:
            report.email_error = outcome.detail or "unknown error"
            logger.error(f"❌ Failed to send {notification_type} email to {email}: {outcome.detail}")
    else:
        logger.debug(f"⚠️ No email address for {notification_type} notification to {recipient_name}")

    # Send SMS
    if phone:
        try:
            formatted_phone = normalize_phone(phone)
        except ValueError as e:
            formatted_phone = None
            report.sms_error = str(e)
            logger.warning(f"⚠️ Invalid phone number format for {recipient_name}: {phone}")

        if formatted_phone:
            logger.info(f"📱 Attempting to send {notification_type} SMS to {formatted_phone}")
            outcome = await gateway.send_sms(formatted_phone, sms_body)
            if outcome.success:
                report.sms_sent = True
                logger.info(f"✅ {notification_type} SMS sent successfully to {formatted_phone}")
            else:
                report.sms_error = outcome.detail or "unknown error"
                logger.warning(f"⚠️ {notification_type} SMS not sent to {formatted_phone}: {outcome.detail}")
    else:
        logger.debug(f"⚠️ No phone number for {notification_type} SMS to {recipient_name}")

    return report
