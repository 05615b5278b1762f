"""
Twilio SMS Service
Sends patient SMS through the Twilio REST API
"""

import logging
from typing import Optional

import httpx

from ..config import (
    CLINIC_NAME,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_FROM_NUMBER,
    TWILIO_MESSAGING_SERVICE_SID,
)

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def is_configured() -> bool:
    return bool(
        TWILIO_ACCOUNT_SID
        and TWILIO_ACCOUNT_SID.startswith("AC")
        and TWILIO_AUTH_TOKEN
        and (TWILIO_FROM_NUMBER or TWILIO_MESSAGING_SERVICE_SID)
    )


async def send_sms(to_phone: str, message_body: str) -> tuple[bool, Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number in E.164 format
        message_body: SMS message content

    Returns:
        Tuple of (success: bool, detail: Optional[str]) where detail is the
        message SID on success or the error on failure
    """
    if not to_phone:
        return False, "No phone number provided"

    if not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return False, "Phone number must be in E.164 format (e.g., +94771234567)"

    if not is_configured():
        logger.debug("SMS service not available - Twilio not configured")
        return False, "SMS service not configured"

    data = {"To": to_phone, "Body": message_body}
    if TWILIO_MESSAGING_SERVICE_SID:
        data["MessagingServiceSid"] = TWILIO_MESSAGING_SERVICE_SID
    else:
        data["From"] = TWILIO_FROM_NUMBER

    try:
        logger.info(f"🚀 Sending SMS to Twilio API for {to_phone}")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{TWILIO_API_BASE}/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data=data,
                timeout=10.0,
            )

        logger.info(f"📡 Twilio API response status: {response.status_code}")

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully to {to_phone}, SID: {message_sid}")
            return True, message_sid

        error_message = response.text
        try:
            error_message = response.json().get("message", error_message)
        except ValueError:
            pass
        logger.error(f"❌ Twilio API error: {response.status_code} - {error_message}")
        return False, f"Twilio API error: {error_message}"

    except httpx.HTTPError as e:
        logger.error(f"❌ Failed to reach Twilio for {to_phone}: {str(e)}")
        return False, str(e)


# SMS Template Functions
def appointment_confirmation_sms(
    patient_name: str, appointment_time: str, provider_name: str, branch_name: str, reason: str
) -> str:
    return (
        f"Hi {patient_name}! Your appointment is confirmed for {appointment_time} with "
        f"Dr. {provider_name} at {branch_name}. Reason: {reason}. "
        f"Please arrive 15 minutes early. - {CLINIC_NAME}"
    )


def appointment_reminder_sms(patient_name: str, appointment_time: str, provider_name: str) -> str:
    return (
        f"Hi {patient_name}! You have an appointment on {appointment_time} with Dr. {provider_name} "
        f"at {CLINIC_NAME}. Please arrive 10 minutes early."
    )


def payment_reminder_sms(patient_name: str, amount: str, invoice_number: str) -> str:
    return (
        f"Hi {patient_name}! Invoice {invoice_number} has an outstanding balance of {amount} "
        f"at {CLINIC_NAME}. Please make your payment soon to avoid service interruptions."
    )
