import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Clinic identity and local time
CLINIC_NAME = os.getenv("CLINIC_NAME", "MedSync Clinic")
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "Asia/Colombo")

# Working-hour window, [open, close) in local hours
CLINIC_OPEN_HOUR = int(os.getenv("CLINIC_OPEN_HOUR", "8"))
CLINIC_CLOSE_HOUR = int(os.getenv("CLINIC_CLOSE_HOUR", "18"))
# Comma separated weekday numbers (Monday=0 ... Sunday=6), e.g. "5,6" to close weekends
CLINIC_CLOSED_WEEKDAYS = os.getenv("CLINIC_CLOSED_WEEKDAYS", "")

# Double-booking window either side of a candidate time, and availability step
CONFLICT_WINDOW_MINUTES = int(os.getenv("CONFLICT_WINDOW_MINUTES", "30"))
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "30"))

# Daily reminder ticks (local hour)
APPOINTMENT_REMINDER_HOUR = int(os.getenv("APPOINTMENT_REMINDER_HOUR", "8"))
PAYMENT_REMINDER_HOUR = int(os.getenv("PAYMENT_REMINDER_HOUR", "9"))

# Invoices issued without a due date fall due after this many days
INVOICE_DEFAULT_DUE_DAYS = int(os.getenv("INVOICE_DEFAULT_DUE_DAYS", "30"))

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "MedSync Clinic <noreply@medsync.clinic>")

# Twilio SMS Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")
TWILIO_MESSAGING_SERVICE_SID = os.getenv("TWILIO_MESSAGING_SERVICE_SID")
# Country calling code used when a stored phone number has no "+" prefix
SMS_DEFAULT_COUNTRY_CODE = os.getenv("SMS_DEFAULT_COUNTRY_CODE", "94")

# Prefix used when formatting amounts in patient messages
CURRENCY_LABEL = os.getenv("CURRENCY_LABEL", "Rs.")

# Frontend base URL for links in emails
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
