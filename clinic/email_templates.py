"""
MJML Email Templates
Patient-facing appointment and billing emails
"""

from typing import Optional

from .config import CLINIC_NAME, FRONTEND_URL

# Clinic theme colors
THEME = {
    "primary": "#059669",
    "primary_light": "#f0fdf4",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "info": "#2563eb",
    "info_light": "#f3f4f6",
    "danger": "#dc2626",
    "danger_light": "#fef2f2",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    accent: str = THEME["primary"],
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{accent}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 48px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{accent}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}

            <mj-text padding="24px 0 0 0">
              Best regards,<br/>
              The {CLINIC_NAME} Team
            </mj-text>
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you are a patient of {CLINIC_NAME}.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _details_box(rows: list[tuple[str, str]], background: str) -> str:
    lines = "<br/>".join(f"<strong>{label}:</strong> {value}" for label, value in rows)
    return f"""
    <mj-text container-background-color="{background}" padding="15px" border-radius="5px">
      {lines}
    </mj-text>
    """


def appointment_confirmation_template(
    patient_name: str,
    appointment_time: str,
    provider_name: str,
    branch_name: str,
    reason: str,
) -> str:
    """Sent when an appointment is booked by staff or approved"""
    content = f"""
    <mj-text>
      Dear {patient_name},
    </mj-text>

    <mj-text>
      Your appointment has been scheduled successfully:
    </mj-text>

    {_details_box([
        ("Date &amp; Time", appointment_time),
        ("Doctor", f"Dr. {provider_name}"),
        ("Location", branch_name),
        ("Reason", reason),
    ], THEME["primary_light"])}

    <mj-text padding="16px 0 0 0">
      <strong>Important Notes:</strong><br/>
      • Please arrive 10 minutes before your scheduled time<br/>
      • Bring any relevant medical records or test results<br/>
      • If you need to reschedule, please contact us at least 24 hours in advance
    </mj-text>
    """

    return get_base_template(
        title="Appointment Confirmed!",
        preview_text=f"Your appointment on {appointment_time} is confirmed",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/patient/appointments",
        cta_label="View My Appointments",
    )


def appointment_reminder_template(patient_name: str, appointment_time: str, provider_name: str) -> str:
    content = f"""
    <mj-text>
      Dear {patient_name},
    </mj-text>

    <mj-text>
      This is a friendly reminder that you have an appointment scheduled for:
    </mj-text>

    {_details_box([
        ("Date", appointment_time),
        ("Doctor", f"Dr. {provider_name}"),
    ], THEME["info_light"])}

    <mj-text>
      Please arrive 10 minutes before your scheduled time.
      If you need to reschedule, please contact us as soon as possible.
    </mj-text>
    """

    return get_base_template(
        title="Appointment Reminder",
        preview_text=f"Reminder: appointment with Dr. {provider_name}",
        content_sections=content,
        accent=THEME["info"],
    )


def payment_reminder_template(patient_name: str, amount: str, due_date: str, invoice_number: str) -> str:
    content = f"""
    <mj-text>
      Dear {patient_name},
    </mj-text>

    <mj-text>
      This is a reminder that you have an outstanding payment:
    </mj-text>

    {_details_box([
        ("Invoice", invoice_number),
        ("Amount", amount),
        ("Due Date", due_date),
    ], THEME["danger_light"])}

    <mj-text>
      Please make your payment as soon as possible to avoid any service interruptions.
      You can make your payment online or contact us for assistance.
    </mj-text>
    """

    return get_base_template(
        title="Payment Reminder",
        preview_text=f"Outstanding balance of {amount}",
        content_sections=content,
        accent=THEME["danger"],
        cta_url=f"{FRONTEND_URL}/patient/billing",
        cta_label="Pay Now",
    )
