"""
SendGrid email service for Lead CRM
- Monthly performance report with XLSX + PDF attachments
"""

import os
import base64
import logging
from typing import List, Optional
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import (
    Mail,
    Email,
    To,
    Content,
    Attachment,
    FileContent,
    FileName,
    FileType,
    Disposition,
)

from leadcrm.config import APP_NAME
from leadcrm.services.renderers import RenderedReport

logger = logging.getLogger("email_service")

# Configuration
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'noreply@leadcrm.local')
SENDER_NAME = os.environ.get('SENDER_NAME', APP_NAME)


def _attachment(report: RenderedReport) -> Attachment:
    return Attachment(
        FileContent(base64.b64encode(report.content).decode()),
        FileName(report.filename),
        FileType(report.content_type),
        Disposition("attachment"),
    )


class EmailService:
    """Single entry point for outgoing email"""

    def __init__(self):
        self.api_key = SENDGRID_API_KEY
        self.sender = SENDER_EMAIL
        self.sender_name = SENDER_NAME

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        attachments: Optional[List[RenderedReport]] = None
    ) -> bool:
        """Send one email through SendGrid. Returns False on any failure."""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY not configured")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, self.sender_name),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )
            for report in attachments or []:
                message.add_attachment(_attachment(report))

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email sent to {to_email}: {subject}")
                return True
            logger.error(f"Email send failed for {to_email}: HTTP {response.status_code}")
            return False

        except Exception as e:
            logger.error(f"Email send exception for {to_email}: {str(e)}")
            return False

    # ==================== MONTHLY REPORT ====================

    def send_monthly_report(self, to_email: str, month_label: str, attachments: List[RenderedReport]) -> bool:
        subject = f"{APP_NAME} - Monthly Report for {month_label}"
        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; color: #424242;">
            <p>Hello,</p>
            <p>Please find the consolidated performance report for <strong>{month_label}</strong> attached.</p>
            <p style="font-size: 12px; color: #9E9E9E;">{APP_NAME} - sent automatically on the 1st of each month</p>
        </body>
        </html>
        """
        return self.send_email(to_email, subject, html_content, attachments)


# Global instance
email_service = EmailService()
