"""
Admin email notification for newly discovered cookies.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Mapping, Tuple

from models.cookie import TrackedCookie

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends the "new cookies detected" email over SMTP."""

    def __init__(self, notification_config, site_name: str, site_url: str, activity_log):
        """
        Args:
            notification_config: NotificationConfig with SMTP settings and admin_email
            site_name: Site name used in the subject line
            site_url: Site URL used in the signature
            activity_log: ActivityLog for the delivery record
        """
        self.config = notification_config
        self.site_name = site_name
        self.site_url = site_url
        self.activity = activity_log
        self.smtp_from_email = notification_config.smtp_from_email or notification_config.smtp_user

    def build_message(
        self,
        new_cookies: Mapping[str, TrackedCookie],
        banner_integrated: bool
    ) -> Tuple[str, str]:
        """Subject and plain-text body for a batch of new cookies."""
        subject = f"[{self.site_name}] New Cookies Detected - Action Required"

        lines = [
            "Hello,",
            "",
            f"The consent logger has detected {len(new_cookies)} new cookies on your website:",
            "",
        ]
        for name, cookie in new_cookies.items():
            lines.append(f"• {name}")
            lines.append(f"  Category: {cookie.category.value.capitalize()}")
            lines.append(f"  Source: {cookie.source.value}")
            if cookie.description:
                lines.append(f"  Description: {cookie.description}")
            lines.append("")

        if banner_integrated:
            lines.append(
                "These cookies have been automatically categorized and added to your "
                "consent banner configuration."
            )
        else:
            lines.append(
                "These cookies have been automatically categorized and stored in the system. "
                "Please review and add them to your cookie consent banner manually."
            )
        lines.extend(["", "Best regards,", "Consent Logger", self.site_url])

        return subject, "\n".join(lines)

    def notify_new_cookies(
        self,
        new_cookies: Mapping[str, TrackedCookie],
        banner_integrated: bool = False
    ) -> bool:
        """
        Email the admin about new cookies.

        Returns:
            True if sent, False if not configured or delivery failed
        """
        to_address = self.config.admin_email
        if not to_address:
            logger.warning("ADMIN_EMAIL not configured, skipping new cookie notification")
            return False

        if not self.config.smtp_host:
            logger.warning("SMTP host not configured, skipping new cookie notification")
            return False

        subject, body = self.build_message(new_cookies, banner_integrated)
        try:
            self._send_email_sync(to_address, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_address}: {e}", exc_info=True)
            self.activity.log(f"Notification email to {to_address} failed: {e}")
            return False

        self.activity.log(f"Notification email sent to {to_address}")
        return True

    def _send_email_sync(self, to_address: str, subject: str, body: str):
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.smtp_from_email or to_address
        msg['To'] = to_address
        msg.attach(MIMEText(body, 'plain', 'utf-8'))

        with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port, timeout=self.config.smtp_timeout) as server:
            if self.config.smtp_use_tls:
                server.starttls()

            if self.config.smtp_user and self.config.smtp_password:
                server.login(self.config.smtp_user, self.config.smtp_password)

            server.send_message(msg)
