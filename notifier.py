import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from config import Settings
from models import Booking
from schedule import to_utc

logger = logging.getLogger(__name__)


class Notifier:
    """
    Post-commit booking confirmations.

    Runs after the booking is committed. A failure here is logged and never
    reported to the caller: the booking stands either way.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def booking_confirmed(self, booking: Booking) -> None:
        try:
            self._deliver(booking)
        except Exception:
            logger.exception(
                "[Notifier] Failed to send confirmation for booking %s (%s with %s)",
                booking.id,
                booking.user_email,
                booking.speaker_email,
            )

    def _deliver(self, booking: Booking) -> None:
        when = to_utc(booking.session_timestamp).astimezone(self.settings.tz)
        recipients = [booking.user_email, booking.speaker_email]

        if not self.settings.smtp_enabled:
            logger.info("[Notifier] SMTP not configured; booking %s confirmed for %s", booking.id, when.isoformat())
            return

        message = MIMEMultipart()
        message["From"] = self.settings.email_from
        message["To"] = ", ".join(recipients)
        message["Subject"] = "Session Booking Confirmation"
        message.attach(MIMEText(f"Your session has been booked successfully for {when.isoformat()}.", "plain"))

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as server:
            server.starttls()
            if self.settings.smtp_user:
                server.login(self.settings.smtp_user, self.settings.smtp_password or "")
            server.send_message(message)

        logger.info("[Notifier] Confirmation sent to %s", ", ".join(recipients))
