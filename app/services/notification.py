import logging
from typing import Any


logger = logging.getLogger(__name__)


class NotificationService:
    """
    Stand-in for the mail delivery service: messages are only logged.
    Swap in a real sender by subclassing and overriding send_email.
    """

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        logger.info(f"Email queued to {to}: {subject}")
        return True

    async def send_booking_confirmation(self, recipient: str, template_data: dict[str, Any]) -> bool:
        """Best-effort: delivery problems are logged, never raised to the caller."""
        if not recipient:
            logger.warning(f"No recipient for booking {template_data.get('booking_code')}, skipping email")
            return False
        subject = f"Booking confirmed - {template_data.get('booking_code')}"
        body = "\n".join([
            f"Movie: {template_data.get('movie_title')}",
            f"Theatre: {template_data.get('theatre_name')}",
            f"Showtime: {template_data.get('date')} {template_data.get('time')}",
            f"Seats: {', '.join(template_data.get('seats', []))}",
            f"Total: {template_data.get('total_price')}",
        ])
        try:
            return await self.send_email(recipient, subject, body)
        except Exception as e:
            logger.error(f"Failed to send confirmation for {template_data.get('booking_code')}: {e}", exc_info=True)
            return False


notification_service = NotificationService()


def get_notification_service() -> NotificationService:
    return notification_service
