"""
Sequential email delivery for accepted submissions.

Messages are sent one after another, each over its own transport
connection. Delivery stops at the first failure; messages already sent are
not recalled (at-most-once per message, no transaction across the set).
"""

import logging
from typing import Callable, List

from .models import Failed, NotificationOutcome, OutgoingEmail, Sent
from services import email as email_service
from services.mailer import MailDeliveryError

logger = logging.getLogger(__name__)


class Notifier:
    """Sends OutgoingEmail objects through a mail transport."""

    def __init__(self, sender: str, transport_factory: Callable[[], object]):
        """
        Args:
            sender: From address for every message
            transport_factory: Returns a transport context manager per send
        """
        self.sender = sender
        self.transport_factory = transport_factory

    def send_all(self, emails: List[OutgoingEmail]) -> List[NotificationOutcome]:
        """
        Send `emails` in order, stopping after the first failure.

        Returns:
            One outcome per attempted send (shorter than `emails` on failure)
        """
        outcomes: List[NotificationOutcome] = []
        for outgoing in emails:
            outcome = self.send(outgoing)
            outcomes.append(outcome)
            if not outcome.delivered:
                skipped = len(emails) - len(outcomes)
                if skipped:
                    logger.warning(f"Skipping {skipped} remaining message(s) after delivery failure")
                break
        return outcomes

    def send(self, outgoing: OutgoingEmail) -> NotificationOutcome:
        """Send a single message; transport faults become Failed."""
        try:
            message = email_service.build_message(
                sender=self.sender,
                recipient=outgoing.recipient,
                subject=outgoing.subject,
                html_body=outgoing.html_body,
                reply_to=outgoing.reply_to,
            )
            with self.transport_factory() as transport:
                message_id = transport.send(message)
        except (MailDeliveryError, ValueError) as e:
            logger.error(f"Email to {outgoing.recipient} failed: {e}")
            return Failed(recipient=outgoing.recipient, cause=str(e))

        logger.info(f"Email sent: to={outgoing.recipient}, message_id={message_id}")
        return Sent(recipient=outgoing.recipient, message_id=message_id)
