"""
Email notifications sent through the Microsoft Graph sendMail endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Protocol, Sequence

from ..domain.exceptions import CalendarUnavailableError, NotificationError
from ..domain.models import AppointmentRequest, TimeRange
from .availability import TokenProviderProtocol

logger = logging.getLogger(__name__)


class MailClientProtocol(Protocol):
    def send_mail(self, sender: str, message: Dict[str, Any], access_token: str) -> None:
        """Send a Graph message resource from ``sender``."""


class GraphMailNotifier:
    """Formats and sends booking emails from the business mailbox."""

    def __init__(
        self,
        token_provider: TokenProviderProtocol,
        mail_client: MailClientProtocol,
        sender: str,
        business_recipients: Sequence[str] | None = None,
        timezone: str = "Europe/Paris",
    ) -> None:
        self._token_provider = token_provider
        self._mail_client = mail_client
        self.sender = sender
        self.business_recipients = list(business_recipients or [sender])
        self.timezone = timezone

    def send_booking_confirmation(
        self,
        request: AppointmentRequest,
        slot: TimeRange,
        event_id: str | None = None,
    ) -> None:
        """Confirm a booked appointment to the visitor, copying the business."""
        contact = request.contact
        body = "\n".join([
            f"Hello {contact.full_name},",
            "",
            "your appointment is confirmed.",
            "",
            self._format_slot(slot),
            "",
            "If you need to reschedule, simply reply to this email.",
        ])

        self._send(
            subject=f"Appointment confirmed - {self._format_slot(slot)}",
            body=body,
            to=[contact.email],
            cc=self.business_recipients,
        )
        logger.info("Sent booking confirmation for event %s", event_id)

    def send_appointment_request(
        self,
        request: AppointmentRequest,
        slot: TimeRange,
        event_may_exist: bool = False,
    ) -> None:
        """
        Forward an appointment request to the business when the calendar is down.

        The slot is not booked; someone has to confirm it by hand. With
        ``event_may_exist`` the event request failed after it was sent, so
        the calendar may already hold it.
        """
        lines = [
            "NEW APPOINTMENT REQUEST",
            "=======================",
            "",
            "The calendar could not be updated automatically.",
        ]
        if event_may_exist:
            lines.append(
                "The event may already have been created: check the calendar "
                "before adding it again."
            )
        lines.extend([
            "",
            f"Requested slot: {self._format_slot(slot)}",
            "",
            self._format_contact(request),
            "",
            "ACTION REQUIRED:",
            "- Check that the requested slot is still free",
            "- Contact the visitor to confirm the appointment",
            "- Add the event to the calendar once confirmed",
        ])
        body = "\n".join(lines)

        self._send(
            subject=f"New appointment request - {request.contact.full_name}",
            body=body,
            to=self.business_recipients,
            reply_to=request.contact.email,
        )
        logger.info("Forwarded appointment request from %s by email", request.contact.email)

    def _send(
        self,
        subject: str,
        body: str,
        to: Sequence[str],
        cc: Sequence[str] = (),
        reply_to: str | None = None,
    ) -> None:
        message: Dict[str, Any] = {
            "subject": subject,
            "body": {"contentType": "Text", "content": body},
            "toRecipients": _recipients(to),
        }
        if cc:
            message["ccRecipients"] = _recipients(cc)
        if reply_to:
            message["replyTo"] = _recipients([reply_to])

        try:
            access_token = self._token_provider.get_access_token()
            self._mail_client.send_mail(self.sender, message, access_token)
        except CalendarUnavailableError as exc:
            raise NotificationError(f"Could not send '{subject}': {exc}") from exc

    def _format_slot(self, slot: TimeRange) -> str:
        start = slot.start.in_timezone(self.timezone)
        end = slot.end.in_timezone(self.timezone)
        return f"{start.format('dddd, D MMMM YYYY HH:mm')}-{end.format('HH:mm')} ({self.timezone})"

    @staticmethod
    def _format_contact(request: AppointmentRequest) -> str:
        contact = request.contact
        lines = [
            "CONTACT:",
            f"Name: {contact.full_name}",
            f"Email: {contact.email}",
            f"Phone: {contact.phone}",
        ]
        if contact.company:
            lines.append(f"Company: {contact.company}")
        lines.extend(["", "MESSAGE:", contact.message or "-"])
        return "\n".join(lines)


def _recipients(addresses: Sequence[str]) -> List[Dict[str, Any]]:
    return [{"emailAddress": {"address": address}} for address in addresses]
