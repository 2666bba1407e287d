import asyncio
import smtplib
from email.message import EmailMessage

from config.settings import Settings
from core.errors import ConfigError, DeliveryError
from core.models import Listing
from observers.base import Observer, contract_label, fmt_number, fmt_rooms, property_label


def build_message(listing: Listing) -> str:
    detail = listing.detail
    kind = property_label(detail.property_type)
    msg = f"Hey guys, found <b>a new {kind} on {listing.source}</b>!<br /><br />"
    msg += f"{detail.address}<br />"
    msg += f"{contract_label(detail.contract_type)} the {kind} costs <b>{fmt_number(detail.price)} €</b>.<br />"
    msg += f"It has <b>{fmt_rooms(detail.rooms)} rooms</b> and <b>{fmt_number(detail.squaremeters)} sqm</b>.<br />"
    if detail.plot_squaremeters is not None:
        msg += f"Plot of land has a size of <b>{fmt_number(detail.plot_squaremeters)} sqm</b>.<br />"
    msg += "<br />"
    msg += f"<a href='{detail.url}' target='_blank'>Find more information here ...</a>"
    return msg


def build_email(settings: Settings, listing: Listing) -> EmailMessage:
    email = EmailMessage()
    email["From"] = settings.mail.username
    email["To"] = settings.mail.username
    email["Subject"] = f"Found new flat: {listing.detail.title}"
    email.set_content(build_message(listing), subtype="html")
    return email


class MailObserver(Observer):
    name = "mail"

    def __init__(self, smtp_factory=smtplib.SMTP):
        self.smtp_factory = smtp_factory

    def init(self, settings: Settings) -> None:
        if not settings.mail.smtp_server or not settings.mail.username:
            raise ConfigError("mail.smtp_server and mail.username are required", context=self.name)

    def _send(self, settings: Settings, email: EmailMessage) -> None:
        with self.smtp_factory(settings.mail.smtp_server, settings.mail.port, timeout=settings.timeout) as smtp:
            smtp.starttls()
            smtp.login(settings.mail.username, settings.mail.password)
            smtp.send_message(email)

    async def deliver(self, settings: Settings, listing: Listing) -> None:
        email = build_email(settings, listing)
        try:
            await asyncio.to_thread(self._send, settings, email)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"Could not send email: {e}", context=self.name) from e
