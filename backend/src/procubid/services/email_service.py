"""Notification emails rendered from Jinja2 templates.

Delivery is best-effort: a failed send is logged and reported as False, it
never raises into the workflow that triggered it.
"""

import asyncio
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from email.message import EmailMessage
from email.utils import parseaddr
from pathlib import Path
from typing import Any, Optional

import jinja2

from procubid.core.config import Settings
from procubid.store.records import AuctionRecord, BidderRecord

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(TEMPLATE_DIR),
    autoescape=jinja2.select_autoescape(["html"], default_for_string=False),
    trim_blocks=True,
    lstrip_blocks=True,
)

SUBJECTS = {
    "shortlist": "Shortlisted for Auction {{ auction_code }}",
    "disqualification": "Auction Update: Disqualification Notice for {{ auction_code }}",
    "cancellation": "Auction Cancelled: {{ auction_code }}",
    "award": "Congratulations! You have been awarded auction {{ auction_code }}",
    "invitation": "Invitation to Auction {{ auction_code }}: {{ auction_title }}",
}

ACCENTS = {
    "shortlist": "#4CAF50",
    "disqualification": "#f44336",
    "cancellation": "#ff9800",
    "award": "#2196F3",
    "invitation": "#3f51b5",
}


def format_amount(amount: Optional[Decimal], currency: str) -> str:
    """Render an amount as "<CUR> 1,234.50"."""
    if amount is None:
        return "N/A"
    return f"{currency} {Decimal(amount):,.2f}"


def render(kind: str, **context: Any) -> tuple[str, str]:
    """Render the subject line and HTML body of an email kind."""
    context.setdefault("accent", ACCENTS[kind])
    subject = _env.from_string(SUBJECTS[kind]).render(**context)
    body = _env.get_template(f"{kind}.html").render(**context)
    return subject, body


class Mailer(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, html: str) -> None:
        ...


class LogMailer(Mailer):
    """Mailer used when no SMTP server is configured; only logs."""

    async def send(self, to: str, subject: str, html: str) -> None:
        logger.info(f"Email (not sent, no SMTP configured): to={to}, subject={subject!r}")


class SmtpMailer(Mailer):
    """Sends mail through an SMTP server in a worker thread."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_tls: bool,
        sender: str,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender

    def _send_sync(self, to: str, subject: str, html: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html, subtype="html")

        if self.use_tls:
            client = smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(), timeout=30)
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=30)
        with client:
            if self.username:
                client.login(self.username, self.password)
            client.send_message(message)

    async def send(self, to: str, subject: str, html: str) -> None:
        await asyncio.to_thread(self._send_sync, to, subject, html)


def build_mailer(settings: Settings) -> Mailer:
    if not settings.SMTP_HOST:
        return LogMailer()
    return SmtpMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        sender=settings.EMAIL_FROM,
    )


class EmailService:
    """Service class for auction notification emails."""

    def __init__(self, mailer: Mailer, sender_name: str = "ProcuBid E-Auction System"):
        self.mailer = mailer
        self.sender_name = sender_name

    def _base_context(self, bidder: BidderRecord, auction: AuctionRecord) -> dict[str, Any]:
        return {
            "bidder_name": bidder.name,
            "auction_code": auction.auction_code,
            "auction_title": auction.title,
            "sender_name": self.sender_name,
        }

    async def _deliver(self, kind: str, bidder: BidderRecord, context: dict[str, Any]) -> bool:
        try:
            subject, html = render(kind, **context)
            await self.mailer.send(bidder.email, subject, html)
            logger.info(f"Sent {kind} email to {bidder.email} for auction {context['auction_code']}")
            return True
        except Exception as e:
            logger.error(f"Failed to send {kind} email to {bidder.email}: {e}")
            return False

    async def send_shortlist(
        self, bidder: BidderRecord, auction: AuctionRecord, amount: Optional[Decimal]
    ) -> bool:
        context = self._base_context(bidder, auction)
        context["bid_amount"] = format_amount(amount, auction.currency.value)
        return await self._deliver("shortlist", bidder, context)

    async def send_award(
        self, bidder: BidderRecord, auction: AuctionRecord, amount: Optional[Decimal]
    ) -> bool:
        context = self._base_context(bidder, auction)
        context["bid_amount"] = format_amount(amount, auction.currency.value)
        return await self._deliver("award", bidder, context)

    async def send_disqualification(
        self, bidder: BidderRecord, auction: AuctionRecord, reason: str
    ) -> bool:
        context = self._base_context(bidder, auction)
        context["reason"] = reason
        return await self._deliver("disqualification", bidder, context)

    async def send_cancellation(
        self, bidder: BidderRecord, auction: AuctionRecord, reason: str
    ) -> bool:
        context = self._base_context(bidder, auction)
        context["reason"] = reason
        return await self._deliver("cancellation", bidder, context)

    async def send_invitation(
        self, bidder: BidderRecord, auction: AuctionRecord, starts_at: Optional[datetime]
    ) -> bool:
        context = self._base_context(bidder, auction)
        context.update(
            starts_at=starts_at.strftime("%B %d, %Y %I:%M %p") if starts_at else "To be announced",
            duration_minutes=auction.duration_minutes,
            ceiling_price=format_amount(auction.ceiling_price, auction.currency.value),
            step_amount=format_amount(auction.step_amount, auction.currency.value),
            special_notices=auction.special_notices,
        )
        return await self._deliver("invitation", bidder, context)


def sender_display_name(sender: str) -> str:
    name, address = parseaddr(sender)
    return name or address or "ProcuBid"
