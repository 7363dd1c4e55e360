"""
Alert Sending module for Vehicle Alerts.

The dispatcher hands every new vehicle to each registered notifier. The
EmailNotifier looks up which alert filters the vehicle matches, resolves
the subscribers' addresses and sends one email per address through a
transport (SMTP or SendGrid).

Delivery is best effort: a failed send is logged and not retried.
"""

import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Protocol

from .alert_matching import AlertMatcher
from .config import EmailConfig, get_email_config
from .db import Database
from .models import PriceStatistic, VehiclePayload
from .price_stats import format_price

logger = logging.getLogger(__name__)


# =============================================================================
# EMAIL TEMPLATES
# =============================================================================

ALERT_EMAIL_SUBJECT = "{type_text} - {price_display}"

ALERT_EMAIL_HTML = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: 'Trebuchet MS', Tahoma, sans-serif; line-height: 1.4; color: #555; }}
        .container {{ max-width: 500px; margin: 0 auto; }}
        .header {{ background: #ffa818; color: white; padding: 10px; text-align: center; font-weight: bold; }}
        .content {{ padding: 10px; }}
        .price {{ font-weight: bold; }}
        .cta-button {{ display: inline-block; background: #3aaee0; color: white; padding: 5px 20px; text-decoration: none; border-radius: 4px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">New vehicle listing matching your alert!</div>
        <div class="content">
            <p>Match: {type_text} - <span class="price">{price_display}</span></p>
            <p>Average price of this type: <span class="price">{average_display}</span></p>
            <p>Median price of this type: <span class="price">{median_display}</span></p>
            <p>Location: {location}</p>
            <p>Open the listing: <a href="{link}" class="cta-button">View</a></p>
        </div>
    </div>
</body>
</html>
"""

ALERT_EMAIL_TEXT = """
NEW VEHICLE LISTING: {type_text}

Price: {price_display}
Average price of this type: {average_display}
Median price of this type: {median_display}
Location: {location}

View listing: {link}

---
Vehicle Alerts
"""


def build_template_vars(payload: VehiclePayload, statistic: Optional[PriceStatistic]) -> dict:
    """Format a payload and its category statistic for the templates."""
    fuel = payload.fuel_type or "?"
    location = " ".join(
        str(part) for part in (payload.postal_code, payload.city) if part
    ) or "Unknown"
    return {
        "type_text": f"{payload.make} {payload.model} - ({payload.age_years}, {fuel})",
        "price_display": format_price(payload.price),
        "average_display": format_price(statistic.average if statistic else None),
        "median_display": format_price(statistic.median if statistic else None),
        "location": location,
        "link": payload.detail_url,
    }


# =============================================================================
# TRANSPORTS
# =============================================================================

class EmailTransport(Protocol):
    """Sends one resolved alert to one address; raises on failure."""

    def send(
        self,
        payload: VehiclePayload,
        address: str,
        statistic: Optional[PriceStatistic] = None,
    ) -> None:
        ...


class SmtpTransport:
    """Send alert emails via SMTP (STARTTLS)."""

    def __init__(self, email_config: Optional[EmailConfig] = None):
        self.email_config = email_config or get_email_config()

    def build_message(
        self,
        payload: VehiclePayload,
        address: str,
        statistic: Optional[PriceStatistic] = None,
    ) -> MIMEMultipart:
        template_vars = build_template_vars(payload, statistic)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = ALERT_EMAIL_SUBJECT.format(**template_vars)
        msg["From"] = f"{self.email_config.from_name} <{self.email_config.from_email}>"
        msg["To"] = address
        if self.email_config.bcc_email:
            msg["Bcc"] = self.email_config.bcc_email
        if self.email_config.reply_to_email:
            msg["Reply-To"] = self.email_config.reply_to_email

        # Attach text and HTML versions
        msg.attach(MIMEText(ALERT_EMAIL_TEXT.format(**template_vars), "plain", "utf-8"))
        msg.attach(MIMEText(ALERT_EMAIL_HTML.format(**template_vars), "html", "utf-8"))
        return msg

    def send(
        self,
        payload: VehiclePayload,
        address: str,
        statistic: Optional[PriceStatistic] = None,
    ) -> None:
        msg = self.build_message(payload, address, statistic)
        with smtplib.SMTP(self.email_config.smtp_host, self.email_config.smtp_port) as server:
            server.starttls()
            if self.email_config.smtp_user and self.email_config.smtp_password:
                server.login(self.email_config.smtp_user, self.email_config.smtp_password)
            server.send_message(msg)


class SendGridTransport:
    """Send alert emails via the SendGrid API."""

    def __init__(self, email_config: Optional[EmailConfig] = None):
        self.email_config = email_config or get_email_config()

    def send(
        self,
        payload: VehiclePayload,
        address: str,
        statistic: Optional[PriceStatistic] = None,
    ) -> None:
        try:
            import sendgrid
            from sendgrid.helpers.mail import Mail, Email, To
        except ImportError:
            logger.error("SendGrid package not installed. Run: pip install sendgrid")
            raise

        template_vars = build_template_vars(payload, statistic)
        sg = sendgrid.SendGridAPIClient(api_key=self.email_config.sendgrid_api_key)

        message = Mail(
            from_email=Email(self.email_config.from_email, self.email_config.from_name),
            to_emails=To(address),
            subject=ALERT_EMAIL_SUBJECT.format(**template_vars),
            html_content=ALERT_EMAIL_HTML.format(**template_vars),
            plain_text_content=ALERT_EMAIL_TEXT.format(**template_vars),
        )
        if self.email_config.bcc_email:
            message.add_bcc(self.email_config.bcc_email)
        if self.email_config.reply_to_email:
            message.reply_to = self.email_config.reply_to_email

        response = sg.send(message)

        if response.status_code not in (200, 201, 202):
            raise RuntimeError(f"SendGrid error: {response.status_code}")


def create_transport(email_config: Optional[EmailConfig] = None) -> EmailTransport:
    """Pick the transport named by EMAIL_PROVIDER."""
    email_config = email_config or get_email_config()
    if email_config.provider == "sendgrid":
        return SendGridTransport(email_config)
    if email_config.provider == "smtp":
        return SmtpTransport(email_config)
    raise ValueError(f"Unknown email provider: {email_config.provider}")


# =============================================================================
# EMAIL NOTIFIER
# =============================================================================

class EmailNotifier:
    """
    Emails subscribers whose alert filters match a new vehicle.

    Usage:
        notifier = EmailNotifier(db, create_transport())
        notifier.notify(payload)
    """

    name = "email"

    def __init__(
        self,
        db: Database,
        transport: EmailTransport,
        matcher: Optional[AlertMatcher] = None,
    ):
        self.db = db
        self.transport = transport
        self.matcher = matcher or AlertMatcher()

    def recipients(self, payload: VehiclePayload) -> list[str]:
        """Addresses of every subscriber with a matching filter (deduplicated)."""
        filters = self.db.get_alert_filters()
        addresses = []
        for alert_filter in self.matcher.matching_filters(payload, filters):
            email = self.db.get_subscriber_email(alert_filter.subscriber_id)
            if not email:
                logger.warning(
                    f"Alert filter {alert_filter.id} has no subscriber email "
                    f"(subscriber {alert_filter.subscriber_id})"
                )
                continue
            if email not in addresses:
                addresses.append(email)
        return addresses

    def notify(self, payload: VehiclePayload) -> int:
        """
        Send the vehicle to every matching subscriber.

        Returns:
            Number of emails sent successfully
        """
        addresses = self.recipients(payload)
        if not addresses:
            return 0

        logger.info(f"{len(addresses)} subscriber(s) need to be notified of listing {payload.listing_id}")
        statistic = self.db.get_price_statistic(payload.category_id)

        sent = 0
        for address in addresses:
            try:
                self.transport.send(payload, address, statistic)
                sent += 1
                logger.info(f"Email sent: {address}")
            except Exception as e:
                logger.error(f"Failed to email {address} about listing {payload.listing_id}: {e}")
                continue

        logger.info(f"Sent {sent}/{len(addresses)} alert email(s)")
        return sent
