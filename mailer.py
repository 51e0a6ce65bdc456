"""Email invoices to clients over SMTP."""

import logging
import os
import smtplib
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Dict, Optional

import keyring
from keyring.errors import KeyringError

from errors import DeliveryFailure
from generate_pdf import invoice_filename

logger = logging.getLogger(__name__)

KEYRING_SERVICE = 'invoicer'
DEFAULT_SMTP_HOST = 'smtp.gmail.com'
DEFAULT_SMTP_PORT = 465


def get_smtp_config() -> Dict:
    """SMTP settings from the environment (.env is loaded at startup).

    If EMAIL_PASS is not set, the password is looked up in the OS keyring
    under the "invoicer" service and the EMAIL_USER account.
    """
    user = os.environ.get('EMAIL_USER', '').strip()
    password = os.environ.get('EMAIL_PASS')
    if user and not password:
        try:
            password = keyring.get_password(KEYRING_SERVICE, user)
        except KeyringError as e:
            logger.warning("Keyring lookup failed for %s: %s", user, e)
    return {
        'host': os.environ.get('SMTP_HOST', DEFAULT_SMTP_HOST),
        'port': int(os.environ.get('SMTP_PORT', DEFAULT_SMTP_PORT)),
        'user': user,
        'password': password,
    }


def build_message(invoice: Dict, pdf_path: Path, sender: str, settings: Optional[Dict] = None) -> MIMEMultipart:
    """Plain-text email with the invoice PDF attached."""
    freelancer = (settings or {}).get('freelancer') or {}
    business = freelancer.get('business') or freelancer.get('name') or sender
    client = invoice['client']
    number = invoice['invoice_number']

    msg = MIMEMultipart()
    msg['From'] = f'"{business}" <{sender}>'
    msg['To'] = client['email']
    msg['Subject'] = f"Invoice #{number} from {business}"
    msg.attach(MIMEText(
        f"Hi {client['name']},\n\nAttached is your invoice #{number}.\n\nThank you!",
        'plain', 'utf-8'
    ))

    with open(pdf_path, 'rb') as f:
        attachment = MIMEApplication(f.read(), _subtype='pdf')
    attachment.add_header('Content-Disposition', f'attachment; filename="{invoice_filename(number)}"')
    msg.attach(attachment)
    return msg


def deliver_invoice(invoice: Dict, pdf_path, settings: Optional[Dict] = None):
    """Send the invoice email or raise DeliveryFailure."""
    config = get_smtp_config()
    if not config['user'] or not config['password']:
        raise DeliveryFailure("Email credentials not configured (set EMAIL_USER and EMAIL_PASS)")
    if not invoice['client'].get('email'):
        raise DeliveryFailure("Client has no email address")
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise DeliveryFailure(f"Invoice PDF not found: {pdf_path}")

    msg = build_message(invoice, pdf_path, config['user'], settings)
    try:
        with smtplib.SMTP_SSL(config['host'], config['port'], timeout=30) as server:
            server.login(config['user'], config['password'])
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise DeliveryFailure(f"Failed to send email: {e}")


def send_invoice_email(invoice: Dict, pdf_path, settings: Optional[Dict] = None) -> bool:
    """Email an invoice PDF to the client. Returns True on success.

    Failures are logged, never raised; the invoice and its PDF stay as
    they are. Callers that need the reason use deliver_invoice.
    """
    try:
        deliver_invoice(invoice, pdf_path, settings)
    except DeliveryFailure as e:
        logger.error("Invoice #%s email failed: %s", invoice.get('invoice_number'), e.message)
        return False
    logger.info("Invoice #%s emailed to %s", invoice['invoice_number'], invoice['client']['email'])
    return True
