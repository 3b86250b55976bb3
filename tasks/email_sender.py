# tasks/email_sender.py
"""
Welcome email composition and delivery

Builds the fixed waitlist confirmation message and hands it to the current
MailTransport. Delivery is attempted once; callers decide what a failure means.
"""

import asyncio
import logging
import uuid
from email.message import EmailMessage
from email.utils import formatdate, parseaddr

from core.template_engine import SecureTemplateEngine
from core.transport import MailTransport, SendReceipt

logger = logging.getLogger(__name__)

WELCOME_SUBJECT = "Welcome to the TokenFlow Waiting List! 🚀"

WELCOME_TEMPLATE = """
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #e0e0e0; border-radius: 10px;">
  <h2 style="color: #3B82F6;">Welcome to {{ brand_name }}!</h2>
  <p>Hi there,</p>
  <p>Thanks for joining the waiting list for <strong>{{ brand_name }}</strong>. We're excited to have you on board!</p>
  <p>We'll notify you as soon as we launch. In the meantime, stay tuned for updates.</p>
  <br>
  <p>Best regards,<br>The {{ brand_name }} Team</p>
</div>
"""


class WelcomeMailer:
    """Composes and sends the waitlist confirmation message"""

    def __init__(self, from_address: str, brand_name: str = 'TokenFlow',
                 template_engine: SecureTemplateEngine = None):
        self.from_address = from_address
        self.brand_name = brand_name
        self.template_engine = template_engine or SecureTemplateEngine()

    def build_message(self, recipient_email: str) -> EmailMessage:
        rendered = self.template_engine.render_template(
            WELCOME_TEMPLATE,
            {'brand_name': self.brand_name, 'email': recipient_email}
        )

        domain = parseaddr(self.from_address)[1].rpartition('@')[2] or 'localhost'

        msg = EmailMessage()
        msg['Subject'] = WELCOME_SUBJECT
        msg['From'] = self.from_address
        msg['To'] = recipient_email
        msg['Date'] = formatdate(localtime=True)
        msg['Message-ID'] = f"<{uuid.uuid4()}@{domain}>"
        msg.set_content(rendered.text)
        msg.add_alternative(rendered.html, subtype='html')
        return msg

    def send_welcome(self, transport: MailTransport, recipient_email: str) -> SendReceipt:
        """
        Send the welcome message on the calling thread.

        Raises MailSendError when the transport cannot deliver.
        """
        msg = self.build_message(recipient_email)
        receipt = asyncio.run(transport.send(msg))

        logger.info(f"Message sent: {receipt.message_id}")
        if receipt.preview_url:
            logger.info(f"Preview URL: {receipt.preview_url}")
        return receipt
