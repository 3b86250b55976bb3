# tasks/transport_setup.py
"""
Startup selection of the mail transport

With EMAIL_HOST, EMAIL_USER and EMAIL_PASS configured a production transport
is assigned immediately. Otherwise a disposable Ethereal test account is
provisioned in a background thread and assigned once it is available.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

import requests

from core.errors import SandboxProvisioningError, TransportAlreadyAssignedError
from core.transport import MailTransport, SMTPSettings, TransportHandle

logger = logging.getLogger(__name__)

ETHEREAL_API_URL = 'https://api.nodemailer.com/user'
ETHEREAL_WEB_URL = 'https://ethereal.email'


@dataclass
class SandboxAccount:
    """Credentials returned by the test-account service"""
    user: str
    password: str
    smtp_host: str
    smtp_port: int
    smtp_secure: bool
    web_url: str = ETHEREAL_WEB_URL


class SandboxProvisioner:
    """Creates throwaway SMTP accounts on Ethereal"""

    def __init__(self, api_url: str = ETHEREAL_API_URL, requestor: str = 'tokenflow-waitlist',
                 version: str = '1.0.0', timeout: float = 30.0):
        self.api_url = api_url
        self.requestor = requestor
        self.version = version
        self.timeout = timeout

    def provision(self) -> SandboxAccount:
        try:
            response = requests.post(
                self.api_url,
                json={'requestor': self.requestor, 'version': self.version},
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise SandboxProvisioningError(f"Test account request failed: {e}") from e

        if payload.get('status') != 'success':
            raise SandboxProvisioningError(payload.get('error') or 'Test account service refused the request')

        try:
            smtp = payload['smtp']
            return SandboxAccount(
                user=payload['user'],
                password=payload['pass'],
                smtp_host=smtp['host'],
                smtp_port=int(smtp['port']),
                smtp_secure=bool(smtp.get('secure', False)),
                web_url=payload.get('web') or ETHEREAL_WEB_URL
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SandboxProvisioningError(f"Malformed test account response: {e}") from e


class TransportBootstrapper:
    """Resolves the transport handle once per process"""

    def __init__(self, settings: SMTPSettings, handle: TransportHandle,
                 provisioner: Optional[SandboxProvisioner] = None):
        self.settings = settings
        self.handle = handle
        self.provisioner = provisioner or SandboxProvisioner()
        self._thread: Optional[threading.Thread] = None

    def build_production_transport(self) -> MailTransport:
        return MailTransport(
            host=self.settings.host,
            port=self.settings.port,
            secure=self.settings.secure,
            user=self.settings.user,
            password=self.settings.password,
            timeout=self.settings.timeout
        )

    def build_sandbox_transport(self) -> MailTransport:
        account = self.provisioner.provision()
        logger.info(f"Test email account created: {account.user}")
        return MailTransport(
            host=account.smtp_host,
            port=account.smtp_port,
            secure=account.smtp_secure,
            user=account.user,
            password=account.password,
            timeout=self.settings.timeout,
            sandbox=True,
            web_url=account.web_url
        )

    def run(self) -> None:
        """Select a transport and resolve the handle; failures leave mail disabled"""
        if self.settings.has_credentials:
            self.handle.set(self.build_production_transport())
            logger.info("Production email transporter ready")
            return

        logger.info("No production email credentials found. Setting up testing account...")
        try:
            transport = self.build_sandbox_transport()
        except SandboxProvisioningError as e:
            logger.error(f"Failed to create a testing account. {e}")
            self.handle.fail(e)
            return

        try:
            self.handle.set(transport)
        except TransportAlreadyAssignedError as e:
            logger.warning(f"Discarding sandbox transport: {e}")

    def start(self) -> Optional[threading.Thread]:
        """
        Production settings resolve synchronously; sandbox provisioning runs in
        a daemon thread so the caller can start serving right away.
        """
        if self.settings.has_credentials:
            self.run()
            return None

        self._thread = threading.Thread(target=self.run, name='transport-bootstrap', daemon=True)
        self._thread.start()
        return self._thread
