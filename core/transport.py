# core/transport.py
"""
SMTP transport and the process-wide transport handle

A MailTransport wraps one set of SMTP credentials and sends messages through
aiosmtplib. The TransportHandle is written once by the bootstrapper and read
by every request; readers get either a fully built transport or None.
"""

import re
import asyncio
import logging
import threading
from dataclasses import dataclass
from email.message import EmailMessage
from enum import Enum
from typing import Any, Mapping, Optional

import aiosmtplib

from core.errors import MailSendError, TransportAlreadyAssignedError

logger = logging.getLogger(__name__)

# Ethereal replies "250 Accepted [STATUS=new MSGID=...]"
SANDBOX_MSGID_PATTERN = re.compile(r'MSGID=([^\s\]]+)')


@dataclass
class SMTPSettings:
    """SMTP options read from the application config"""
    host: Optional[str]
    port: int = 587
    secure: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    from_address: str = '"TokenFlow" <hello@tokenflow.xyz>'
    timeout: Optional[float] = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'SMTPSettings':
        return cls(
            host=config.get('EMAIL_HOST'),
            port=int(config.get('EMAIL_PORT') or 587),
            secure=bool(config.get('EMAIL_SECURE', False)),
            user=config.get('EMAIL_USER'),
            password=config.get('EMAIL_PASS'),
            from_address=config.get('EMAIL_FROM') or cls.from_address,
            timeout=config.get('EMAIL_SEND_TIMEOUT'),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.host and self.user and self.password)


@dataclass
class SendReceipt:
    """Outcome of an accepted send"""
    message_id: Optional[str]
    response: str
    preview_url: Optional[str] = None


class MailTransport:
    """Sends messages to a single SMTP server"""

    def __init__(self,
                 host: str,
                 port: int,
                 secure: bool,
                 user: Optional[str],
                 password: Optional[str],
                 timeout: Optional[float] = None,
                 sandbox: bool = False,
                 web_url: Optional[str] = None):
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.timeout = timeout
        self.sandbox = sandbox
        self.web_url = web_url

    @property
    def kind(self) -> str:
        return 'sandbox' if self.sandbox else 'production'

    def __repr__(self):
        return f"<MailTransport {self.kind} {self.host}:{self.port}>"

    async def send(self, message: EmailMessage) -> SendReceipt:
        """
        Deliver ``message`` and return the server's acceptance.

        Raises MailSendError on connection, authentication or delivery failure.
        """
        options = {'hostname': self.host, 'port': self.port, 'use_tls': self.secure}
        if self.timeout is not None:
            options['timeout'] = self.timeout
        smtp = aiosmtplib.SMTP(**options)

        try:
            await smtp.connect()
            if self.user and self.password:
                await smtp.login(self.user, self.password)
            errors, response = await smtp.send_message(message)
            await smtp.quit()
        except (aiosmtplib.SMTPException, OSError, ValueError, asyncio.TimeoutError) as e:
            if smtp.is_connected:
                smtp.close()
            raise MailSendError(f"SMTP delivery via {self.host}:{self.port} failed: {e}") from e

        if errors:
            raise MailSendError(f"Recipients refused: {', '.join(errors)}")

        return SendReceipt(
            message_id=message['Message-ID'],
            response=response,
            preview_url=self.preview_url(response)
        )

    def preview_url(self, response: str) -> Optional[str]:
        """Web preview of a message accepted by a sandbox server"""
        if not self.sandbox or not self.web_url or not response:
            return None
        match = SANDBOX_MSGID_PATTERN.search(response)
        if not match:
            return None
        return f"{self.web_url.rstrip('/')}/message/{match.group(1)}"


class TransportState(Enum):
    """Lifecycle of the transport handle"""
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class TransportHandle:
    """
    Single-assignment holder for the current transport.

    Exactly one of set() or fail() may be called over the handle's lifetime.
    get() never blocks unless given a timeout, and returns None while the
    handle is pending or after a failed bootstrap.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._resolved = threading.Event()
        self._transport: Optional[MailTransport] = None
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> TransportState:
        if not self._resolved.is_set():
            return TransportState.PENDING
        return TransportState.READY if self._transport is not None else TransportState.FAILED

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def set(self, transport: MailTransport) -> None:
        with self._lock:
            if self._resolved.is_set():
                raise TransportAlreadyAssignedError(f"Transport already {self.state.value}")
            self._transport = transport
            self._resolved.set()

    def fail(self, error: BaseException) -> None:
        with self._lock:
            if self._resolved.is_set():
                raise TransportAlreadyAssignedError(f"Transport already {self.state.value}")
            self._error = error
            self._resolved.set()

    def get(self, timeout: Optional[float] = None) -> Optional[MailTransport]:
        if timeout:
            self._resolved.wait(timeout)
        return self._transport

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until resolved; True once set() or fail() has run"""
        return self._resolved.wait(timeout)

    def describe(self) -> str:
        state = self.state
        if state is TransportState.READY:
            return f"ready ({self._transport.kind})"
        return state.value
