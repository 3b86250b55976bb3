"""
Shared fixtures for the waitlist service tests.

Every test gets its own application bound to a SQLite file under tmp_path, with
the transport bootstrap disabled so no network calls are made. Tests that need
mail delivery assign a fake transport through the app's transport handle.
"""

from typing import List

import pytest
from flask import Flask

from app import create_app
from core.database_models import db
from core.errors import MailSendError
from core.transport import SendReceipt


class FakeTransport:
    """Records messages instead of talking SMTP"""

    def __init__(self, fail: bool = False, kind: str = 'sandbox'):
        self.fail = fail
        self.kind = kind
        self.sent: List = []

    async def send(self, message) -> SendReceipt:
        self.sent.append(message)
        if self.fail:
            raise MailSendError("SMTP delivery via smtp.test:587 failed: connection refused")
        return SendReceipt(
            message_id=message['Message-ID'],
            response='250 Accepted [STATUS=new MSGID=abc123]',
            preview_url='https://ethereal.email/message/abc123'
        )


@pytest.fixture
def app(tmp_path) -> Flask:
    """Application configured for testing with a throwaway database and static root"""
    (tmp_path / 'index.html').write_text('<h1>TokenFlow waitlist</h1>')

    app = create_app('testing', {
        'DATABASE_URL': f"sqlite:///{tmp_path / 'mailing_list.db'}",
        'STATIC_ROOT': str(tmp_path),
    })

    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def fake_transport(app) -> FakeTransport:
    transport = FakeTransport()
    app.transport_handle.set(transport)
    return transport


@pytest.fixture
def failing_transport(app) -> FakeTransport:
    transport = FakeTransport(fail=True)
    app.transport_handle.set(transport)
    return transport
