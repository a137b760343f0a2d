"""Pytest fixtures and test doubles for the Krowz site."""

import pytest

from krowz_app import app as flask_app
from krowz_redemption import RedemptionGateway, RedemptionOutcome


class FakeMailer:
    """Records submissions instead of emailing them."""

    def __init__(self, message_id="email_123", error=None):
        self.message_id = message_id
        self.error = error
        self.sent = []

    def send(self, submission):
        if self.error is not None:
            raise self.error
        self.sent.append(submission)
        return self.message_id


class FakeRedemptionGateway(RedemptionGateway):
    """Answers every token with a scripted result."""

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else {"ok": True}
        self.error = error
        self.calls = []

    def consume(self, token):
        self.calls.append(token)
        if self.error is not None:
            raise self.error
        return RedemptionOutcome.from_result(self.result)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def gateway():
    return FakeRedemptionGateway()


@pytest.fixture
def app(mailer, gateway):
    flask_app.config.update(
        TESTING=True,
        WTF_CSRF_ENABLED=False,
        CONTACT_MAILER=mailer,
        REDEMPTION_GATEWAY=gateway,
    )
    yield flask_app
    flask_app.config.update(
        TESTING=False,
        WTF_CSRF_ENABLED=True,
        CONTACT_MAILER=None,
        REDEMPTION_GATEWAY=None,
    )


@pytest.fixture
def client(app):
    return app.test_client()
