import pytest
import requests
import resend
from resend.exceptions import ResendError

from conftest import FakeMailer
from krowz_contact import (
    ContactSubmission,
    MailerConfigurationError,
    MailerDeliveryError,
    MissingFieldsError,
    ResendMailer,
    parse_submission,
    relay_contact,
)

VALID = {"type": "user", "name": "A", "email": "a@b.com", "message": "hi"}


@pytest.mark.parametrize("field", ["type", "name", "email", "message"])
def test_parse_rejects_each_empty_field(field):
    payload = dict(VALID, **{field: ""})
    with pytest.raises(MissingFieldsError) as exc:
        parse_submission(payload)
    assert exc.value.missing == (field,)


def test_parse_handles_missing_payload():
    with pytest.raises(MissingFieldsError) as exc:
        parse_submission(None)
    assert exc.value.missing == ("type", "name", "email", "message")


def test_parse_checks_presence_not_format():
    submission = parse_submission(dict(VALID, type="partner", email="not-an-email"))
    assert submission.type == "partner"
    assert submission.email == "not-an-email"


@pytest.mark.parametrize("value", [[], {}, ["a"], 1, True])
def test_parse_treats_truthy_json_values_as_present(value):
    submission = parse_submission(dict(VALID, message=value))
    assert submission.message == str(value)


@pytest.mark.parametrize("value", [0, 0.0, False, None, float("nan")])
def test_parse_treats_falsy_json_values_as_missing(value):
    with pytest.raises(MissingFieldsError) as exc:
        parse_submission(dict(VALID, name=value))
    assert exc.value.missing == ("name",)


def test_subject_and_body():
    submission = ContactSubmission(**VALID)
    assert submission.subject == "[Krowz Contact] USER — A"
    assert submission.body == "Name: A\nEmail: a@b.com\nType: user\n\nMessage:\nhi"


def test_message_replies_to_submitter():
    mailer = ResendMailer(api_key="re_test")
    message = mailer.build_message(ContactSubmission(**VALID))
    assert message["from"] == "Krowz <no-reply@krowz.ca>"
    assert message["to"] == ["hello@krowz.ca"]
    assert message["reply_to"] == "a@b.com"


def test_destination_override_from_env(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_env")
    monkeypatch.setenv("CONTACT_TO_EMAIL", "team@example.com")
    mailer = ResendMailer.from_env()
    assert mailer.api_key == "re_env"
    assert mailer.to_email == "team@example.com"


def test_send_without_key_never_calls_provider(monkeypatch):
    def fail(params):
        raise AssertionError("provider must not be contacted")

    monkeypatch.setattr(resend.Emails, "send", fail)
    with pytest.raises(MailerConfigurationError, match="Missing RESEND_API_KEY"):
        ResendMailer(api_key=None).send(ContactSubmission(**VALID))


def test_send_returns_message_id(monkeypatch):
    captured = {}

    def fake_send(params):
        captured.update(params=params, api_key=resend.api_key)
        return {"id": "abc-123"}

    monkeypatch.setattr(resend, "api_key", None)
    monkeypatch.setattr(resend.Emails, "send", fake_send)
    message_id = ResendMailer(api_key="re_test").send(ContactSubmission(**VALID))

    assert message_id == "abc-123"
    assert captured["api_key"] == "re_test"
    assert captured["params"]["subject"] == "[Krowz Contact] USER — A"
    assert captured["params"]["reply_to"] == "a@b.com"


def test_send_surfaces_provider_message(monkeypatch):
    def reject(params):
        raise ResendError(
            code=422,
            error_type="validation_error",
            message="Invalid `to` field.",
            suggested_action="",
        )

    monkeypatch.setattr(resend.Emails, "send", reject)
    with pytest.raises(MailerDeliveryError, match="Invalid `to` field."):
        ResendMailer(api_key="re_test").send(ContactSubmission(**VALID))


def test_send_maps_transport_errors(monkeypatch):
    def boom(params):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(resend.Emails, "send", boom)
    with pytest.raises(MailerDeliveryError, match="connection refused"):
        ResendMailer(api_key="re_test").send(ContactSubmission(**VALID))


def test_relay_success():
    mailer = FakeMailer(message_id="m-1")
    assert relay_contact(VALID, mailer) == (200, {"ok": True, "id": "m-1"})
    assert mailer.sent == [ContactSubmission(**VALID)]


def test_relay_missing_fields_sends_nothing():
    mailer = FakeMailer()
    assert relay_contact(dict(VALID, name=""), mailer) == (400, {"error": "Missing fields"})
    assert mailer.sent == []


def test_relay_configuration_error():
    mailer = FakeMailer(error=MailerConfigurationError("Missing RESEND_API_KEY"))
    assert relay_contact(VALID, mailer) == (500, {"error": "Missing RESEND_API_KEY"})


def test_relay_unexpected_error_is_generic():
    mailer = FakeMailer(error=RuntimeError("secret detail"))
    assert relay_contact(VALID, mailer) == (500, {"error": "Server error"})
