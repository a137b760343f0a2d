"""
# Krowz Contact Relay

Helpers behind the contact section of the landing page.  A submission is
validated for presence only and then forwarded to the Resend transactional
email API so the Krowz team receives it with ``Reply-To`` pointing back at the
sender.  Nothing is stored: each submission lives for exactly one request.

The module is split into three small layers so the Flask routes stay thin:

* ``parse_submission`` turns a raw payload into a :class:`ContactSubmission`.
* :class:`ResendMailer` hands the message to the Resend SDK.
* ``relay_contact`` maps the outcome onto the JSON status/body pair returned by
  ``/api/contact`` and the HTML fallback form.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import requests
import resend
from resend.exceptions import ResendError

logger = logging.getLogger(__name__)

SENDER_ADDRESS = "Krowz <no-reply@krowz.ca>"
DEFAULT_CONTACT_TO_EMAIL = "hello@krowz.ca"

CONTACT_TYPES = ("business", "user")
REQUIRED_FIELDS = ("type", "name", "email", "message")


class ContactFormStatus(str, Enum):
    """Lifecycle of the contact form as shown on the landing page."""

    IDLE = "idle"
    SENDING = "sending"
    SENT = "sent"
    ERROR = "error"


class ContactError(Exception):
    """Base class for contact relay failures."""


class MissingFieldsError(ContactError):
    """Raised when a submission lacks one of the required fields."""

    def __init__(self, missing: tuple[str, ...]):
        super().__init__("Missing fields")
        self.missing = missing


class MailerConfigurationError(ContactError):
    """The email provider cannot be used because configuration is missing."""


class MailerDeliveryError(ContactError):
    """The email provider rejected the message or could not be reached."""


@dataclass(frozen=True)
class ContactSubmission:
    """A single contact form submission."""

    type: str
    name: str
    email: str
    message: str

    @property
    def subject(self) -> str:
        return f"[Krowz Contact] {self.type.upper()} — {self.name}"

    @property
    def body(self) -> str:
        return (
            f"Name: {self.name}\n"
            f"Email: {self.email}\n"
            f"Type: {self.type}\n\n"
            f"Message:\n{self.message}"
        )


def _is_blank(value: Any) -> bool:
    """Return True for the JSON values JavaScript treats as falsy."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)):
        # 0 and NaN; True is an int equal to 1 and stays present
        return value == 0 or value != value
    # Arrays and objects are truthy, even when empty
    return False


def parse_submission(payload: Mapping[str, Any] | None) -> ContactSubmission:
    """Build a submission from ``payload`` or raise :class:`MissingFieldsError`.

    Only presence is checked.  Formats (including the email address and the
    category) are left to the browser so the relay accepts exactly what the
    form sends.
    """
    payload = payload if isinstance(payload, Mapping) else {}
    missing = tuple(field for field in REQUIRED_FIELDS if _is_blank(payload.get(field)))
    if missing:
        raise MissingFieldsError(missing)
    return ContactSubmission(
        type=str(payload["type"]),
        name=str(payload["name"]),
        email=str(payload["email"]),
        message=str(payload["message"]),
    )


class ResendMailer:
    """Send contact submissions with the Resend SDK."""

    def __init__(
        self,
        api_key: str | None,
        to_email: str | None = None,
        sender: str = SENDER_ADDRESS,
    ):
        self.api_key = api_key
        self.to_email = to_email or DEFAULT_CONTACT_TO_EMAIL
        self.sender = sender

    @classmethod
    def from_env(cls) -> "ResendMailer":
        """Create a mailer from ``RESEND_API_KEY`` and ``CONTACT_TO_EMAIL``."""
        return cls(
            api_key=os.environ.get("RESEND_API_KEY"),
            to_email=os.environ.get("CONTACT_TO_EMAIL"),
        )

    def build_message(self, submission: ContactSubmission) -> dict[str, Any]:
        """Return the ``Emails.send`` parameters for ``submission``."""
        return {
            "from": self.sender,
            "to": [self.to_email],
            # Replies from the inbox go straight to the person who wrote in
            "reply_to": submission.email,
            "subject": submission.subject,
            "text": submission.body,
        }

    def send(self, submission: ContactSubmission) -> str | None:
        """Dispatch one email and return Resend's message id."""
        if not self.api_key:
            logger.error("Missing RESEND_API_KEY; contact email not sent.")
            raise MailerConfigurationError("Missing RESEND_API_KEY")

        resend.api_key = self.api_key
        try:
            result = resend.Emails.send(self.build_message(submission))
        except ResendError as exc:
            logger.error("Resend error: %s", exc)
            raise MailerDeliveryError(getattr(exc, "message", None) or str(exc)) from exc
        except requests.RequestException as exc:
            # The SDK talks to the API through requests; network failures surface as-is
            logger.error("Could not reach Resend: %s", exc)
            raise MailerDeliveryError(str(exc)) from exc

        logger.info("Resend send result: %s", result)
        return result.get("id") if isinstance(result, Mapping) else getattr(result, "id", None)


def relay_contact(payload: Mapping[str, Any] | None, mailer: Any) -> tuple[int, dict[str, Any]]:
    """Validate ``payload``, send it with ``mailer`` and return ``(status, body)``.

    Every failure is converted into a JSON error body here so callers never
    see an exception.
    """
    try:
        submission = parse_submission(payload)
    except MissingFieldsError as exc:
        logger.info("Contact submission rejected; missing %s", ", ".join(exc.missing))
        return 400, {"error": "Missing fields"}

    try:
        message_id = mailer.send(submission)
    except (MailerConfigurationError, MailerDeliveryError) as exc:
        return 500, {"error": str(exc)}
    except Exception:
        logger.exception("CONTACT EMAIL ERROR")
        return 500, {"error": "Server error"}

    return 200, {"ok": True, "id": message_id}
