"""
# Krowz Redemption Verifier

Staff scan a customer's QR code and land on ``/r/<token>``.  Pressing
*Redeem* asks the ``consume_redemption`` procedure in Supabase whether the
token may be redeemed; that procedure owns every business rule (expiry,
monthly caps, single use).  This module only knows the procedure's contract:

* it is invoked with the token and nothing else;
* it answers ``{"ok": true}`` or ``{"ok": false, "reason": "<code>"}``.

The contract is expressed as :class:`RedemptionGateway` so the Flask routes
and the tests can swap the Supabase implementation for a double.  The result
of pressing *Redeem* is modelled as a :class:`RedemptionState` which can only
take the shapes the verifier page knows how to render.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

RPC_NAME = "consume_redemption"
SERVER_ERROR = "server_error"

# Staff-facing text for each reason code returned by the procedure
REASON_TEXT = {
    "not_found": "Invalid code.",
    "expired": "This QR code expired.",
    "already_redeemed": "Already redeemed.",
    "limit_monthly_reached": "Monthly limit reached for this user.",
    "limit_merchant_monthly_reached": "Monthly limit reached for this restaurant (3).",
    SERVER_ERROR: "Server error. Try again.",
}
DEFAULT_REASON_TEXT = "Denied."


def reason_text(reason: str | None) -> str:
    """Return the message shown to staff for a denial ``reason``."""
    return REASON_TEXT.get(reason, DEFAULT_REASON_TEXT) if isinstance(reason, str) else DEFAULT_REASON_TEXT


class RedemptionTransportError(Exception):
    """The remote procedure could not be called or did not answer."""


class RedemptionConfigurationError(RedemptionTransportError):
    """Supabase credentials are missing so no call can be made."""


@dataclass(frozen=True)
class RedemptionOutcome:
    """The procedure's answer: approved, or denied with a reason code."""

    ok: bool
    reason: str | None = None

    @classmethod
    def approved(cls) -> "RedemptionOutcome":
        return cls(ok=True)

    @classmethod
    def denied(cls, reason: str | None) -> "RedemptionOutcome":
        return cls(ok=False, reason=reason)

    @classmethod
    def from_result(cls, data: Any) -> "RedemptionOutcome":
        """Interpret the raw JSON returned by the procedure."""
        if not isinstance(data, dict):
            logger.error("Unexpected %s result: %r", RPC_NAME, data)
            return cls.denied(SERVER_ERROR)
        if data.get("ok") is True:
            return cls.approved()
        reason = data.get("reason")
        return cls.denied(reason if isinstance(reason, str) else None)


class RedemptionPhase(str, Enum):
    """Phases of the verifier page."""

    IDLE = "idle"
    # Only ever visible in the browser while the POST is outstanding
    IN_FLIGHT = "in_flight"
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(frozen=True)
class RedemptionState:
    """What the verifier page should show."""

    phase: RedemptionPhase = RedemptionPhase.IDLE
    reason: str | None = None

    def __post_init__(self):
        if self.phase is RedemptionPhase.DENIED:
            if self.reason is None:
                raise ValueError("A denied state needs a reason")
        elif self.reason is not None:
            raise ValueError(f"{self.phase.value} state cannot carry a reason")

    @classmethod
    def idle(cls) -> "RedemptionState":
        return cls(RedemptionPhase.IDLE)

    @classmethod
    def in_flight(cls) -> "RedemptionState":
        return cls(RedemptionPhase.IN_FLIGHT)

    @classmethod
    def approved(cls) -> "RedemptionState":
        return cls(RedemptionPhase.APPROVED)

    @classmethod
    def denied(cls, reason: str) -> "RedemptionState":
        return cls(RedemptionPhase.DENIED, reason)

    @classmethod
    def from_outcome(cls, outcome: RedemptionOutcome) -> "RedemptionState":
        if outcome.ok:
            return cls.approved()
        # An unknown or absent reason still renders, as "Denied."
        return cls.denied(outcome.reason or "")

    @property
    def resolved(self) -> bool:
        return self.phase in (RedemptionPhase.APPROVED, RedemptionPhase.DENIED)

    @property
    def headline(self) -> str | None:
        if self.phase is RedemptionPhase.APPROVED:
            return "APPROVED"
        if self.phase is RedemptionPhase.DENIED:
            return "DENIED"
        return None

    @property
    def message(self) -> str | None:
        if self.phase is RedemptionPhase.APPROVED:
            return "Redemption recorded."
        if self.phase is RedemptionPhase.DENIED:
            return reason_text(self.reason)
        return None


class RedemptionGateway(ABC):
    """Remote contract: consume a token and report whether it was accepted."""

    @abstractmethod
    def consume(self, token: str) -> RedemptionOutcome:
        """Redeem ``token``; raise :class:`RedemptionTransportError` on failure."""


class SupabaseRedemptionGateway(RedemptionGateway):
    """Call ``consume_redemption`` through the Supabase client."""

    def __init__(self, client: Any = None, url: str | None = None, key: str | None = None):
        self._client = client
        self.url = url
        self.key = key

    @classmethod
    def from_env(cls) -> "SupabaseRedemptionGateway":
        """Create a gateway from ``SUPABASE_URL`` and ``SUPABASE_ANON_KEY``."""
        return cls(
            url=os.environ.get("SUPABASE_URL"),
            key=os.environ.get("SUPABASE_ANON_KEY"),
        )

    def get_client(self):
        """Return the Supabase client, creating it on first use."""
        if self._client is None:
            if not self.url or not self.key:
                raise RedemptionConfigurationError("Supabase URL/Key not configured. See .env")
            from supabase import create_client

            self._client = create_client(self.url, self.key)
        return self._client

    def consume(self, token: str) -> RedemptionOutcome:
        client = self.get_client()
        try:
            response = client.rpc(RPC_NAME, {"p_token": token}).execute()
        except Exception as exc:
            raise RedemptionTransportError(str(exc)) from exc
        return RedemptionOutcome.from_result(response.data)


def redeem(gateway: RedemptionGateway, token: str | None) -> RedemptionState:
    """Press *Redeem* for ``token`` and return the state to render.

    Remote failures never escape: they become a ``server_error`` denial so the
    staff member always reaches a terminal state.
    """
    if not token or not isinstance(token, str):
        return RedemptionState.idle()

    try:
        outcome = gateway.consume(token)
    except RedemptionTransportError as exc:
        logger.error("%s error: %s", RPC_NAME, exc)
        return RedemptionState.denied(SERVER_ERROR)
    except Exception:
        logger.exception("%s failed unexpectedly", RPC_NAME)
        return RedemptionState.denied(SERVER_ERROR)

    if not outcome.ok:
        logger.info("Redemption denied: %s", outcome.reason)
    return RedemptionState.from_outcome(outcome)
