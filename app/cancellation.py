"""
Cancellation and refund policy.

Rules are data: each tier says how many hours before the start a cancellation
must happen to earn its refund percentage. Tiers are evaluated top-down and the
first match wins. Operators replace the table through the CANCELLATION_POLICY
setting (a JSON list of tiers) without touching the engine.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from pydantic import BaseModel, Field, TypeAdapter

from app.window import to_utc

PASSED_REASON = "No refund - Booking time has already passed"
NO_RULE_REASON = "No refund applicable"


class CancellationPolicyRule(BaseModel):
    min_hours: float = Field(ge=0)
    max_hours: float | None = None
    refund_percentage: int = Field(ge=0, le=100)
    description: str

    def matches(self, hours_until_booking: float) -> bool:
        if hours_until_booking < self.min_hours:
            return False
        return self.max_hours is None or hours_until_booking < self.max_hours


DEFAULT_POLICY: list[CancellationPolicyRule] = [
    CancellationPolicyRule(
        min_hours=48,
        refund_percentage=100,
        description="Full refund - Cancelled more than 48 hours in advance",
    ),
    CancellationPolicyRule(
        min_hours=24,
        max_hours=48,
        refund_percentage=50,
        description="50% refund - Cancelled between 24-48 hours in advance",
    ),
    CancellationPolicyRule(
        min_hours=12,
        max_hours=24,
        refund_percentage=25,
        description="25% refund - Cancelled between 12-24 hours in advance",
    ),
    CancellationPolicyRule(
        min_hours=0,
        max_hours=12,
        refund_percentage=0,
        description="No refund - Cancelled less than 12 hours before booking",
    ),
]

_policy_adapter = TypeAdapter(list[CancellationPolicyRule])


def load_policy(raw: str | None) -> list[CancellationPolicyRule]:
    """Parse a JSON policy table, falling back to DEFAULT_POLICY when unset."""
    if not raw:
        return list(DEFAULT_POLICY)
    rules = _policy_adapter.validate_python(json.loads(raw))
    logger.info("Loaded cancellation policy with {} tiers", len(rules))
    return rules


@dataclass(frozen=True)
class RefundDecision:
    percentage: int
    reason: str


def calculate_refund(
    start_time: datetime,
    now: datetime,
    policy: list[CancellationPolicyRule] | None = None,
) -> RefundDecision:
    rules = DEFAULT_POLICY if policy is None else policy
    hours_until_booking = (to_utc(start_time) - to_utc(now)).total_seconds() / 3600

    if hours_until_booking < 0:
        return RefundDecision(0, PASSED_REASON)

    for rule in rules:
        if rule.matches(hours_until_booking):
            return RefundDecision(rule.refund_percentage, rule.description)

    return RefundDecision(0, NO_RULE_REASON)
