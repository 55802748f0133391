"""Destruction policies and the engine that evaluates them on every store read.

A destruction policy decides how long a link stays reachable. Policies are
pydantic models discriminated on ``kind`` so the same types validate request
bodies, serialize into the ``links.policy`` JSON column and drive evaluation.

Policy Variants
===============
::
    DestructionPolicy
    ├─ Permanent     {"kind": "permanent"}
    ├─ TimeBomb      {"kind": "time_bomb", "deadline": "2030-01-01T00:00:00Z"}
    ├─ ClickFuse     {"kind": "click_fuse", "remaining": 3}
    └─ Kombinatio    {"kind": "kombinatio", "left": <policy>, "right": <policy>}

State Machine — evaluate(policy, now)
=====================================
::
    Permanent ─────────────────────────────► PERMIT
    TimeBomb   now < deadline ─────────────► PERMIT
               now ≥ deadline ─────────────► DENY + erase
    ClickFuse  remaining ≤ 0 ──────────────► DENY + erase
               remaining - 1 > 0 ──────────► PERMIT (consumed)
               remaining - 1 = 0 ──────────► PERMIT (consumed) + erase
    Kombinatio both permit ────────────────► PERMIT (erase if either erases)
               either denies ──────────────► DENY + erase

How to Use
===========
**Step 1 — Build a policy**::
    policy = Kombinatio(left=ClickFuse(remaining=1), right=TimeBomb(deadline=deadline))

**Step 2 — Evaluate it**::
    verdict = evaluate(policy, datetime.now(timezone.utc))
    if verdict.permitted and verdict.consumed:
        ...persist verdict.policy...
    if verdict.erase:
        ...erase the record...

**Step 3 — Persist it**::
    link.policy = dump_policy(verdict.policy)
    policy = load_policy(link.policy)

Key Behaviours
===============
- Evaluation is pure: no clock access and no I/O, the caller supplies ``now``.
- Policies are immutable; evaluation returns the post-read state.
- The read that exhausts a ClickFuse is still permitted.
- Kombinatio always evaluates both sides so both counters stay in step.
"""

import datetime
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from fuselink.exceptions import PolicySerializationError

__all__ = [
    "Permanent",
    "TimeBomb",
    "ClickFuse",
    "Kombinatio",
    "DestructionPolicy",
    "Verdict",
    "evaluate",
    "dump_policy",
    "load_policy",
]


class Permanent(BaseModel):
    """Never expires."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["permanent"] = "permanent"


class TimeBomb(BaseModel):
    """Valid until ``deadline``; the first read at or after it erases the link."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["time_bomb"] = "time_bomb"
    deadline: datetime.datetime

    @field_validator("deadline")
    @classmethod
    def ensure_aware(cls, v: datetime.datetime) -> datetime.datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=datetime.timezone.utc)
        return v


class ClickFuse(BaseModel):
    """Valid for ``remaining`` more reads."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["click_fuse"] = "click_fuse"
    remaining: int


class Kombinatio(BaseModel):
    """Valid only while both sub-policies are valid."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["kombinatio"] = "kombinatio"
    left: "DestructionPolicy"
    right: "DestructionPolicy"


DestructionPolicy = Annotated[
    Union[Permanent, TimeBomb, ClickFuse, Kombinatio],
    Field(discriminator="kind"),
]

Kombinatio.model_rebuild()

_policy_adapter: TypeAdapter[DestructionPolicy] = TypeAdapter(DestructionPolicy)


@dataclass(frozen=True)
class Verdict:
    """Outcome of evaluating a policy for one read.

    Attributes:
        permitted: Whether the read may return the destination.
        policy: Policy state after the read.
        erase: Whether the record must be securely erased.
        consumed: Whether the read changed counter state that must be persisted.
    """

    permitted: bool
    policy: DestructionPolicy
    erase: bool = False
    consumed: bool = False


def evaluate(policy: DestructionPolicy, now: datetime.datetime) -> Verdict:
    """Evaluate ``policy`` for a single read at ``now``.

    Args:
        policy: Current policy state of the record.
        now: Timezone-aware evaluation time, shared by every nested policy.

    Returns:
        Verdict: Whether the read is permitted, the new policy state and
        whether the record has to be erased.
    """
    if isinstance(policy, Permanent):
        return Verdict(permitted=True, policy=policy)

    if isinstance(policy, TimeBomb):
        if now >= policy.deadline:
            return Verdict(permitted=False, policy=policy, erase=True)
        return Verdict(permitted=True, policy=policy)

    if isinstance(policy, ClickFuse):
        if policy.remaining <= 0:
            return Verdict(permitted=False, policy=policy, erase=True)
        remaining = policy.remaining - 1
        return Verdict(
            permitted=True,
            policy=policy.model_copy(update={"remaining": remaining}),
            erase=remaining == 0,
            consumed=True,
        )

    if isinstance(policy, Kombinatio):
        left = evaluate(policy.left, now)
        right = evaluate(policy.right, now)
        return Verdict(
            permitted=left.permitted and right.permitted,
            policy=policy.model_copy(update={"left": left.policy, "right": right.policy}),
            erase=left.erase or right.erase,
            consumed=left.consumed or right.consumed,
        )

    raise TypeError(f"Unsupported destruction policy: {policy!r}")


def dump_policy(policy: DestructionPolicy) -> dict[str, Any]:
    return _policy_adapter.dump_python(policy, mode="json")


def load_policy(data: Any) -> DestructionPolicy:
    """Parse a stored policy document.

    Raises:
        PolicySerializationError: If the document is not a valid policy.
    """
    try:
        return _policy_adapter.validate_python(data)
    except ValidationError as exc:
        raise PolicySerializationError(f"Stored destruction policy is invalid: {exc}") from exc
