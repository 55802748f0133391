"""Emoji identifier generation and allocation.

Identifiers are three symbols, each drawn from one of a fixed set of emoji
code-point ranges. Allocation is optimistic: sample, check the store, retry
on collision. The existence check and the later insert are not atomic, so the
caller also treats a primary-key violation on insert as a collision.

Flow Diagram — allocate()
=========================
::
    ┌─────────────┐
    │ Pick range  │◄──────────┐
    │ + code point│ ×3        │
    └──────┬──────┘           │
           ▼                  │
    ┌─────────────┐    taken  │
    │ exists in   ├───────────┘
    │ store?      │
    └──────┬──────┘
       free│
           ▼
    ┌─────────────┐
    │ return id    │
    └─────────────┘

Key Behaviours
===============
- A range is picked uniformly first, then a code point inside it.
- Ranges include unassigned code points; they are valid identifiers too.
- Custom aliases may also use any other Unicode emoji symbol. ASCII digits,
  "#" and "*" carry the Emoji property but are rejected.
- Attempts are bounded; running out raises IdentifierSpaceExhaustedError.
"""

import logging
import random

import regex

from fuselink.exceptions import IdentifierSpaceExhaustedError
from fuselink.store import LinkStore

__all__ = ["EMOJI_RANGES", "generate_identifier", "is_identifier", "IdentifierGenerator"]

logger = logging.getLogger("fuselink.identifiers")

EMOJI_RANGES: tuple[tuple[int, int], ...] = (
    (0x1F600, 0x1F64F),  # emoticons
    (0x1F300, 0x1F5FF),  # symbols & pictographs
    (0x1F680, 0x1F6FF),  # transport & map
    (0x1F900, 0x1F9FF),  # supplemental symbols & pictographs
    (0x2600, 0x26FF),  # miscellaneous symbols
)
DEFAULT_SYMBOL_COUNT = 3

EMOJI_SYMBOL = regex.compile(r"(?![0-9#*])\p{Emoji}")


def generate_identifier(rng: random.Random, length: int = DEFAULT_SYMBOL_COUNT) -> str:
    symbols = []
    for _ in range(length):
        start, end = EMOJI_RANGES[rng.randrange(len(EMOJI_RANGES))]
        symbols.append(chr(rng.randint(start, end)))
    return "".join(symbols)


def is_identifier(value: str, length: int = DEFAULT_SYMBOL_COUNT) -> bool:
    if len(value) != length:
        return False
    return all(_in_ranges(ch) or EMOJI_SYMBOL.fullmatch(ch) for ch in value)


def _in_ranges(symbol: str) -> bool:
    return any(start <= ord(symbol) <= end for start, end in EMOJI_RANGES)


class IdentifierGenerator:
    """Allocates identifiers that are free in the store at allocation time.

    Args:
        store: Store used for the existence check.
        max_attempts: Samples to try before giving up.
        length: Symbols per identifier.
        rng: Random source, ``random.SystemRandom`` unless a test injects one.
    """

    def __init__(
        self,
        store: LinkStore,
        max_attempts: int = 64,
        length: int = DEFAULT_SYMBOL_COUNT,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._max_attempts = max_attempts
        self._length = length
        self._rng = rng or random.SystemRandom()

    def candidate(self) -> str:
        return generate_identifier(self._rng, self._length)

    async def allocate(self) -> str:
        for attempt in range(1, self._max_attempts + 1):
            candidate = self.candidate()
            if not await self._store.exists(candidate):
                return candidate
            logger.debug(f"Identifier collision on attempt {attempt}: {candidate}")

        raise IdentifierSpaceExhaustedError(
            f"No free identifier found after {self._max_attempts} attempts"
        )
