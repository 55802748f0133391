"""Identifier generation and allocation tests."""

import random
from unittest.mock import AsyncMock

import pytest

from fuselink.exceptions import IdentifierSpaceExhaustedError
from fuselink.identifiers import EMOJI_RANGES, IdentifierGenerator, generate_identifier, is_identifier
from fuselink.models import Link
from fuselink.policy import Permanent, dump_policy
from fuselink.store import LinkStore


def in_ranges(symbol: str) -> bool:
    return any(start <= ord(symbol) <= end for start, end in EMOJI_RANGES)


def test_generate_identifier_draws_three_symbols_from_ranges() -> None:
    rng = random.Random(42)
    for _ in range(500):
        identifier = generate_identifier(rng)
        assert len(identifier) == 3
        assert all(in_ranges(symbol) for symbol in identifier)


def test_generate_identifier_covers_every_range() -> None:
    rng = random.Random(3)
    hit = set()
    for _ in range(500):
        for symbol in generate_identifier(rng):
            hit.update(i for i, (start, end) in enumerate(EMOJI_RANGES) if start <= ord(symbol) <= end)
    assert hit == set(range(len(EMOJI_RANGES)))


@pytest.mark.parametrize("value", ["\U0001F600\U0001F680\u2615", "\U0001F30D\U0001F916\u26C4", "\U0001F600\U0001F600\U0001F600", "\u2764\u2728\u2705"])
def test_is_identifier_accepts_three_symbols(value: str) -> None:
    assert is_identifier(value)


@pytest.mark.parametrize("value", ["", "abc", "\U0001F600\U0001F680", "\U0001F600\U0001F680\u2615\U0001F30D", "\U0001F600a\u2615", "\U0001F600\U0001F680\u2700", "\U0001F6001\u2615", "#*\u2705"])
def test_is_identifier_rejects_other_values(value: str) -> None:
    assert not is_identifier(value)


@pytest.mark.asyncio
async def test_allocate_skips_identifiers_already_in_store(store: LinkStore) -> None:
    # Seed the store with the first candidates the seeded generator will produce.
    seeded_rng = random.Random(7)
    seeded = {generate_identifier(seeded_rng) for _ in range(5)}
    for link_id in seeded:
        await store.insert(Link(id=link_id, destination="https://example.com", policy=dump_policy(Permanent())))

    generator = IdentifierGenerator(store, rng=random.Random(7))
    allocated = await generator.allocate()

    assert allocated not in seeded
    assert not await store.exists(allocated)


@pytest.mark.asyncio
async def test_allocate_never_returns_an_existing_identifier(store: LinkStore) -> None:
    rng = random.Random(11)
    seeded = {generate_identifier(rng) for _ in range(20)}
    for link_id in seeded:
        await store.insert(Link(id=link_id, destination="https://seed.example", policy=dump_policy(Permanent())))

    generator = IdentifierGenerator(store, rng=random.Random(11))
    allocated = []
    for _ in range(30):
        link_id = await generator.allocate()
        assert link_id not in seeded
        assert link_id not in allocated
        await store.insert(Link(id=link_id, destination="https://new.example", policy=dump_policy(Permanent())))
        allocated.append(link_id)


@pytest.mark.asyncio
async def test_allocate_gives_up_after_max_attempts() -> None:
    store = AsyncMock(spec=LinkStore)
    store.exists = AsyncMock(return_value=True)
    generator = IdentifierGenerator(store, max_attempts=4, rng=random.Random(1))

    with pytest.raises(IdentifierSpaceExhaustedError):
        await generator.allocate()

    assert store.exists.await_count == 4
