"""
Assignment generator for a single draw.

A draw maps every participant (giver) to exactly one other participant
(receiver) so that the receivers form a permutation of the roster with no
fixed points.

The default "incremental" strategy walks the roster in order and picks each
receiver uniformly from the receivers still available, retrying a bounded
number of times when it picks the giver. If a giver runs out of attempts
(typically the last giver, when the only receiver left is themself) the whole
partial result is thrown away and a shuffled cycle is used instead.

The result is NOT uniform over all derangements:
  - early picks constrain later ones, so some derangements are likelier than
    others;
  - the fallback only ever produces a single n-cycle.
That is accepted for a gift exchange. Pass strategy="rejection" to sample
uniformly (reshuffle until there is no fixed point); its running time is
unbounded in theory, but for n >= 3 it needs about e ~ 2.7 shuffles on average.
"""
from __future__ import annotations

import logging
import random
from collections import Counter
from typing import Hashable, NamedTuple, Protocol, Sequence


logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 3
DEFAULT_MAX_ATTEMPTS = 100
STRATEGIES = ("incremental", "rejection")


class DrawError(RuntimeError):
    pass


class InsufficientParticipants(DrawError):
    pass


class InvalidRoster(DrawError):
    pass


class InternalInvariantViolation(DrawError):
    """A produced assignment set broke an invariant. This is a bug, not bad input."""


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...

    def shuffle(self, x: list) -> None: ...


class Assignment(NamedTuple):
    giver: Hashable
    receiver: Hashable


def validate_roster(roster: Sequence[Hashable]) -> list[Hashable]:
    """Return the roster as a list, or raise before any randomness is used."""
    people = list(roster)
    try:
        counts = Counter(people)
    except TypeError as e:
        raise InvalidRoster("Participant identifiers must be hashable.") from e

    duplicates = sorted(repr(p) for p, c in counts.items() if c > 1)
    if duplicates:
        raise InvalidRoster(f"Duplicate participants in roster: {', '.join(duplicates)}")

    if len(people) < MIN_PARTICIPANTS:
        raise InsufficientParticipants(
            f"Need at least {MIN_PARTICIPANTS} participants to draw, got {len(people)}."
        )
    return people


def validate_assignments(roster: Sequence[Hashable], pairs: Sequence[Assignment]) -> None:
    issues = []

    if len(pairs) != len(roster):
        issues.append(f"expected {len(roster)} assignments, got {len(pairs)}")

    self_pairs = [p.giver for p in pairs if p.giver == p.receiver]
    if self_pairs:
        issues.append(f"self assignments for {self_pairs!r}")

    expected = Counter(roster)
    if Counter(p.giver for p in pairs) != expected:
        issues.append("givers do not match the roster")
    if Counter(p.receiver for p in pairs) != expected:
        issues.append("receivers do not match the roster")

    if issues:
        raise InternalInvariantViolation("Assignment verification failed; " + "; ".join(issues))


def as_mapping(pairs: Sequence[Assignment]) -> dict:
    return {p.giver: p.receiver for p in pairs}


def _incremental(people: list, rng: RandomSource, max_attempts: int) -> list[Assignment] | None:
    available = people[:]
    pairs: list[Assignment] = []

    for giver in people:
        for _ in range(max_attempts):
            idx = rng.randrange(len(available))
            if available[idx] != giver:
                pairs.append(Assignment(giver, available.pop(idx)))
                break
        else:
            logger.debug("Retry budget of %s exhausted for giver %r", max_attempts, giver)
            return None

    return pairs


def _cyclic(people: list, rng: RandomSource) -> list[Assignment]:
    shuffled = people[:]
    rng.shuffle(shuffled)
    n = len(shuffled)
    receivers = [shuffled[(i + 1) % n] for i in range(n)]

    # Shift-by-one over distinct ids has no fixed point; repair anyway.
    for i in range(n):
        if receivers[i] == shuffled[i]:
            j = (i + 2) % n
            receivers[i], receivers[j] = receivers[j], receivers[i]

    by_giver = dict(zip(shuffled, receivers))
    return [Assignment(g, by_giver[g]) for g in people]


def _rejection(people: list, rng: RandomSource) -> list[Assignment]:
    receivers = people[:]
    while True:
        rng.shuffle(receivers)
        if all(g != r for g, r in zip(people, receivers)):
            return [Assignment(g, r) for g, r in zip(people, receivers)]


def generate(
    roster: Sequence[Hashable],
    rng: RandomSource | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    strategy: str = "incremental",
) -> list[Assignment]:
    """
    Draw one assignment set for `roster`.

    Returns pairs in roster order. Raises InsufficientParticipants or
    InvalidRoster for bad input, InternalInvariantViolation if the result
    fails verification.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown draw strategy: {strategy!r}")
    if max_attempts < 0:
        raise ValueError("max_attempts must be >= 0")

    people = validate_roster(roster)
    rng = rng if rng is not None else random.Random()

    if strategy == "rejection":
        pairs = _rejection(people, rng)
    else:
        pairs = _incremental(people, rng, max_attempts)
        if pairs is None:
            logger.debug("Falling back to cyclic draw for %s participants", len(people))
            pairs = _cyclic(people, rng)

    try:
        validate_assignments(people, pairs)
    except InternalInvariantViolation:
        logger.critical("Draw produced an invalid assignment set (strategy=%s, n=%s)", strategy, len(people))
        raise

    return pairs
