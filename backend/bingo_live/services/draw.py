import random
from typing import Iterable, Optional

from .cards import COLUMN_RANGES, TOTAL_NUMBERS, token_of

ALL_TOKENS = tuple(
    token_of(number, column)
    for column, (low, high) in enumerate(COLUMN_RANGES)
    for number in range(low, high + 1)
)


def remaining_tokens(drawn: Iterable[str]):
    drawn_set = set(drawn)
    return [t for t in ALL_TOKENS if t not in drawn_set]


def next_token(drawn: Iterable[str], rng: Optional[random.Random] = None) -> Optional[str]:
    """Pick the next ball uniformly among those not yet drawn.

    Returns None once all 75 have been drawn; that is the normal end of the
    pool, not an error. Nothing is recorded here: the caller appends the
    token to the session history.
    """
    remaining = remaining_tokens(drawn)
    if not remaining:
        return None
    return (rng or random).choice(remaining)


def progress(drawn_count: int) -> int:
    return round(drawn_count / TOTAL_NUMBERS * 100)
