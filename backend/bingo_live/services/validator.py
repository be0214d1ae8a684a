from typing import FrozenSet, Iterable, List

from .cards import SIZE, is_center, token_of


def confirmed_marks(claimed: Iterable[str], drawn: Iterable[str]) -> FrozenSet[str]:
    """Marks that were actually announced. Anything else never counts."""
    return frozenset(claimed) & frozenset(drawn)


def required_tokens(card, pattern) -> List[str]:
    return [
        token_of(card[r][c], c)
        for r in range(SIZE)
        for c in range(SIZE)
        if pattern[r][c] and not is_center(r, c)
    ]


def check_win(card, marked: Iterable[str], pattern) -> bool:
    """True when every required cell of ``pattern`` is in ``marked``.

    The centre cell is free: it is satisfied whatever the pattern or the
    marks say.
    """
    marked_set = marked if isinstance(marked, (set, frozenset)) else set(marked)
    return all(token in marked_set for token in required_tokens(card, pattern))


def winning_tokens(card, pattern, marked: Iterable[str]) -> List[str]:
    marked_set = set(marked)
    return [t for t in required_tokens(card, pattern) if t in marked_set]
