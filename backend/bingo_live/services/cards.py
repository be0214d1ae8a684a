"""Cards, tokens and win patterns.

A card is a 5x5 row-major grid of ints; column ``c`` holds values from
``COLUMN_RANGES[c]``. Drawing and marking always work on tokens such as
``"B-5"`` because the same integer may not be compared across columns.
"""

import random
import re
import string
import time
from typing import List, NamedTuple, Optional, Sequence

LETTERS = ('B', 'I', 'N', 'G', 'O')
COLUMN_RANGES = ((1, 15), (16, 30), (31, 45), (46, 60), (61, 75))
SIZE = 5
CENTER = (2, 2)
TOTAL_NUMBERS = 75

_TOKEN_RE = re.compile(r'([A-Z])-([1-9][0-9]*)')


class ParsedToken(NamedTuple):
    number: int
    column: int
    letter: str


def token_of(number: int, column: int) -> str:
    if not 0 <= column < SIZE:
        raise ValueError(f"column must be in 0..4, got {column}")
    return f"{LETTERS[column]}-{number}"


def parse_token(token) -> Optional[ParsedToken]:
    """Inverse of :func:`token_of`. Returns None for anything malformed."""
    if not isinstance(token, str):
        return None
    match = _TOKEN_RE.fullmatch(token)
    if not match:
        return None
    letter = match.group(1)
    if letter not in LETTERS:
        return None
    return ParsedToken(int(match.group(2)), LETTERS.index(letter), letter)


def is_valid_token(token) -> bool:
    parsed = parse_token(token)
    if parsed is None:
        return False
    low, high = COLUMN_RANGES[parsed.column]
    return low <= parsed.number <= high


def is_center(row: int, col: int) -> bool:
    return (row, col) == CENTER


def _is_grid(grid) -> bool:
    if not isinstance(grid, (list, tuple)) or len(grid) != SIZE:
        return False
    return all(isinstance(row, (list, tuple)) and len(row) == SIZE for row in grid)


def is_valid_pattern(grid) -> bool:
    """5x5 and at least one required cell besides the free centre."""
    if not _is_grid(grid):
        return False
    for r in range(SIZE):
        for c in range(SIZE):
            if is_center(r, c):
                continue
            if not isinstance(grid[r][c], bool):
                return False
    return any(grid[r][c] for r in range(SIZE) for c in range(SIZE) if not is_center(r, c))


def normalize_pattern(grid):
    return tuple(tuple(bool(cell) for cell in row) for row in grid)


def is_valid_card(card) -> bool:
    if not _is_grid(card):
        return False
    for c in range(SIZE):
        column = [card[r][c] for r in range(SIZE)]
        # bool is an int subclass; reject it explicitly
        if any(not isinstance(v, int) or isinstance(v, bool) for v in column):
            return False
        low, high = COLUMN_RANGES[c]
        if any(not low <= v <= high for v in column):
            return False
        if len(set(column)) != SIZE:
            return False
    return True


def normalize_card(card):
    return tuple(tuple(int(v) for v in row) for row in card)


def generate_card(rng: Optional[random.Random] = None):
    rng = rng or random
    columns = [rng.sample(range(low, high + 1), SIZE) for low, high in COLUMN_RANGES]
    return tuple(tuple(columns[c][r] for c in range(SIZE)) for r in range(SIZE))


def generate_cards(count: int, rng: Optional[random.Random] = None):
    return [generate_card(rng) for _ in range(count)]


def card_tokens(card) -> List[str]:
    """Every token on the card except the free centre."""
    return [
        token_of(card[r][c], c)
        for r in range(SIZE)
        for c in range(SIZE)
        if not is_center(r, c)
    ]


def marked_tokens(card, drawn: Sequence[str]) -> List[str]:
    drawn_set = set(drawn)
    return [t for t in card_tokens(card) if t in drawn_set]


# ---- Predefined patterns ----

def _grid(*rows: str):
    return tuple(tuple(ch == 'x' for ch in row) for row in rows)


PREDEFINED_PATTERNS = {
    'Línea Horizontal': (
        'Complete una línea horizontal completa',
        _grid('xxxxx', '.....', '.....', '.....', '.....'),
    ),
    'Línea Vertical': (
        'Complete una línea vertical completa',
        _grid('x....', 'x....', 'x....', 'x....', 'x....'),
    ),
    'Cruz': (
        'Complete una cruz en el centro del cartón',
        _grid('..x..', '..x..', 'xxxxx', '..x..', '..x..'),
    ),
    'Diagonal': (
        'Complete una diagonal completa',
        _grid('x....', '.x...', '..x..', '...x.', '....x'),
    ),
    'X': (
        'Complete una X completa',
        _grid('x...x', '.x.x.', '..x..', '.x.x.', 'x...x'),
    ),
    'Esquinas': (
        'Complete las cuatro esquinas',
        _grid('x...x', '.....', '.....', '.....', 'x...x'),
    ),
    'Marco': (
        'Complete todo el borde del cartón',
        _grid('xxxxx', 'x...x', 'x...x', 'x...x', 'xxxxx'),
    ),
    'Cartón Lleno': (
        'Complete todo el cartón',
        _grid('xxxxx', 'xxxxx', 'xxxxx', 'xxxxx', 'xxxxx'),
    ),
}

# Spoken when the host announces the modality
_ANNOUNCEMENTS = {
    'Línea Horizontal': 'Complete una línea horizontal completa en su cartón',
    'Línea Vertical': 'Complete una línea vertical completa en su cartón',
    'Cruz': 'Complete una cruz en el centro del cartón',
    'Diagonal': 'Complete una diagonal completa de esquina a esquina',
    'Cartón Lleno': 'Complete todo el cartón de bingo',
    'Esquinas': 'Complete las cuatro esquinas del cartón',
    'Marco': 'Complete todo el borde del cartón',
    'X': 'Complete una X completa en el cartón',
}


def pattern_description(name: str) -> str:
    return _ANNOUNCEMENTS.get(name, 'Complete el patrón indicado en su cartón')


# ---- Identifiers ----

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return '0'
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return ''.join(reversed(out))


def generate_session_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    return f"BINGO-{int(time.time() * 1000)}-{rng.randrange(1000):03d}"


def generate_player_id(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    suffix = ''.join(rng.choice(_BASE36) for _ in range(9))
    return f"player-{suffix}-{_to_base36(int(time.time() * 1000))}"
