from bingo_live.services.cards import PREDEFINED_PATTERNS, card_tokens
from bingo_live.services.validator import check_win, confirmed_marks, winning_tokens
from conftest import WINNING_ROW_CARD, WINNING_ROW_TOKENS

HORIZONTAL = PREDEFINED_PATTERNS['Línea Horizontal'][1]
FULL_CARD = PREDEFINED_PATTERNS['Cartón Lleno'][1]
CROSS = PREDEFINED_PATTERNS['Cruz'][1]


def test_horizontal_line_scenario():
    assert check_win(WINNING_ROW_CARD, set(WINNING_ROW_TOKENS), HORIZONTAL)
    assert not check_win(WINNING_ROW_CARD, set(WINNING_ROW_TOKENS[:4]), HORIZONTAL)


def test_full_card_needs_all_24_non_center_cells():
    tokens = card_tokens(WINNING_ROW_CARD)
    assert len(tokens) == 24
    assert check_win(WINNING_ROW_CARD, tokens, FULL_CARD)
    for missing in tokens:
        assert not check_win(WINNING_ROW_CARD, [t for t in tokens if t != missing], FULL_CARD)


def test_center_is_free_even_when_pattern_requires_it():
    # Cross requires row 2 and column 2, center included; N-32 is never marked
    marked = {'N-40', 'N-31', 'N-33', 'N-34', 'B-2', 'I-17', 'G-47', 'O-62'}
    assert check_win(WINNING_ROW_CARD, marked, CROSS)
    assert 'N-32' not in marked


def test_extra_marks_do_not_matter():
    marked = set(card_tokens(WINNING_ROW_CARD))
    assert check_win(WINNING_ROW_CARD, marked, HORIZONTAL)


def test_same_number_in_other_column_does_not_count():
    # "N-3" is not a real ball but shares the integer with B-3
    marked = {'N-3', 'I-20', 'N-40', 'G-50', 'O-70'}
    assert not check_win(WINNING_ROW_CARD, marked, HORIZONTAL)


def test_confirmed_marks_drop_undrawn_tokens():
    claimed = WINNING_ROW_TOKENS
    drawn = WINNING_ROW_TOKENS[:4] + ['O-75']
    confirmed = confirmed_marks(claimed, drawn)
    assert confirmed == frozenset(WINNING_ROW_TOKENS[:4])
    assert not check_win(WINNING_ROW_CARD, confirmed, HORIZONTAL)


def test_winning_tokens_lists_pattern_cells():
    marked = set(card_tokens(WINNING_ROW_CARD))
    assert winning_tokens(WINNING_ROW_CARD, HORIZONTAL, marked) == WINNING_ROW_TOKENS
