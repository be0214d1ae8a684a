from .cards import TOTAL_NUMBERS

# Typical number of balls for a game to finish
_AVERAGE_GAME_LENGTH = 25


def game_stats(drawn_count: int, duration_sec: int, player_count: int) -> dict:
    minutes = duration_sec / 60
    return {
        'efficiency': round(drawn_count / TOTAL_NUMBERS * 100),
        'numbers_per_minute': round(drawn_count / minutes, 1) if minutes > 0 else 0,
        'completion_rate': round(drawn_count / min(_AVERAGE_GAME_LENGTH, TOTAL_NUMBERS) * 100),
        'drawn_count': drawn_count,
        'player_count': player_count,
    }


def format_duration(seconds) -> str:
    if seconds is None:
        return None
    seconds = int(seconds)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
