"""Authoritative session state machine.

Every mutation of a session goes through :class:`GameService`. Each one
takes that session's lock, re-reads the session from the repository,
checks the transition is allowed, commits, and broadcasts the resulting
event before letting go of the lock. Two racing requests therefore see each
other's commits, and clients receive events in commit order.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from bingo_live.errors import (
    ConflictError,
    InvalidClaimError,
    InvalidPatternError,
    InvalidStateError,
    PlayerNotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from bingo_live.repository import (
    ACTIVE,
    FINISHED,
    PAUSED,
    PatternRecord,
    PlayerRecord,
    SessionRecord,
)
from . import cards
from .draw import next_token, progress
from .locks import SessionLocks
from .stats import game_stats
from .validator import check_win, confirmed_marks, winning_tokens

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 64
MAX_ANNOUNCEMENT_LENGTH = 280
CUSTOM_MODALITY = 'Personalizado'

# Fields a host may change through a generic state update
_UPDATABLE_FIELDS = {'voice_config', 'card_count', 'modality', 'pattern'}


class NullBroadcaster:
    def broadcast(self, session_id, event, payload):
        pass

    def close(self, session_id):
        pass


@dataclass(frozen=True)
class DrawOutcome:
    session: SessionRecord
    token: Optional[str]

    @property
    def exhausted(self) -> bool:
        return self.token is None


@dataclass(frozen=True)
class ClaimOutcome:
    session: SessionRecord
    player: PlayerRecord
    winning_tokens: Tuple[str, ...]


def _clean_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError('Player name is required')
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f'Player name must be at most {MAX_NAME_LENGTH} characters')
    return name


def _clean_card_count(value) -> int:
    if isinstance(value, bool):
        raise ValidationError('card_count must be a positive integer')
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError('card_count must be a positive integer')
    if count < 1:
        raise ValidationError('card_count must be a positive integer')
    return count


def _clean_voice_config(value):
    if value is not None and not isinstance(value, dict):
        raise ValidationError('voice_config must be an object')
    return value


class GameService:
    def __init__(self, repository, broadcaster=None, rng: Optional[random.Random] = None,
                 locks: Optional[SessionLocks] = None, clock=None):
        self.repo = repository
        self.broadcaster = broadcaster or NullBroadcaster()
        self.rng = rng or random.Random()
        self.locks = locks or SessionLocks()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ---- helpers ----

    def _load(self, session_id: str) -> SessionRecord:
        record = self.repo.get_session(session_id) if session_id else None
        if record is None:
            raise SessionNotFoundError(session_id)
        return record

    def _load_player(self, player_uuid: str, session_id: Optional[str] = None) -> PlayerRecord:
        player = self.repo.get_player(player_uuid) if player_uuid else None
        if player is None or (session_id is not None and player.session_id != session_id):
            raise PlayerNotFoundError(player_uuid)
        return player

    def _emit(self, session_id, event, payload):
        self.broadcaster.broadcast(session_id, event, payload)

    def _emit_roster(self, session_id):
        self._emit(session_id, 'players_updated', {
            'session_id': session_id,
            'players': self.roster(session_id),
        })

    def _finish(self, record: SessionRecord, reason: str, before_emit=None, **fields) -> SessionRecord:
        ended_at = self._clock()
        duration = None
        if record.started_at is not None:
            duration = max(0, int((ended_at - record.started_at).total_seconds()))
        player_count = len(self.repo.list_players(record.session_id))
        stats = game_stats(len(record.drawn_numbers), duration or 0, player_count)
        updated = self.repo.update_session(
            record.session_id,
            status=FINISHED,
            ended_at=ended_at,
            duration=duration,
            statistics=stats,
            **fields,
        )
        logger.info(f"[finish] session={record.session_id} reason={reason} drawn={len(record.drawn_numbers)}")
        if before_emit is not None:
            before_emit(updated)
        self._emit(record.session_id, 'game_finished', {
            'session_id': record.session_id,
            'reason': reason,
            'winner': updated.winner,
            'winner_uuid': updated.winner_uuid,
            'session': updated.to_dict(),
        })
        return updated

    # ---- patterns ----

    def list_patterns(self) -> List[PatternRecord]:
        patterns = [
            PatternRecord(name=name, grid=grid, description=description, predefined=True)
            for name, (description, grid) in cards.PREDEFINED_PATTERNS.items()
        ]
        patterns.extend(p for p in self.repo.list_patterns() if p.name not in cards.PREDEFINED_PATTERNS)
        return patterns

    def create_pattern(self, name, grid, description='') -> PatternRecord:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError('Pattern name is required')
        name = name.strip()
        if name in cards.PREDEFINED_PATTERNS:
            raise ConflictError(f"'{name}' is a predefined pattern")
        if not cards.is_valid_pattern(grid):
            raise InvalidPatternError()
        record = PatternRecord(
            name=name,
            grid=cards.normalize_pattern(grid),
            description=description if isinstance(description, str) else '',
        )
        return self.repo.create_pattern(record)

    def resolve_pattern(self, modality, pattern=None):
        """Turn a modality name (or a custom grid) into the grid to play."""
        if pattern is not None:
            if not cards.is_valid_pattern(pattern):
                raise InvalidPatternError()
            name = modality if isinstance(modality, str) and modality.strip() else CUSTOM_MODALITY
            return name.strip(), cards.normalize_pattern(pattern)
        if not isinstance(modality, str) or not modality.strip():
            raise ValidationError('modality is required')
        modality = modality.strip()
        if modality in cards.PREDEFINED_PATTERNS:
            return modality, cards.PREDEFINED_PATTERNS[modality][1]
        stored = self.repo.get_pattern_by_name(modality)
        if stored is None:
            raise InvalidPatternError(f"Unknown modality '{modality}'")
        return modality, stored.grid

    # ---- sessions ----

    def get_session(self, session_id: str) -> SessionRecord:
        return self._load(session_id)

    def list_sessions(self, active_only=False) -> List[SessionRecord]:
        return self.repo.list_sessions((ACTIVE, PAUSED) if active_only else None)

    def create_session(self, creator, modality, pattern=None, card_count=25, voice_config=None) -> SessionRecord:
        if not isinstance(creator, str) or not creator.strip():
            raise ValidationError('creator is required')
        modality, grid = self.resolve_pattern(modality, pattern)
        session_id = cards.generate_session_id(self.rng)
        while self.repo.get_session(session_id) is not None:
            session_id = cards.generate_session_id(self.rng)
        record = SessionRecord(
            session_id=session_id,
            creator=creator.strip(),
            modality=modality,
            pattern=grid,
            status=ACTIVE,
            card_count=_clean_card_count(card_count),
            voice_config=_clean_voice_config(voice_config),
            started_at=self._clock(),
        )
        created = self.repo.create_session(record)
        logger.info(f"[create] session={session_id} creator={created.creator} modality={modality}")
        return created

    def draw(self, session_id: str) -> DrawOutcome:
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status != ACTIVE:
                raise InvalidStateError('Numbers can only be drawn while the session is active', record.status)
            token = next_token(record.drawn_numbers, self.rng)
            if token is None:
                logger.info(f"[draw] session={session_id} pool exhausted")
                return DrawOutcome(self._finish(record, 'exhausted'), None)
            drawn = record.drawn_numbers + (token,)
            updated = self.repo.update_session(session_id, drawn_numbers=drawn)
            logger.info(f"[draw] session={session_id} token={token} count={len(drawn)}")
            self._emit(session_id, 'number_drawn', {
                'session_id': session_id,
                'number': token,
                'drawn_numbers': list(drawn),
                'count': len(drawn),
                'progress': progress(len(drawn)),
            })
            return DrawOutcome(updated, token)

    def pause(self, session_id: str) -> SessionRecord:
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status != ACTIVE:
                raise InvalidStateError('Only an active session can be paused', record.status)
            updated = self.repo.update_session(session_id, status=PAUSED)
            logger.info(f"[pause] session={session_id}")
            self._emit(session_id, 'game_paused', {'session_id': session_id, 'status': PAUSED})
            return updated

    def resume(self, session_id: str) -> SessionRecord:
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status != PAUSED:
                raise InvalidStateError('Only a paused session can be resumed', record.status)
            updated = self.repo.update_session(session_id, status=ACTIVE)
            logger.info(f"[resume] session={session_id}")
            self._emit(session_id, 'game_resumed', {'session_id': session_id, 'status': ACTIVE})
            return updated

    def finish(self, session_id: str) -> SessionRecord:
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status == FINISHED:
                raise InvalidStateError('Session already finished', record.status)
            return self._finish(record, 'host')

    def claim_bingo(self, session_id: str, player_uuid: str, marks=None) -> ClaimOutcome:
        """Validate a player's bingo against the server-side history.

        ``marks`` are what the client says it marked; when omitted the
        player's stored marks are used. Either way only marks that were
        really drawn count, and the card is the one stored for the player.
        """
        if marks is not None and not isinstance(marks, (list, tuple, set, frozenset)):
            raise ValidationError('marks must be a list of tokens')
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status != ACTIVE:
                raise InvalidStateError('Session is not active', record.status)
            player = self._load_player(player_uuid, session_id)
            claimed = player.marked if marks is None else [m for m in marks if isinstance(m, str)]
            confirmed = confirmed_marks(claimed, record.drawn_numbers)
            if not check_win(player.card, confirmed, record.pattern):
                logger.info(f"[claim-rejected] session={session_id} player={player_uuid}")
                raise InvalidClaimError()
            tokens = tuple(winning_tokens(player.card, record.pattern, confirmed))
            logger.info(f"[claim-accepted] session={session_id} player={player_uuid} name={player.name}")

            def announce_winner(finished):
                self._emit(session_id, 'bingo_winner', {
                    'session_id': session_id,
                    'player_uuid': player.uuid,
                    'player_name': player.name,
                    'card': [list(row) for row in player.card],
                    'winning_tokens': list(tokens),
                })

            updated = self._finish(record, 'winner', before_emit=announce_winner,
                                   winner=player.name, winner_uuid=player.uuid)
            return ClaimOutcome(updated, player, tokens)

    def update_state(self, session_id: str, updates) -> SessionRecord:
        if not isinstance(updates, dict) or not updates:
            raise ValidationError('No updates given')
        unknown = sorted(set(updates) - _UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError('These fields cannot be updated', details={'fields': unknown})
        fields = {}
        if 'voice_config' in updates:
            fields['voice_config'] = _clean_voice_config(updates['voice_config'])
        if 'card_count' in updates:
            fields['card_count'] = _clean_card_count(updates['card_count'])
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status == FINISHED:
                raise InvalidStateError('Session already finished', record.status)
            if 'modality' in updates or 'pattern' in updates:
                if record.drawn_numbers:
                    raise InvalidStateError('The pattern cannot change once drawing has started', record.status)
                fields['modality'], fields['pattern'] = self.resolve_pattern(
                    updates.get('modality', record.modality), updates.get('pattern'))
            updated = self.repo.update_session(session_id, **fields)
            logger.info(f"[update] session={session_id} fields={sorted(fields)}")
            self._emit(session_id, 'game_state_updated', updated.to_dict())
            return updated

    def announce(self, session_id: str, message) -> None:
        """Broadcast a host message ("la mesa pide ...")."""
        if not isinstance(message, str) or not message.strip():
            raise ValidationError('message is required')
        message = message.strip()[:MAX_ANNOUNCEMENT_LENGTH]
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status == FINISHED:
                raise InvalidStateError('Session already finished', record.status)
            self._emit(session_id, 'mesa_pide', {'session_id': session_id, 'message': message})

    def delete_session(self, session_id: str) -> None:
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status != FINISHED:
                raise InvalidStateError('Only a finished session can be deleted', record.status)
            self.repo.delete_session(session_id)
            logger.info(f"[delete] session={session_id}")
            self._emit(session_id, 'session_ended', {'session_id': session_id})
            self.broadcaster.close(session_id)

    # ---- players ----

    def get_player(self, player_uuid: str) -> PlayerRecord:
        return self._load_player(player_uuid)

    def roster(self, session_id: str):
        return [p.to_dict() for p in self.repo.list_players(session_id)]

    def publish_roster(self, session_id: str) -> None:
        with self.locks.hold(session_id):
            self._load(session_id)
            self._emit_roster(session_id)

    def candidate_cards(self, count: int):
        return cards.generate_cards(count, self.rng)

    def join_player(self, session_id: str, name, card=None, player_uuid=None) -> PlayerRecord:
        """Bind a player to a session with a confirmed card.

        A player already bound to this session gets the new card (the old
        one is discarded along with its marks). Without ``card`` a fresh
        one is generated.
        """
        if card is not None and not cards.is_valid_card(card):
            raise ValidationError('Invalid card')
        new_card = cards.normalize_card(card) if card is not None else cards.generate_card(self.rng)
        with self.locks.hold(session_id):
            record = self._load(session_id)
            if record.status == FINISHED:
                raise InvalidStateError('Session already finished', record.status)
            existing = self.repo.get_player(player_uuid) if player_uuid else None
            if existing is not None:
                if existing.session_id != session_id:
                    raise ConflictError('Player already belongs to another session',
                                        details={'session_id': existing.session_id})
                if record.drawn_numbers:
                    raise InvalidStateError('Cards are locked once drawing has started', record.status)
                fields = {'card': new_card, 'marked': (), 'connected': True}
                if name is not None:
                    fields['name'] = _clean_name(name)
                player = self.repo.update_player(existing.uuid, **fields)
                logger.info(f"[card] session={session_id} player={player.uuid} replaced card")
            else:
                if player_uuid is not None and (not isinstance(player_uuid, str) or not player_uuid.strip()):
                    raise ValidationError('Invalid player id')
                player = self.repo.create_player(PlayerRecord(
                    uuid=player_uuid or cards.generate_player_id(self.rng),
                    session_id=session_id,
                    name=_clean_name(name),
                    card=new_card,
                ))
                logger.info(f"[join] session={session_id} player={player.uuid} name={player.name}")
            self._emit_roster(session_id)
            return player

    def select_card(self, session_id: str, player_uuid, card, name=None) -> PlayerRecord:
        if card is None:
            raise ValidationError('card is required')
        if name is None and (not player_uuid or self.repo.get_player(player_uuid) is None):
            raise PlayerNotFoundError(player_uuid)
        return self.join_player(session_id, name, card=card, player_uuid=player_uuid)

    def update_player(self, player_uuid: str, name=None, marked=None) -> PlayerRecord:
        fields = {}
        if name is not None:
            fields['name'] = _clean_name(name)
        if marked is not None:
            if not isinstance(marked, (list, tuple)) or not all(isinstance(t, str) for t in marked):
                raise ValidationError('marked must be a list of tokens')
            fields['marked'] = tuple(dict.fromkeys(marked))
        if not fields:
            raise ValidationError('No updates given')
        session_id = self._load_player(player_uuid).session_id
        with self.locks.hold(session_id):
            record = self._load(session_id)
            player = self._load_player(player_uuid, session_id)
            if 'marked' in fields:
                if record.status == FINISHED:
                    raise InvalidStateError('Session already finished', record.status)
                on_card = set(cards.card_tokens(player.card))
                bad = [t for t in fields['marked'] if t not in on_card]
                if bad:
                    raise ValidationError('Tokens are not on this card', details={'tokens': bad})
            updated = self.repo.update_player(player_uuid, **fields)
            if 'name' in fields:
                self._emit_roster(session_id)
            return updated

    def mark_number(self, player_uuid: str, token, marked=True) -> PlayerRecord:
        if not isinstance(token, str):
            raise ValidationError('number must be a token such as "B-5"')
        session_id = self._load_player(player_uuid).session_id
        # Toggle against the current marks; the lock is re-entrant
        with self.locks.hold(session_id):
            player = self._load_player(player_uuid, session_id)
            if marked:
                tokens = list(player.marked) + [token]
            else:
                tokens = [t for t in player.marked if t != token]
            return self.update_player(player_uuid, marked=tokens)

    def set_connected(self, session_id: str, player_uuid: str, connected: bool) -> PlayerRecord:
        with self.locks.hold(session_id):
            self._load_player(player_uuid, session_id)
            player = self.repo.update_player(player_uuid, connected=bool(connected))
            logger.info(f"[presence] session={session_id} player={player_uuid} connected={bool(connected)}")
            self._emit_roster(session_id)
            return player
