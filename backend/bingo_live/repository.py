"""Persistence boundary for sessions, players and patterns.

The game engine only talks to :class:`Repository`. ``SqlRepository`` keeps
everything in the Flask-SQLAlchemy models; ``MemoryRepository`` is a
process-local store used by the tests and by ``REPOSITORY_BACKEND=memory``.
Updates are last-write-wins per entity key.
"""

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from bingo_live.errors import ConflictError
from bingo_live.services.stats import format_duration

ACTIVE = 'active'
PAUSED = 'paused'
FINISHED = 'finished'


def _iso(value: Optional[datetime]):
    return value.isoformat() if value else None


def _as_utc(value: Optional[datetime]):
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _grid_list(grid):
    return [list(row) for row in grid] if grid is not None else None


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    creator: str
    modality: str
    pattern: Tuple[Tuple[bool, ...], ...]
    status: str = ACTIVE
    card_count: int = 25
    voice_config: Optional[dict] = None
    drawn_numbers: Tuple[str, ...] = ()
    winner: Optional[str] = None
    winner_uuid: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration: Optional[int] = None
    statistics: Optional[dict] = None

    def to_dict(self):
        return {
            'session_id': self.session_id,
            'creator': self.creator,
            'status': self.status,
            'modality': self.modality,
            'pattern': _grid_list(self.pattern),
            'card_count': self.card_count,
            'voice_config': self.voice_config,
            'drawn_numbers': list(self.drawn_numbers),
            'winner': self.winner,
            'winner_uuid': self.winner_uuid,
            'started_at': _iso(self.started_at),
            'ended_at': _iso(self.ended_at),
            'duration': self.duration,
            'duration_display': format_duration(self.duration),
            'statistics': self.statistics,
        }


@dataclass(frozen=True)
class PlayerRecord:
    uuid: str
    session_id: str
    name: str
    card: Tuple[Tuple[int, ...], ...]
    marked: Tuple[str, ...] = ()
    connected: bool = True

    def to_dict(self):
        return {
            'uuid': self.uuid,
            'session_id': self.session_id,
            'name': self.name,
            'card': _grid_list(self.card),
            'marked': list(self.marked),
            'connected': self.connected,
        }


@dataclass(frozen=True)
class PatternRecord:
    name: str
    grid: Tuple[Tuple[bool, ...], ...]
    description: str = ''
    predefined: bool = False

    def to_dict(self):
        return {
            'name': self.name,
            'description': self.description,
            'pattern': _grid_list(self.grid),
            'predefined': self.predefined,
        }


class Repository:
    """Key-indexed store for the three entities the engine persists."""

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        raise NotImplementedError

    def list_sessions(self, statuses=None) -> List[SessionRecord]:
        raise NotImplementedError

    def create_session(self, record: SessionRecord) -> SessionRecord:
        raise NotImplementedError

    def update_session(self, session_id: str, **fields) -> Optional[SessionRecord]:
        raise NotImplementedError

    def delete_session(self, session_id: str) -> bool:
        """Remove the session and every player bound to it."""
        raise NotImplementedError

    def get_player(self, uuid: str) -> Optional[PlayerRecord]:
        raise NotImplementedError

    def list_players(self, session_id: str) -> List[PlayerRecord]:
        raise NotImplementedError

    def create_player(self, record: PlayerRecord) -> PlayerRecord:
        raise NotImplementedError

    def update_player(self, uuid: str, **fields) -> Optional[PlayerRecord]:
        raise NotImplementedError

    def get_pattern_by_name(self, name: str) -> Optional[PatternRecord]:
        raise NotImplementedError

    def list_patterns(self) -> List[PatternRecord]:
        raise NotImplementedError

    def create_pattern(self, record: PatternRecord) -> PatternRecord:
        raise NotImplementedError


class MemoryRepository(Repository):
    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, SessionRecord] = {}
        self._players: Dict[str, PlayerRecord] = {}
        self._patterns: Dict[str, PatternRecord] = {}

    def get_session(self, session_id):
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self, statuses=None):
        with self._lock:
            records = list(self._sessions.values())
        if statuses:
            records = [r for r in records if r.status in statuses]
        return sorted(records, key=lambda r: r.started_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    def create_session(self, record):
        with self._lock:
            if record.started_at is None:
                record = replace(record, started_at=datetime.now(timezone.utc))
            self._sessions[record.session_id] = record
            return record

    def update_session(self, session_id, **fields):
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None:
                return None
            updated = self._sessions[session_id] = replace(current, **fields)
            return updated

    def delete_session(self, session_id):
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
            for uuid in [u for u, p in self._players.items() if p.session_id == session_id]:
                del self._players[uuid]
            return True

    def get_player(self, uuid):
        with self._lock:
            return self._players.get(uuid)

    def list_players(self, session_id):
        with self._lock:
            return [p for p in self._players.values() if p.session_id == session_id]

    def create_player(self, record):
        with self._lock:
            self._players[record.uuid] = record
            return record

    def update_player(self, uuid, **fields):
        with self._lock:
            current = self._players.get(uuid)
            if current is None:
                return None
            updated = self._players[uuid] = replace(current, **fields)
            return updated

    def get_pattern_by_name(self, name):
        with self._lock:
            return self._patterns.get(name)

    def list_patterns(self):
        with self._lock:
            return list(self._patterns.values())

    def create_pattern(self, record):
        with self._lock:
            if record.name in self._patterns:
                raise ConflictError(f"Pattern '{record.name}' already exists")
            self._patterns[record.name] = record
            return record


# Fields whose values are tuples in records and JSON lists in the models
_SESSION_JSON_GRIDS = {'pattern'}
_PLAYER_JSON_GRIDS = {'card'}


def _to_column(name, value, grids):
    if name in grids:
        return _grid_list(value)
    if isinstance(value, tuple):
        return list(value)
    return value


class SqlRepository(Repository):
    """Repository backed by the Flask-SQLAlchemy models.

    Must be used inside an application context. Reads use
    ``populate_existing`` so a lock holder always sees the latest commit.
    """

    def __init__(self, db):
        self.db = db

    # -- converters --

    @staticmethod
    def _session_record(model) -> SessionRecord:
        return SessionRecord(
            session_id=model.session_id,
            creator=model.creator,
            modality=model.modality,
            pattern=tuple(tuple(bool(c) for c in row) for row in model.pattern),
            status=model.status,
            card_count=model.card_count,
            voice_config=model.voice_config,
            drawn_numbers=tuple(model.drawn_numbers or ()),
            winner=model.winner,
            winner_uuid=model.winner_uuid,
            started_at=_as_utc(model.started_at),
            ended_at=_as_utc(model.ended_at),
            duration=model.duration,
            statistics=model.statistics,
        )

    @staticmethod
    def _player_record(model) -> PlayerRecord:
        return PlayerRecord(
            uuid=model.uuid,
            session_id=model.session_id,
            name=model.name,
            card=tuple(tuple(int(v) for v in row) for row in model.card),
            marked=tuple(model.marked or ()),
            connected=bool(model.connected),
        )

    @staticmethod
    def _pattern_record(model) -> PatternRecord:
        return PatternRecord(
            name=model.name,
            grid=tuple(tuple(bool(c) for c in row) for row in model.grid),
            description=model.description or '',
            predefined=bool(model.predefined),
        )

    def _session_model(self, session_id):
        from bingo_live.models import GameSession
        return GameSession.query.filter_by(session_id=session_id).populate_existing().first()

    def _player_model(self, uuid):
        from bingo_live.models import Player
        return Player.query.filter_by(uuid=uuid).populate_existing().first()

    # -- sessions --

    def get_session(self, session_id):
        model = self._session_model(session_id)
        return self._session_record(model) if model else None

    def list_sessions(self, statuses=None):
        from bingo_live.models import GameSession
        query = GameSession.query
        if statuses:
            query = query.filter(GameSession.status.in_(list(statuses)))
        return [self._session_record(m) for m in query.order_by(GameSession.started_at.desc()).all()]

    def create_session(self, record):
        from bingo_live.models import GameSession
        values = {k: _to_column(k, v, _SESSION_JSON_GRIDS) for k, v in vars(record).items() if v is not None}
        model = GameSession(**values)
        self.db.session.add(model)
        self.db.session.commit()
        return self._session_record(model)

    def update_session(self, session_id, **fields):
        model = self._session_model(session_id)
        if model is None:
            return None
        for key, value in fields.items():
            setattr(model, key, _to_column(key, value, _SESSION_JSON_GRIDS))
        self.db.session.add(model)
        self.db.session.commit()
        return self._session_record(model)

    def delete_session(self, session_id):
        model = self._session_model(session_id)
        if model is None:
            return False
        try:
            # players go with it through the relationship cascade
            self.db.session.delete(model)
            self.db.session.commit()
        except Exception:
            self.db.session.rollback()
            raise
        return True

    # -- players --

    def get_player(self, uuid):
        model = self._player_model(uuid)
        return self._player_record(model) if model else None

    def list_players(self, session_id):
        from bingo_live.models import Player
        models = Player.query.filter_by(session_id=session_id).populate_existing().order_by(Player.id).all()
        return [self._player_record(m) for m in models]

    def create_player(self, record):
        from bingo_live.models import Player
        values = {k: _to_column(k, v, _PLAYER_JSON_GRIDS) for k, v in vars(record).items()}
        model = Player(**values)
        self.db.session.add(model)
        self.db.session.commit()
        return self._player_record(model)

    def update_player(self, uuid, **fields):
        model = self._player_model(uuid)
        if model is None:
            return None
        for key, value in fields.items():
            setattr(model, key, _to_column(key, value, _PLAYER_JSON_GRIDS))
        self.db.session.add(model)
        self.db.session.commit()
        return self._player_record(model)

    # -- patterns --

    def get_pattern_by_name(self, name):
        from bingo_live.models import GamePattern
        model = GamePattern.query.filter_by(name=name).first()
        return self._pattern_record(model) if model else None

    def list_patterns(self):
        from bingo_live.models import GamePattern
        return [self._pattern_record(m) for m in GamePattern.query.order_by(GamePattern.id).all()]

    def create_pattern(self, record):
        from bingo_live.models import GamePattern
        if GamePattern.query.filter_by(name=record.name).first() is not None:
            raise ConflictError(f"Pattern '{record.name}' already exists")
        model = GamePattern(
            name=record.name,
            grid=_grid_list(record.grid),
            description=record.description,
            predefined=record.predefined,
        )
        self.db.session.add(model)
        self.db.session.commit()
        return self._pattern_record(model)
