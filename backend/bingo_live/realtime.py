"""Socket.IO side of the game: rooms, who is in them, and broadcasting."""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from flask import current_app

NAMESPACE = '/ws'
HOST = 'host'
PLAYER = 'player'


def room_key(session_id: str) -> str:
    return f"game:{session_id}"


@dataclass(frozen=True)
class Participant:
    sid: str
    session_id: str
    role: str
    player_uuid: Optional[str] = None

    @property
    def is_host(self) -> bool:
        return self.role == HOST


class RoomRegistry:
    """Which connection sits in which session room, and as what.

    Entries appear on ``join_game`` and go away on leave, disconnect, or
    when the session itself is deleted.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._by_sid: Dict[str, Participant] = {}

    def join(self, sid, session_id, role, player_uuid=None) -> Optional[Participant]:
        """Register ``sid``; returns its previous membership, if any."""
        with self._lock:
            previous = self._by_sid.get(sid)
            self._by_sid[sid] = Participant(sid, session_id, role, player_uuid)
            return previous

    def bind_player(self, sid, player_uuid) -> Optional[Participant]:
        with self._lock:
            current = self._by_sid.get(sid)
            if current is None or current.role != PLAYER:
                return current
            updated = self._by_sid[sid] = Participant(sid, current.session_id, PLAYER, player_uuid)
            return updated

    def get(self, sid) -> Optional[Participant]:
        with self._lock:
            return self._by_sid.get(sid)

    def leave(self, sid) -> Optional[Participant]:
        with self._lock:
            return self._by_sid.pop(sid, None)

    def close(self, session_id) -> List[Participant]:
        with self._lock:
            gone = [p for p in self._by_sid.values() if p.session_id == session_id]
            for p in gone:
                del self._by_sid[p.sid]
            return gone


class SocketIOBroadcaster:
    """Publishes game events to a session's room."""

    def __init__(self, socketio, rooms: RoomRegistry, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.rooms = rooms
        self.namespace = namespace

    def broadcast(self, session_id, event, payload):
        self.socketio.emit(event, payload, to=room_key(session_id), namespace=self.namespace)

    def close(self, session_id):
        self.rooms.close(session_id)
        self.socketio.close_room(room_key(session_id), namespace=self.namespace)


def game_service():
    return current_app.extensions['bingo_live']['game']


def room_registry() -> RoomRegistry:
    return current_app.extensions['bingo_live']['rooms']
