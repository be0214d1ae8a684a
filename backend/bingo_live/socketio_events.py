from functools import wraps

from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit, join_room, leave_room

from bingo_live import socketio
from bingo_live.errors import (
    BingoError,
    InvalidClaimError,
    PermissionDeniedError,
    ValidationError,
)
from bingo_live.realtime import HOST, NAMESPACE, PLAYER, game_service, room_key, room_registry


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _session_id(data) -> str:
    session_id = (data or {}).get('session_id')
    if not session_id or not isinstance(session_id, str):
        raise ValidationError('session_id is required')
    return session_id


def _is_master() -> bool:
    if current_app.config.get('LOGIN_DISABLED'):
        return True
    return bool(getattr(current_user, 'is_authenticated', False))


def _require_host(session_id: str) -> None:
    participant = room_registry().get(_get_sid())
    if not participant or not participant.is_host or participant.session_id != session_id:
        raise PermissionDeniedError()


def guarded(handler):
    """Turn any failure into an event for the requesting connection only."""

    @wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except InvalidClaimError as exc:
            emit('invalid_bingo', exc.to_dict())
        except BingoError as exc:
            current_app.logger.info(f"[socket-rejected] handler={handler.__name__} code={exc.code} message={exc.message}")
            emit('error', exc.to_dict())
        except Exception:
            current_app.logger.exception(f"[socket-error] handler={handler.__name__}")
            emit('error', {'code': 'internal_error', 'message': 'Internal server error'})
    return wrapper


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # Players are flagged disconnected, never removed, so they can come back.
    # A host dropping does not end the session.
    participant = room_registry().leave(_get_sid())
    if not participant:
        return
    current_app.logger.info(f"[disconnect] session={participant.session_id} role={participant.role}")
    if participant.player_uuid:
        try:
            game_service().set_connected(participant.session_id, participant.player_uuid, False)
        except BingoError as exc:
            current_app.logger.info(f"[disconnect] session={participant.session_id} {exc.message}")


@guarded
def handle_join_game(data):
    data = data or {}
    session_id = _session_id(data)
    is_host = bool(data.get('is_host'))
    player_uuid = data.get('player_uuid') if not is_host else None
    if is_host and not _is_master():
        raise PermissionDeniedError('Host login required')

    service = game_service()
    session = service.get_session(session_id)
    if player_uuid:
        if service.get_player(player_uuid).session_id != session_id:
            raise ValidationError('Player belongs to another session')

    sid = _get_sid()
    previous = room_registry().join(sid, session_id, HOST if is_host else PLAYER, player_uuid)
    if previous and previous.session_id != session_id:
        leave_room(room_key(previous.session_id))
        if previous.player_uuid:
            service.set_connected(previous.session_id, previous.player_uuid, False)
    join_room(room_key(session_id))
    current_app.logger.info(f"[join] session={session_id} role={'host' if is_host else 'player'} player={player_uuid}")
    emit('joined', {
        'room': room_key(session_id),
        'role': HOST if is_host else PLAYER,
        'session': session.to_dict(),
    })
    if player_uuid:
        service.set_connected(session_id, player_uuid, True)
    else:
        service.publish_roster(session_id)


@guarded
def handle_leave_game(data):
    participant = room_registry().leave(_get_sid())
    if not participant:
        raise ValidationError('Not in a game')
    leave_room(room_key(participant.session_id))
    emit('left', {'room': room_key(participant.session_id)})
    if participant.player_uuid:
        game_service().set_connected(participant.session_id, participant.player_uuid, False)


@guarded
def handle_player_card_selected(data):
    data = data or {}
    session_id = _session_id(data)
    participant = room_registry().get(_get_sid())
    player_uuid = data.get('player_uuid')
    if participant and participant.player_uuid and player_uuid and participant.player_uuid != player_uuid:
        raise PermissionDeniedError('You can only choose your own card')
    player = game_service().select_card(
        session_id,
        player_uuid,
        data.get('card'),
        name=data.get('player_name'),
    )
    if participant and participant.session_id == session_id:
        room_registry().bind_player(_get_sid(), player.uuid)
    emit('card_confirmed', player.to_dict())


@guarded
def handle_mark_number(data):
    data = data or {}
    participant = room_registry().get(_get_sid())
    player_uuid = data.get('player_uuid') or (participant.player_uuid if participant else None)
    if participant and participant.player_uuid and participant.player_uuid != player_uuid:
        raise PermissionDeniedError('You can only mark your own card')
    player = game_service().mark_number(player_uuid, data.get('number'), data.get('marked', True))
    emit('marks_updated', {'player_uuid': player.uuid, 'marked': list(player.marked)})


@guarded
def handle_draw_number(data):
    session_id = _session_id(data)
    _require_host(session_id)
    game_service().draw(session_id)


@guarded
def handle_pause_game(data):
    session_id = _session_id(data)
    _require_host(session_id)
    game_service().pause(session_id)


@guarded
def handle_resume_game(data):
    session_id = _session_id(data)
    _require_host(session_id)
    game_service().resume(session_id)


@guarded
def handle_finish_game(data):
    session_id = _session_id(data)
    _require_host(session_id)
    game_service().finish(session_id)


@guarded
def handle_mesa_pide(data):
    session_id = _session_id(data)
    _require_host(session_id)
    game_service().announce(session_id, (data or {}).get('message'))


@guarded
def handle_update_game_state(data):
    session_id = _session_id(data)
    _require_host(session_id)
    game_service().update_state(session_id, (data or {}).get('updates'))


@guarded
def handle_claim_bingo(data):
    data = data or {}
    session_id = _session_id(data)
    participant = room_registry().get(_get_sid())
    player_uuid = data.get('player_uuid') or (participant.player_uuid if participant else None)
    if participant and participant.player_uuid and participant.player_uuid != player_uuid:
        raise PermissionDeniedError('You can only claim with your own card')
    # Any card sent along is ignored; the stored one is checked
    game_service().claim_bingo(session_id, player_uuid, data.get('marks'))


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_game': handle_join_game,
    'leave_game': handle_leave_game,
    'player_card_selected': handle_player_card_selected,
    'mark_number': handle_mark_number,
    'draw_number': handle_draw_number,
    'pause_game': handle_pause_game,
    'resume_game': handle_resume_game,
    'finish_game': handle_finish_game,
    'mesa_pide': handle_mesa_pide,
    'update_game_state': handle_update_game_state,
    'claim_bingo': handle_claim_bingo,
    'ping': handle_ping,
}


def register_socketio_handlers(namespace: str = NAMESPACE) -> None:
    """Register Socket.IO event handlers on the game namespace."""
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace=namespace)
