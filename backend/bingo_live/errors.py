"""Error taxonomy shared by the HTTP routes and the Socket.IO handlers.

Services raise these; the transport layers turn them into a JSON error body
(HTTP) or an ``error`` event for the requesting connection (Socket.IO).
"""

from dataclasses import dataclass
from typing import Any, Optional

from flask import jsonify


@dataclass(eq=False)
class BingoError(Exception):
    """Base application error."""

    code: str
    message: str
    status_code: int
    details: Optional[Any] = None

    def __str__(self):
        return self.message

    def to_dict(self):
        payload = {'code': self.code, 'message': self.message}
        if self.details is not None:
            payload['details'] = self.details
        return payload


class ValidationError(BingoError):
    def __init__(self, message='Validation error', details=None):
        super().__init__(code='validation_error', message=message, status_code=400, details=details)


class InvalidPatternError(BingoError):
    def __init__(self, message='Invalid winning pattern', details=None):
        super().__init__(code='invalid_pattern', message=message, status_code=400, details=details)


class SessionNotFoundError(BingoError):
    def __init__(self, session_id=None):
        super().__init__(code='session_not_found', message='Session not found', status_code=404,
                         details={'session_id': session_id} if session_id else None)


class PlayerNotFoundError(BingoError):
    def __init__(self, player_uuid=None):
        super().__init__(code='player_not_found', message='Player not found', status_code=404,
                         details={'player_uuid': player_uuid} if player_uuid else None)


class InvalidStateError(BingoError):
    """The session exists but is not in a state that allows the operation."""

    def __init__(self, message='Session is not active', status=None):
        super().__init__(code='invalid_state', message=message, status_code=409,
                         details={'status': status} if status else None)


class InvalidClaimError(BingoError):
    def __init__(self, message='No valid winning pattern', details=None):
        super().__init__(code='invalid_claim', message=message, status_code=422, details=details)


class ConflictError(BingoError):
    def __init__(self, message='Conflict', details=None):
        super().__init__(code='conflict', message=message, status_code=409, details=details)


class PermissionDeniedError(BingoError):
    def __init__(self, message='Only the host may do that'):
        super().__init__(code='forbidden', message=message, status_code=403)


def register_error_handlers(flask_app) -> None:
    @flask_app.errorhandler(BingoError)
    def _handle_bingo_error(exc: BingoError):
        flask_app.logger.info(f"[rejected] code={exc.code} message={exc.message}")
        body = {'error': exc.message, 'code': exc.code}
        if exc.details is not None:
            body['details'] = exc.details
        return jsonify(body), exc.status_code
