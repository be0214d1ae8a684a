from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from bingo_live.realtime import game_service

sessions = Blueprint('sessions', __name__)


@sessions.route('', methods=['GET'])
def list_sessions():
    return jsonify([s.to_dict() for s in game_service().list_sessions()])


@sessions.route('/active', methods=['GET'])
def list_active_sessions():
    return jsonify([s.to_dict() for s in game_service().list_sessions(active_only=True)])


@sessions.route('', methods=['POST'])
@login_required
def create_session():
    """
    Creates a session once the host finishes the setup wizard.

    Body: modality (pattern name), optional pattern (custom 5x5 grid),
    card_count (hint only) and voice_config.
    """
    data = request.get_json(silent=True) or {}
    session = game_service().create_session(
        creator=current_user.username,
        modality=data.get('modality'),
        pattern=data.get('pattern'),
        card_count=data.get('card_count', current_app.config.get('DEFAULT_CARD_COUNT', 25)),
        voice_config=data.get('voice_config'),
    )
    return jsonify(session.to_dict()), 201


@sessions.route('/<string:session_id>', methods=['GET'])
def get_session(session_id):
    payload = game_service().get_session(session_id).to_dict()
    payload['players'] = game_service().roster(session_id)
    return jsonify(payload)


@sessions.route('/<string:session_id>', methods=['PATCH'])
@login_required
def update_session(session_id):
    data = request.get_json(silent=True) or {}
    return jsonify(game_service().update_state(session_id, data).to_dict())


@sessions.route('/<string:session_id>', methods=['DELETE'])
@login_required
def delete_session(session_id):
    game_service().delete_session(session_id)
    return jsonify({'success': True})
