from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from bingo_live.errors import ValidationError
from bingo_live.realtime import game_service
from bingo_live.services.cards import pattern_description
from bingo_live.services.draw import progress

game = Blueprint('game', __name__)


# ---- host controls ----

@game.route('/game/<string:session_id>/draw', methods=['POST'])
@login_required
def draw_number(session_id):
    outcome = game_service().draw(session_id)
    body = {
        'number': outcome.token,
        'exhausted': outcome.exhausted,
        'progress': progress(len(outcome.session.drawn_numbers)),
        'session': outcome.session.to_dict(),
    }
    if outcome.exhausted:
        body['message'] = 'All numbers have been drawn'
    return jsonify(body)


@game.route('/game/<string:session_id>/pause', methods=['POST'])
@login_required
def pause_game(session_id):
    return jsonify(game_service().pause(session_id).to_dict())


@game.route('/game/<string:session_id>/resume', methods=['POST'])
@login_required
def resume_game(session_id):
    return jsonify(game_service().resume(session_id).to_dict())


@game.route('/game/<string:session_id>/finish', methods=['POST'])
@login_required
def finish_game(session_id):
    return jsonify(game_service().finish(session_id).to_dict())


@game.route('/game/<string:session_id>/mesa-pide', methods=['POST'])
@login_required
def mesa_pide(session_id):
    data = request.get_json(silent=True) or {}
    game_service().announce(session_id, data.get('message'))
    return jsonify({'success': True})


# ---- players ----

@game.route('/game/<string:session_id>/players', methods=['GET'])
def get_players(session_id):
    game_service().get_session(session_id)
    return jsonify(game_service().roster(session_id))


@game.route('/game/<string:session_id>/cards', methods=['GET'])
def candidate_cards(session_id):
    """Cards a player can choose from before confirming one."""
    game_service().get_session(session_id)
    cfg = current_app.config
    count = request.args.get('count', cfg.get('CARD_CHOICES', 6), type=int)
    if count is None or not 1 <= count <= cfg.get('MAX_CARD_CHOICES', 20):
        raise ValidationError(f"count must be between 1 and {cfg.get('MAX_CARD_CHOICES', 20)}")
    cards = game_service().candidate_cards(count)
    return jsonify({'cards': [[list(row) for row in card] for card in cards]})


@game.route('/game/<string:session_id>/join', methods=['POST'])
def join_game(session_id):
    data = request.get_json(silent=True) or {}
    player = game_service().join_player(
        session_id,
        name=data.get('player_name'),
        card=data.get('card'),
        player_uuid=data.get('uuid'),
    )
    return jsonify(player.to_dict()), 201


@game.route('/game/<string:session_id>/claim', methods=['POST'])
def claim_bingo(session_id):
    data = request.get_json(silent=True) or {}
    outcome = game_service().claim_bingo(session_id, data.get('player_uuid'), data.get('marks'))
    return jsonify({
        'winner': outcome.player.name,
        'winning_tokens': list(outcome.winning_tokens),
        'session': outcome.session.to_dict(),
    })


@game.route('/card/<string:uuid>', methods=['GET'])
def get_card(uuid):
    player = game_service().get_player(uuid)
    payload = player.to_dict()
    session = game_service().get_session(player.session_id)
    payload['session'] = {
        'session_id': session.session_id,
        'status': session.status,
        'modality': session.modality,
        'pattern': [list(row) for row in session.pattern],
        'drawn_numbers': list(session.drawn_numbers),
    }
    return jsonify(payload)


@game.route('/card/<string:uuid>', methods=['PATCH'])
def update_card(uuid):
    data = request.get_json(silent=True) or {}
    player = game_service().update_player(uuid, name=data.get('name'), marked=data.get('marked'))
    return jsonify(player.to_dict())


# ---- patterns ----

@game.route('/patterns', methods=['GET'])
def list_patterns():
    payload = []
    for pattern in game_service().list_patterns():
        entry = pattern.to_dict()
        entry['announcement'] = pattern_description(pattern.name)
        payload.append(entry)
    return jsonify(payload)


@game.route('/patterns', methods=['POST'])
@login_required
def create_pattern():
    data = request.get_json(silent=True) or {}
    pattern = game_service().create_pattern(data.get('name'), data.get('pattern'), data.get('description', ''))
    return jsonify(pattern.to_dict()), 201
