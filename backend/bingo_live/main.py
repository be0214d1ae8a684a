from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from bingo_live import db
from bingo_live.models import User

main = Blueprint('main', __name__)


@main.route('/auth', methods=['POST'])
def login():
    """Static credential check for the host ("master") account."""
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')
    cfg = current_app.config
    if username != cfg['MASTER_USERNAME'] or password != cfg['MASTER_PASSWORD']:
        current_app.logger.info(f"[auth] rejected username={username!r}")
        return jsonify({'success': False, 'error': 'Invalid credentials'}), 401

    user = User.query.filter_by(username=username).first()
    if not user:
        user = User(username=username)
    if not user.password_hash or not user.check_password(password):
        user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    current_app.logger.info(f"[auth] host logged in username={username}")
    return jsonify({'success': True, 'user': user.to_dict()})


@main.route('/check_login', methods=['GET'])
@login_required
def check_login():
    return jsonify({'success': True, 'user': current_user.to_dict()})


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
