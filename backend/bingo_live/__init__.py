import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    flask_app.logger.setLevel(level)
    logging.getLogger('bingo_live').setLevel(level)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from bingo_live.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Game engine wiring: one service and one room registry per app
    from bingo_live.realtime import RoomRegistry, SocketIOBroadcaster
    from bingo_live.repository import MemoryRepository, SqlRepository
    from bingo_live.services.game import GameService

    rooms = RoomRegistry()
    if flask_app.config.get('REPOSITORY_BACKEND', 'sql') == 'memory':
        repository = MemoryRepository()
    else:
        repository = SqlRepository(db)
    flask_app.extensions['bingo_live'] = {
        'rooms': rooms,
        'game': GameService(repository, SocketIOBroadcaster(socketio, rooms)),
    }

    from bingo_live.main import main
    flask_app.register_blueprint(main, url_prefix='/api')

    from bingo_live.api.sessions import sessions
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    from bingo_live.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api')

    from bingo_live.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    from bingo_live.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Host login required', 'code': 'unauthorized'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the tables, then seeds the host account."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            user = User(username=flask_app.config['MASTER_USERNAME'])
            user.set_password(flask_app.config['MASTER_PASSWORD'])
            db.session.add(user)
            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
