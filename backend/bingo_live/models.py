from datetime import datetime, timezone

from flask_login import UserMixin

from bingo_live import db, bcrypt


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class GameSession(db.Model):
    __tablename__ = 'game_session'
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    creator = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='active')  # active, paused, finished
    modality = db.Column(db.String(64), nullable=False)
    pattern = db.Column(db.JSON, nullable=False)  # 5x5 booleans
    card_count = db.Column(db.Integer, nullable=False, default=25)
    voice_config = db.Column(db.JSON, nullable=True)
    drawn_numbers = db.Column(db.JSON, nullable=False, default=list)
    winner = db.Column(db.String(64), nullable=True)
    winner_uuid = db.Column(db.String(64), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # seconds
    statistics = db.Column(db.JSON, nullable=True)
    players = db.relationship('Player', back_populates='session', cascade='all, delete-orphan')


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(64), unique=True, nullable=False, index=True)
    session_id = db.Column(db.String(64), db.ForeignKey('game_session.session_id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    card = db.Column(db.JSON, nullable=False)
    marked = db.Column(db.JSON, nullable=False, default=list)
    connected = db.Column(db.Boolean, nullable=False, default=True)
    session = db.relationship('GameSession', back_populates='players')


class GamePattern(db.Model):
    __tablename__ = 'game_pattern'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False, default='')
    grid = db.Column(db.JSON, nullable=False)
    predefined = db.Column(db.Boolean, nullable=False, default=False)
