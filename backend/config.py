import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///bingo_live.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # "sql" (SQLAlchemy models) or "memory" (process-local store)
    REPOSITORY_BACKEND = os.environ.get('REPOSITORY_BACKEND', 'sql')
    # Static host credentials
    MASTER_USERNAME = os.environ.get('MASTER_USERNAME', 'master')
    MASTER_PASSWORD = os.environ.get('MASTER_PASSWORD', 'master1')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
        ).split(',') if o.strip()
    ]
    # Host-supplied hint shown in the setup wizard; never enforced
    DEFAULT_CARD_COUNT = int(os.environ.get('DEFAULT_CARD_COUNT', '25'))
    # Candidate cards offered to a player before confirming one
    CARD_CHOICES = int(os.environ.get('CARD_CHOICES', '6'))
    MAX_CARD_CHOICES = int(os.environ.get('MAX_CARD_CHOICES', '20'))
