# backend/config.py
import os

from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# nearest .env walking up from backend/
load_dotenv()


def _database_url():
    # DATABASE_URL points at Postgres in production; default is a local SQLite file
    url = os.environ.get('DATABASE_URL')
    if not url:
        return f"sqlite:///{os.path.join(BASE_DIR, 'pos.db')}"
    # Heroku/Render style URLs
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


def load_config(overrides=None):
    """Build the Flask config mapping from the environment, then apply overrides."""
    config = {
        'SQLALCHEMY_DATABASE_URI': _database_url(),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SQLALCHEMY_ENGINE_OPTIONS': {'pool_pre_ping': True},
        'JWT_SECRET': os.environ.get('JWT_SECRET'),
        'TOKEN_TTL_HOURS': int(os.environ.get('TOKEN_TTL_HOURS', '8')),
        'DEFAULT_ADMIN_USERNAME': os.environ.get('DEFAULT_ADMIN_USERNAME', 'admin'),
        'DEFAULT_ADMIN_PASSWORD': os.environ.get('DEFAULT_ADMIN_PASSWORD', 'admin123'),
        'STATIC_FOLDER': os.environ.get('STATIC_FOLDER', os.path.join(BASE_DIR, 'static')),
        'CORS_ORIGINS': os.environ.get('CORS_ORIGINS', '*'),
        'LOG_LEVEL': os.environ.get('LOG_LEVEL', 'INFO'),
        'PORT': int(os.environ.get('PORT', '4000')),
    }
    if overrides:
        config.update(overrides)
    return config
