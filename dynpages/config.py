import os


def _read_secret(name: str):
    # Secret Files on Render (/etc/secrets)
    for p in (f'/etc/secrets/{name}', name):
        try:
            with open(p, 'r') as f:
                return f.read().strip()
        except OSError:
            continue
    return None


class Config:
    APP_ENV = os.environ.get('APP_ENV', 'development')
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SESSION_SECRET = os.environ.get('SESSION_SECRET')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    USE_REDIS = os.environ.get('USE_REDIS', '0').lower() in ('1', 'true', 'yes')
    BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    SESSION_COOKIE = 'session_token'
    SESSION_DURATION = int(os.environ.get('SESSION_DURATION', str(7 * 24 * 60 * 60)))
    SESSION_ISSUER = 'dynamic-pages-app'
    SESSION_AUDIENCE = 'dynamic-pages-users'

    MAX_PAGES = int(os.environ.get('MAX_PAGES', '5'))
    MAX_SLUG_ATTEMPTS = 10

    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', 'uploads')
    MAX_UPLOAD_SIZE = 10 * 1024 * 1024
    MAX_CONTENT_LENGTH = MAX_UPLOAD_SIZE + 64 * 1024

    WEBHOOK_RATE_LIMIT = int(os.environ.get('WEBHOOK_RATE_LIMIT', '100'))
    WEBHOOK_RATE_WINDOW = 60
    WEBHOOK_TIMEOUT = int(os.environ.get('WEBHOOK_TIMEOUT', '30'))
    WEBHOOK_MAX_RESPONSE = 1_000_000
    WEBHOOK_ALLOW_RAW_URL = os.environ.get('WEBHOOK_ALLOW_RAW_URL', '1').lower() in ('1', 'true', 'yes')

    LINK_PREVIEW_TIMEOUT = 5

    def __init__(self):
        if not self.SESSION_SECRET:
            self.SESSION_SECRET = _read_secret('session_secret')
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_secret('secret_key') or self.SECRET_KEY
