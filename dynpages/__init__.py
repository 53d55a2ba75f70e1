import os, hashlib, logging
import click
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_migrate import Migrate
from dotenv import load_dotenv
from .config import Config
from .errors import register_error_handlers
from .models import db
from .services.session import refresh_session_cookie

load_dotenv()

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


def _check_session_secret(app):
    secret = app.config.get('SESSION_SECRET') or ''
    if len(secret) >= MIN_SECRET_LENGTH:
        return
    if app.config['IS_PRODUCTION']:
        raise RuntimeError(
            'SESSION_SECRET must be set and at least 32 characters long. '
            'Generate one with: openssl rand -base64 32'
        )
    logger.warning('SESSION_SECRET missing or too short, using a development key')
    app.config['SESSION_SECRET'] = hashlib.sha256(f"dev:{app.config['SECRET_KEY']}".encode()).hexdigest()


def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)
    app.config['IS_PRODUCTION'] = app.config['APP_ENV'] == 'production'
    app.config['UPLOAD_FOLDER'] = os.path.abspath(app.config['UPLOAD_FOLDER'])

    logging.basicConfig(level=app.config['LOG_LEVEL'])
    _check_session_secret(app)

    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    with app.app_context():
        db.create_all()

    from .routes_public import bp as public_bp
    from .routes_api import bp as api_bp
    from .routes_auth import bp as auth_bp
    from .routes_pages import bp as pages_bp
    from .routes_webhooks import bp as webhooks_bp
    app.register_blueprint(public_bp)
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(pages_bp, url_prefix='/api/pages')
    app.register_blueprint(webhooks_bp, url_prefix='/api/webhooks')

    register_error_handlers(app)
    app.after_request(refresh_session_cookie)

    @app.get('/health')
    def health():
        return {'ok': True}

    @app.cli.command('prune-access-tokens')
    def prune_access_tokens():
        """Delete page access tokens that have already expired."""
        from .services.access_tokens import prune_expired_tokens
        n = prune_expired_tokens()
        click.echo(f'pruned {n} expired access tokens')

    return app
