import logging
import os
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv
from flask import Flask, jsonify

from sondagem.config import apply_env, config_map
from sondagem.exceptions import TrackerError
from sondagem.extensions import db, migrate

__version__ = '0.3.0'


def create_app(config_name=None):
    """Application factory for creating the Flask app instance.

    Args:
        config_name: Configuration name ('development', 'production' or
                     'testing'). Defaults to FLASK_ENV or 'development'.

    Returns:
        Configured Flask application instance.
    """
    # Load environment variables from the appropriate .env file
    root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    env = config_name or os.environ.get('FLASK_ENV', 'development')
    env_file = os.path.join(root, f'.env.{env}')
    if os.path.exists(env_file):
        load_dotenv(env_file)

    # A local .env overrides the environment-specific one
    dotenv_path = os.path.join(root, '.env')
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path, override=True)

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)

    config_class = config_map.get(config_name, config_map['development'])
    app.config.from_object(config_class)
    apply_env(app.config)

    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    _register_blueprints(app)
    _register_error_handlers(app)

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok', 'version': __version__})

    # Create database tables if they don't exist
    with app.app_context():
        from sondagem import models  # noqa: F401
        db.create_all()

    app.logger.info(f'Sondagem tracker {__version__} started ({config_name})')
    return app


def _configure_logging(app):
    """Set up RotatingFileHandler on the root logger."""
    max_bytes = app.config.get('LOG_FILE_MAX_BYTES', 0)
    if not max_bytes:
        return

    log_dir = os.path.join(app.instance_path, 'logs')
    os.makedirs(log_dir, exist_ok=True)

    handler = RotatingFileHandler(
        os.path.join(log_dir, 'app.log'),
        maxBytes=max_bytes,
        backupCount=app.config.get('LOG_FILE_BACKUP_COUNT', 3),
    )
    handler.setFormatter(logging.Formatter(
        app.config.get('LOG_FORMAT', '%(asctime)s [%(levelname)s] %(name)s: %(message)s')
    ))
    handler.setLevel(logging.DEBUG)

    root = logging.getLogger()
    root.addHandler(handler)
    if root.level == logging.WARNING:
        root.setLevel(logging.DEBUG)


def _register_error_handlers(app):
    """Render tracker failures as JSON ``{'error': message}``."""

    @app.errorhandler(TrackerError)
    def handle_tracker_error(e):
        return jsonify({'error': e.message}), e.status_code

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(413)
    def handle_too_large(e):
        return jsonify({'error': 'Arquivo muito grande.'}), 413


def _register_blueprints(app):
    """Register all application blueprints."""
    from sondagem.views.students import students_bp
    from sondagem.views.catalog import catalog_bp
    from sondagem.views.dashboard import dashboard_bp
    from sondagem.views.transfer import transfer_bp
    from sondagem.views.classify import classify_bp

    app.register_blueprint(students_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(transfer_bp)
    app.register_blueprint(classify_bp)
