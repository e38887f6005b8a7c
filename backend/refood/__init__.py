# backend/refood/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)

    package_logger = logging.getLogger("refood")
    package_logger.setLevel(level)
    if not package_logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        package_logger.addHandler(handler)


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.centri import centri_bp
    from .routes.lotti import lotti_bp
    from .routes.prenotazioni import prenotazioni_bp
    from .routes.notifiche import notifiche_bp
    from .routes.statistiche import statistiche_bp
    from .routes.attori import attori_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(centri_bp)
    app.register_blueprint(lotti_bp)
    app.register_blueprint(prenotazioni_bp)
    app.register_blueprint(notifiche_bp)
    app.register_blueprint(statistiche_bp)
    app.register_blueprint(attori_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Optional tables are inspected once; see services/schema_service.py
    from .services import schema_service
    schema_service.refresh_capabilities(app)

    if app.config.get("SCHEDULER_ENABLED"):
        from .scheduler import EXTENSION_KEY, RefoodScheduler
        scheduler = RefoodScheduler(app)
        scheduler.start()
        app.extensions[EXTENSION_KEY] = scheduler

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
