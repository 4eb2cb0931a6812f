# backend/garment_ledger/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # One stock engine per app; it holds the halt flag for this process
    from .services.stock_engine import StockEngine
    app.extensions["stock_engine"] = StockEngine.from_config(db.session, app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.admin import admin_bp
    from .routes.items import items_bp
    from .routes.stock import stock_bp
    from .routes.transactions import transactions_bp
    from .routes.reports import reports_bp
    from .routes.cutting import cutting_bp
    from .routes.assignments import assignments_bp
    from .routes.workforce import workforce_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(items_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(transactions_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(cutting_bp)
    app.register_blueprint(assignments_bp)
    app.register_blueprint(workforce_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-Actor"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
