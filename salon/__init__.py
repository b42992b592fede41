from __future__ import annotations

import logging

import click
from flasgger import Swagger
from flask import Flask, current_app, jsonify
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import config_for_environment
from .errors import SalonError
from .extensions import db
from .gateway import init_gateway
from .routes import register_routes
from .swagger import SWAGGER_CONFIG, SWAGGER_TEMPLATE


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(config_object or config_for_environment())
    app.config.from_envvar("APP_SETTINGS", silent=True)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db.init_app(app)
    init_gateway(app)

    # Allow the booking frontend to talk to the backend
    CORS(app,
         origins=app.config["CORS_ORIGINS"],
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    )

    Swagger(app, config=SWAGGER_CONFIG, template=SWAGGER_TEMPLATE)

    register_error_handlers(app)
    register_commands(app)
    register_routes(app)

    return app


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SalonError)
    def handle_salon_error(exc: SalonError):
        if exc.status_code >= 500:
            current_app.logger.error("%s: %s", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Unhandled database error", exc_info=exc)
        return jsonify({"error": "database_error", "message": "Database error"}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc
        current_app.logger.exception("Unhandled error", exc_info=exc)
        message = str(exc) if current_app.debug else "Internal server error"
        return jsonify({"error": "server_error", "message": message}), 500


def register_commands(app: Flask) -> None:
    from .seeding import bootstrap_admin, seed_catalog, seed_loyalty_program

    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables."""
        db.create_all()
        click.echo("Tables created")

    @app.cli.command("seed-admin")
    @click.option("--name", default="Admin")
    @click.option("--email", required=True)
    @click.option("--password", required=True)
    def seed_admin_command(name, email, password):
        """Create the first admin staff member."""
        db.create_all()
        admin = bootstrap_admin(name, email, password)
        if admin is None:
            click.echo("An admin already exists; nothing to do")
        else:
            click.echo(f"Created admin {admin.email}")

    @app.cli.command("seed-catalog")
    @click.option("--replace", is_flag=True, help="Delete the existing catalog first")
    def seed_catalog_command(replace):
        """Install the default service catalog."""
        db.create_all()
        click.echo(f"Created {seed_catalog(replace=replace)} services")

    @app.cli.command("seed-loyalty")
    def seed_loyalty_command():
        """Install the default loyalty program."""
        db.create_all()
        program = seed_loyalty_program()
        click.echo(f"Active loyalty program: {program.name}")
