import logging
import os

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from models import storage
from utils.audit import AuditLogger
from utils.rate_limit import LoginRateLimiter
from utils.tokens import TokenIssuer

__version__ = "1.0.0"

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Orbit Invoice API",
        "version": __version__,
        "description": "Authentication, session and user administration API of the Orbit invoicing app.",
    },
    "basePath": "/",
    "schemes": ["http"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `overrides` are applied on top of the selected config class (used by tests).
    Raises api.config.ConfigError when the signing secret is missing or weak.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    app.config.update(overrides)
    validate_config(app.config)
    _configure_logging(app.config["LOG_LEVEL"])

    # Cross-Origin Resource Sharing: comma-separated list from env, '*' in dev
    CORS(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    url = app.config["DATABASE_URL"]
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        # relative sqlite path: make sure its directory exists
        directory = os.path.dirname(url[len("sqlite:///"):])
        if directory:
            os.makedirs(directory, exist_ok=True)
    storage.reload(url)

    # Per-app auth components; routes reach them through current_app.extensions
    app.extensions["token_issuer"] = TokenIssuer(
        secret=app.config["JWT_SECRET"],
        algorithm=app.config["JWT_ALGORITHM"],
        access_ttl=app.config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=app.config["REFRESH_TOKEN_EXPIRES"],
        rotate_refresh=app.config["ROTATE_REFRESH_TOKENS"],
    )
    limiter = LoginRateLimiter(
        window_seconds=app.config["RATE_LIMIT_WINDOW"].total_seconds(),
        max_attempts=app.config["RATE_LIMIT_MAX_ATTEMPTS"],
    )
    if app.config["RATE_LIMIT_SWEEP_SECONDS"] > 0:
        limiter.start_sweeper(app.config["RATE_LIMIT_SWEEP_SECONDS"])
    app.extensions["rate_limiter"] = limiter
    app.extensions["audit_logger"] = AuditLogger()

    # Register global error handlers that return the uniform error envelope
    from .errors import register_error_handlers
    register_error_handlers(app)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    prefix = app.config["API_PREFIX"].rstrip("/")
    app.register_blueprint(health_bp, url_prefix=prefix or None)
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}{auth_bp.url_prefix}")
    app.register_blueprint(users_bp, url_prefix=f"{prefix}{users_bp.url_prefix}")

    from .cli import register_commands
    register_commands(app)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Orbit Invoice API",
            "docs": "/apidocs/",
            "health": f"{prefix}/health",
        }, 200

    return app
