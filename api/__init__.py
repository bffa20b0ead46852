import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models import storage  # DBStorage singleton (scoped_session)
from services.cache import MemoryCache

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Sweet Shop API",
        "version": "1.0.0",
        "description": "REST API for the sweet shop catalog, purchases and stock-movement ledger.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
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


def create_app(config_name: str | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    """
    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(app.config.get("LOG_LEVEL", "INFO"))

    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)
    register_error_handlers(app)

    # Cache port handed to mutating services; invalidated after each commit
    app.extensions["sweet_cache"] = MemoryCache()

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .sweets import bp as sweets_bp
    from .purchases import bp as purchases_bp
    from .inventory import bp as inventory_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1")
    app.register_blueprint(sweets_bp, url_prefix="/api/v1")
    app.register_blueprint(purchases_bp, url_prefix="/api/v1")
    app.register_blueprint(inventory_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Sweet Shop API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
