"""Initialize the Flask app and its extensions."""

import json
import os

import firebase_admin
from firebase_admin import credentials
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import (
    DEFAULT_FIRESTORE_MAX_ATTEMPTS,
    DEFAULT_STORE_TIMEOUT_SECONDS,
    STORE_EXTENSION,
)
from .extensions import csrf
from .store import FirestoreStore, MemoryStore


def _init_firebase(app):
    """Initialize the Firebase Admin SDK from the first credentials found."""
    cred = None
    project_id = None
    cred_info = {}

    # First, try to load from environment variable (for production)
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            project_id = cred_info.get("project_id")
            cred = credentials.Certificate(cred_info)
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    # If env var fails or is not present, try loading from file (for local dev)
    if not cred:
        cred_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
        )
        if os.path.exists(cred_path):
            try:
                with open(cred_path, "r") as f:
                    cred_info = json.load(f)
                project_id = cred_info.get("project_id")
                cred = credentials.Certificate(cred_path)
            except (json.JSONDecodeError, ValueError) as e:
                app.logger.error(f"Error loading credentials from file: {e}")

    # If both methods fail, fallback to default credentials
    if not cred:
        try:
            cred = credentials.ApplicationDefault()
            project_id = os.environ.get("FIREBASE_PROJECT_ID")
        except Exception as e:
            app.logger.error(
                f"Could not find any valid credentials (env, file, or default): {e}"
            )

    if cred and not firebase_admin._apps:
        try:
            firebase_options = {}
            if project_id:
                firebase_options["projectId"] = project_id
            firebase_admin.initialize_app(cred, firebase_options)
        except ValueError:
            # This can happen if the app is already initialized, which is fine.
            app.logger.info("Firebase app already initialized.")


def _create_store(app):
    """Build the competition store named by COMPETITION_STORE."""
    backend = app.config["COMPETITION_STORE"]
    timeout = app.config["STORE_TIMEOUT_SECONDS"]
    if backend == "memory":
        return MemoryStore(timeout=timeout)
    if backend == "firestore":
        return FirestoreStore(
            timeout=timeout, max_attempts=app.config["FIRESTORE_MAX_ATTEMPTS"]
        )
    raise ValueError(f"Unknown COMPETITION_STORE '{backend}'.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        COMPETITION_STORE=os.environ.get("COMPETITION_STORE"),
        STORE_TIMEOUT_SECONDS=float(
            os.environ.get("STORE_TIMEOUT_SECONDS") or DEFAULT_STORE_TIMEOUT_SECONDS
        ),
        FIRESTORE_MAX_ATTEMPTS=int(
            os.environ.get("FIRESTORE_MAX_ATTEMPTS") or DEFAULT_FIRESTORE_MAX_ATTEMPTS
        ),
    )

    if test_config:
        app.config.update(test_config)

    if not app.config.get("COMPETITION_STORE"):
        app.config["COMPETITION_STORE"] = (
            "memory" if app.config.get("TESTING") else "firestore"
        )

    # Initialize Firebase Admin SDK only when Firestore backs the store
    if not app.config.get("TESTING") and app.config["COMPETITION_STORE"] == "firestore":
        _init_firebase(app)

    app.extensions[STORE_EXTENSION] = _create_store(app)

    # Initialize extensions
    csrf.init_app(app)

    # Register blueprints
    from . import competition as competition_bp

    csrf.exempt(competition_bp.bp)
    app.register_blueprint(competition_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
