"""Flask application factory."""

import logging
import os
import secrets
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask

from .extensions import db
from .services.ai_service import AIService
from .services.speech_service import SpeechService
from .services.storage_service import StorageService
from .services.video_service import VideoService


def _resolve_secret_key() -> str:
    """Return a secret key for Flask.

    ``FLASK_SECRET_KEY`` (or the legacy ``SECRET_KEY``) is used when set;
    otherwise a temporary key is generated so the app can boot locally.
    """

    for name in ("FLASK_SECRET_KEY", "SECRET_KEY"):
        value = os.environ.get(name)
        if value:
            return value

    return secrets.token_hex(32)


def _bool_from_env(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def create_app() -> Flask:
    """Configure and return the Flask application."""

    load_dotenv()

    app = Flask(__name__)
    app.config["SECRET_KEY"] = _resolve_secret_key()
    app.config["DEBUG"] = _bool_from_env("FLASK_DEBUG", False)

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

    # Vendor credentials are looked up per call, so these services construct
    # even when OpenAI, ElevenLabs or Tavus keys are absent.
    app.storage_service = StorageService()
    app.ai_service = AIService()
    app.speech_service = SpeechService()
    app.video_service = VideoService()

    default_sqlite_path = Path(app.instance_path) / "aicareofyou.db"
    default_sqlite_path.parent.mkdir(parents=True, exist_ok=True)
    database_uri = os.environ.get("LOCAL_DATABASE_URI", f"sqlite:///{default_sqlite_path}")

    if database_uri.startswith("sqlite:///"):
        sqlite_path = database_uri.replace("sqlite:///", "", 1)
        Path(sqlite_path).expanduser().parent.mkdir(parents=True, exist_ok=True)

    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {"pool_pre_ping": True}
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)

    # Ensure models are registered with SQLAlchemy before any table creation.
    from . import models  # noqa: F401

    db.init_app(app)

    if not app.storage_service.uses_supabase:
        with app.app_context():
            db.create_all()

    from .functions import functions_bp
    from .routes import main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(functions_bp)

    return app
