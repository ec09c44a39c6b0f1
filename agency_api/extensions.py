# agency_api/extensions.py
"""
Extension singletons, bound to the app in ``create_app``, and the database
URL handling ``init_db`` applies before binding SQLAlchemy.
"""
import os
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()

PSYCOPG_SCHEME = "postgresql+psycopg://"

# only applied to server databases; sqlite keeps SQLAlchemy's own pool
SERVER_POOL = {
    "pool_pre_ping": True,
    "pool_recycle": 270,
    "pool_size": 5,
    "max_overflow": 2,
    "pool_timeout": 30,
}


def normalize_db_url(url: str) -> str:
    """Bare postgres URLs, as hosting dashboards hand them out, go through psycopg 3."""
    for scheme in ("postgres://", "postgresql://"):
        if url and url.startswith(scheme):
            return PSYCOPG_SCHEME + url[len(scheme):]
    return url


def engine_options(url: str) -> dict:
    if not url or url.startswith("sqlite"):
        return {}
    return dict(SERVER_POOL)


def init_db(app):
    url = normalize_db_url(os.getenv("DATABASE_URL") or app.config.get("SQLALCHEMY_DATABASE_URI") or "")
    app.config["SQLALCHEMY_DATABASE_URI"] = url
    opts = engine_options(url)
    if opts:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts
    db.init_app(app)
