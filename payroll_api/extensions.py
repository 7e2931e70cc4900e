import os
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

_PG_PREFIXES = ("postgres://", "postgresql://")

# pooled engines only; sqlite rejects pool_size / max_overflow
POOL_DEFAULTS = {
    "pool_pre_ping": True,
    "pool_recycle": 270,
    "pool_size": 5,
    "max_overflow": 2,
    "pool_timeout": 30,
}


def normalize_db_url(url: str) -> str:
    """Point bare Postgres URLs (as handed out by hosting dashboards) at the psycopg 3 driver."""
    if not url:
        return url
    for prefix in _PG_PREFIXES:
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def engine_options(url: str, overrides: dict | None = None) -> dict:
    if url.startswith("sqlite"):
        return dict(overrides or {})
    return {**POOL_DEFAULTS, **(overrides or {})}


def init_db(app):
    url = os.getenv("DATABASE_URL") or app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    url = normalize_db_url(url)
    app.config["SQLALCHEMY_DATABASE_URI"] = url
    # a config object may tune the pool; its keys win over the defaults
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(url, app.config.get("SQLALCHEMY_ENGINE_OPTIONS"))

    db.init_app(app)
    migrate.init_app(app, db)
