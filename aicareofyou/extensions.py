"""Application-wide Flask extensions."""

from flask_sqlalchemy import SQLAlchemy


# A single SQLAlchemy handle backing the local persistence fallback. The
# engine is configured in :func:`aicareofyou.create_app`; when Supabase is
# configured the tables stay empty.
db = SQLAlchemy()
