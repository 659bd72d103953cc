"""
extensions.py — Flask extension singletons.

SQLAlchemy and marshmallow live here as module-level objects so models,
services and routes can import them without circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from royalty_ledger.app.extensions import db, ma
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance for the app factory.
#
# Request schemas (app/schemas/) inherit from marshmallow.Schema directly,
# NOT from ma.Schema: ma.Schema needs an active application context, and
# the unit tests load schemas without one.
ma = Marshmallow()
