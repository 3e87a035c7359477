"""blueprints/api/__init__.py — analyze / resign / download endpoints."""
from flask import Blueprint

api_bp = Blueprint("resign_api", __name__)

from . import routes  # noqa: F401, E402
