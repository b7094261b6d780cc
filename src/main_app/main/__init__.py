"""
main - Main Blueprint

This blueprint handles the main application routes including:
- User identification (set_user, logout)
- Health check
- Index (pages with stored comment snapshots)
"""

from flask import Blueprint

bp = Blueprint("main", __name__)

from main_app.main import routes  # Import routes after bp is created
