"""
talk - Talk Page API Blueprint

This blueprint exposes the comment engine as JSON endpoints:
- Parsing a page into comments and sections (with change tracking)
- Locating a comment in the current page code
- Replying, editing and deleting comments, adding sections
- Finding the edit that added a comment
"""

from flask import Blueprint

bp = Blueprint("talk", __name__)

from main_app.talk import routes  # Import routes after bp is created
