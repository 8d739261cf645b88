"""Expose the application factory at package level.

Callers can ``from crm_signup import create_app`` without traversing the
package structure; gunicorn uses the same entry point.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
