"""
API routes for the back-office access core.

This package contains all API endpoint definitions organized by feature.
"""

from src.api.routes import activity_logs, auth, health, menus, roles, root, settings, users

__all__ = ["activity_logs", "auth", "health", "menus", "roles", "root", "settings", "users"]
