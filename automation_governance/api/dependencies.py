"""Shared FastAPI dependencies."""

import os

DEFAULT_USER_ID = "demo-user"


def get_user_id() -> str:
    """Resolve the acting user.

    Authentication is not wired in yet; every request acts as DEFAULT_USER_ID.
    """
    return os.getenv("DEFAULT_USER_ID", DEFAULT_USER_ID)
