from .common import random_token, session_id

__all__ = ["random_token", "session_id"]
