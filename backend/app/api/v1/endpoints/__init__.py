# API endpoints
from . import auth, quotes, health

__all__ = ["auth", "quotes", "health"]
