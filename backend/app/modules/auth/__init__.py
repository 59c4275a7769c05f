# Authentication module

from app.modules.auth.dependencies import (
    get_current_admin,
    require_quote_editor,
)

__all__ = [
    "get_current_admin",
    "require_quote_editor",
]
