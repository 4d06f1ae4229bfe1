"""Authentication module.

Decodes bearer tokens issued by the main auth service into an ``Actor``.
"""

from integrity.auth.jwt import (
    Actor,
    create_access_token,
    decode_token,
    get_current_actor,
    require_admin,
    require_service,
)

__all__ = [
    "Actor",
    "create_access_token",
    "decode_token",
    "get_current_actor",
    "require_admin",
    "require_service",
]
