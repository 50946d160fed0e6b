# Security module
from app.security.auth import (
    create_access_token, decode_token, get_current_user,
    require_role, require_super_admin
)

__all__ = [
    'create_access_token', 'decode_token', 'get_current_user',
    'require_role', 'require_super_admin'
]
