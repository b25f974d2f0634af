"""Authentication helpers shared across blueprints."""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, cast

from flask import jsonify
from flask_login import current_user

from sessionbook.models import UserRole

F = TypeVar('F', bound=Callable[..., object])


def _unauthorized():
    return jsonify({'error': 'Authentication required', 'code': 'UNAUTHORIZED'}), 401


def _forbidden(message: str):
    return jsonify({'error': message, 'code': 'FORBIDDEN'}), 403


def login_required_json(func: F) -> F:
    """Decorator requiring an authenticated, active user."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return _unauthorized()
        return func(*args, **kwargs)
    return cast(F, wrapper)


def admin_required(func: F) -> F:
    """Decorator to ensure the current user has admin privileges."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return _unauthorized()

        if not current_user.has_role(UserRole.ADMIN):
            return _forbidden('Not authorized - Admin access required')

        return func(*args, **kwargs)

    return cast(F, wrapper)


def role_required(*required_roles: UserRole | str):
    """Decorator factory to require specific roles."""
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return _unauthorized()

            if not current_user.has_role(*required_roles):
                return _forbidden('You do not have permission to perform this action')

            return func(*args, **kwargs)
        return cast(F, wrapper)
    return decorator


def is_admin() -> bool:
    return bool(current_user.is_authenticated and current_user.has_role(UserRole.ADMIN))


__all__ = [
    'login_required_json',
    'admin_required',
    'role_required',
    'is_admin',
]
