from functools import wraps

from flask_login import current_user

from app.errors import AppError, AuthenticationError


def role_required(*roles):
    """Restrict an API view to signed-in users holding one of ``roles``."""

    def wrapper(func):
        @wraps(func)
        def inner(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthenticationError("Authentication required.")
            if current_user.role not in roles:
                raise AppError("Forbidden.", 403, code="forbidden")
            return func(*args, **kwargs)

        return inner

    return wrapper
