from functools import wraps

from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from wikiclase.errors import Forbidden, Unauthorized
from wikiclase.extensions import db
from wikiclase.models import User


def current_user():
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None


def role_required(*roles):
    """Allow the request only for an authenticated user holding one of ``roles``."""

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            user = current_user()
            if not user:
                raise Unauthorized("Unknown user")
            if user.role.value not in roles:
                raise Forbidden("Unauthorized")
            return fn(*args, **kwargs)

        return wrapper

    return decorator
