# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


def require_actor(f):
    """
    Require an acting user id and expose it as g.actor_id.

    Authentication is handled in front of this service; the gateway forwards
    the authenticated user in the X-User-Id header.

    Returns 401 if the header is missing or not an integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get("X-User-Id") or "").strip()
        if not raw:
            return jsonify({"error": "Authentication required"}), 401
        try:
            g.actor_id = int(raw)
        except ValueError:
            return jsonify({"error": "Invalid X-User-Id header"}), 401
        return f(*args, **kwargs)

    return decorated_function
