# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request


def require_actor(f):
    """
    Require an acting user id and expose it as g.actor_id.

    Authentication happens upstream; the gateway forwards the authenticated
    user as the X-Actor-Id header. Returns 401 if it is missing or not an
    integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Actor-Id", "").strip()
        if not raw:
            return jsonify({"error": "Actor required"}), 401
        try:
            g.actor_id = int(raw)
        except ValueError:
            return jsonify({"error": "Invalid actor id"}), 401
        return f(*args, **kwargs)

    return decorated_function
