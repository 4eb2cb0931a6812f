# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-Actor"
MAX_ACTOR_LENGTH = 128


def _resolve_actor() -> str | None:
    data = request.get_json(silent=True)
    actor = data.get("actor") if isinstance(data, dict) else None
    if actor is None:
        actor = request.headers.get(ACTOR_HEADER)
    if not isinstance(actor, str):
        return None
    return actor.strip() or None


def require_actor(f):
    """
    Require an actor for every mutating request.

    Sets g.actor from the JSON body "actor" field, falling back to the
    X-Actor header. Every log entry records who made the change, so a
    request without one is rejected before any work is done.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = _resolve_actor()
        if not actor:
            return jsonify({
                "error": "validation_error",
                "message": f"actor is required (body field or {ACTOR_HEADER} header)",
            }), 400
        if len(actor) > MAX_ACTOR_LENGTH:
            return jsonify({
                "error": "validation_error",
                "message": f"actor exceeds max length {MAX_ACTOR_LENGTH}",
            }), 400

        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function
