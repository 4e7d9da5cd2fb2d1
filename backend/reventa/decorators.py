# Overview: Request guards for scheduler and admin API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_shared_secret(config_key: str):
    """
    Require `Authorization: Bearer <secret>` when config_key is set.

    An unset or empty secret leaves the route open, which is how local
    development and the test suite run.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            secret = current_app.config.get(config_key)
            if not secret:
                return f(*args, **kwargs)

            token = _bearer_token()
            if token is None or not hmac.compare_digest(token, secret):
                current_app.logger.warning(
                    "Unauthorized call to %s %s from %s",
                    request.method,
                    request.path,
                    request.remote_addr,
                )
                return jsonify({"error": "No autorizado"}), 401

            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_cron_secret = require_shared_secret("CRON_SECRET")
require_admin_token = require_shared_secret("ADMIN_TOKEN")
