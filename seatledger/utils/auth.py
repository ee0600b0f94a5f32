import hmac
from functools import wraps

from flask import current_app, g, request
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from seatledger import db
from seatledger.models import Owner
from seatledger.utils.responses import error


def owner_required(f):
    """Resolve the caller from the bearer token and expose it as `g.owner`."""
    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            verify_jwt_in_request()
        except (JWTExtendedException, PyJWTError) as e:
            return error(str(e), 401)

        owner = db.session.get(Owner, get_jwt_identity())
        if not owner:
            return error('User not found or invalid token', 401)
        g.owner = owner
        return f(*args, **kwargs)
    return decorated


def cron_secret_required(f):
    """Guard the autopay sweep with `CRON_SECRET` when one is configured."""
    @wraps(f)
    def decorated(*args, **kwargs):
        secret = current_app.config.get('CRON_SECRET')
        if secret:
            supplied = request.headers.get('Authorization', '')
            if not hmac.compare_digest(supplied, f'Bearer {secret}'):
                return error('Unauthorized', 401)
        return f(*args, **kwargs)
    return decorated
