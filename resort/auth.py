"""Token issuing/verification and the access policy built on top of it.

A verified token is the only source of identity for a request: the user id
and role it carries are trusted until the token expires, and are not looked
up again in the database.
"""
import logging
from collections import namedtuple
from functools import wraps

from flask import g, jsonify
from flask_jwt_extended import create_access_token, get_jwt, verify_jwt_in_request

from resort.errors import Forbidden, Unauthenticated
from resort.models import Role

logger = logging.getLogger(__name__)

Identity = namedtuple('Identity', ['id', 'role'])

BOOKING_MANAGERS = (Role.ADMIN, Role.CUSTOMER_SERVICE)


def issue_token(user):
    return create_access_token(identity=str(user.id),
                               additional_claims={'role': user.role.value})


def identity_from_claims(claims):
    try:
        user_id = int(claims.get('sub'))
    except (TypeError, ValueError):
        raise Unauthenticated()
    role = Role.parse(claims.get('role'))
    if role is None:
        raise Unauthenticated()
    return Identity(id=user_id, role=role)


def current_identity():
    identity = g.get('identity')
    if identity is None:
        raise Unauthenticated('No authentication token provided. Authorization denied.')
    return identity


def authenticate(fn):
    @wraps(fn)
    def decorated(*args, **kwargs):
        verify_jwt_in_request()
        g.identity = identity_from_claims(get_jwt())
        return fn(*args, **kwargs)
    return decorated


def authorize(*roles):
    allowed = frozenset(roles)

    def decorator(fn):
        @wraps(fn)
        @authenticate
        def decorated(*args, **kwargs):
            identity = current_identity()
            if identity.role not in allowed:
                logger.warning('User %s (%s) denied access to %s',
                               identity.id, identity.role.value, fn.__name__)
                raise Forbidden()
            return fn(*args, **kwargs)
        return decorated
    return decorator


def can_manage_bookings(role):
    return role in BOOKING_MANAGERS


def ensure_can_access_booking(identity, booking):
    if booking.user_id != identity.id and not can_manage_bookings(identity.role):
        raise Forbidden('Access denied. You can only manage your own bookings.')


def ensure_not_self(identity, target_id, message):
    if identity.id == target_id:
        raise Forbidden(message)


def register_jwt_callbacks(jwt):
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({'message': 'No authentication token provided. Authorization denied.'}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({'message': Unauthenticated.message}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({'message': Unauthenticated.message}), 401
