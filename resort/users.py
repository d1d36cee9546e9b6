import logging

import bcrypt
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from resort.auth import ensure_not_self
from resort.errors import Conflict, InvalidInput, NotFound, Unauthenticated
from resort.models import Booking, Role, User

logger = logging.getLogger(__name__)

ROLE_CHOICES = ', '.join(role.value for role in Role)


def hash_password(password):
    rounds = current_app.config.get('BCRYPT_ROUNDS', 10)
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds)).decode('utf-8')


def check_password(password, password_hash):
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


class CredentialStore:
    def __init__(self, session):
        self.session = session

    def find_by_username(self, username):
        return self.session.execute(
            select(User).filter_by(username=username)
        ).scalar_one_or_none()

    def get(self, user_id):
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFound('User not found.')
        return user

    def list_users(self):
        return self.session.execute(select(User).order_by(User.id)).scalars().all()

    def register(self, username, password, role=None):
        if not username or not password:
            raise InvalidInput('Please enter all required fields: username and password.')
        if not isinstance(username, str) or not isinstance(password, str):
            raise InvalidInput('Username and password must be strings.')

        if self.find_by_username(username) is not None:
            raise Conflict('Username already exists. Please choose a different one.')

        assigned = Role.GUEST
        if role is not None and current_app.config.get('ALLOW_ROLE_ON_REGISTER'):
            assigned = Role.parse(role) or Role.GUEST

        user = User(username=username, password_hash=hash_password(password), role=assigned)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict('Username already exists. Please choose a different one.')
        logger.info('Registered user %s (id=%s, role=%s)', user.username, user.id, assigned.value)
        return user

    def verify_credentials(self, username, password):
        if not username or not password:
            raise InvalidInput('Please enter both username and password.')

        user = self.find_by_username(username)
        if user is None or not check_password(str(password), user.password_hash):
            logger.warning('Failed login for %r', username)
            raise Unauthenticated('Invalid credentials.')
        return user

    def set_role(self, target_id, role, acting):
        new_role = Role.parse(role)
        if new_role is None:
            raise InvalidInput('Invalid role provided. Allowed roles are: {}.'.format(ROLE_CHOICES))

        user = self.get(target_id)
        if new_role is not Role.ADMIN:
            ensure_not_self(acting, user.id, 'Administrators cannot demote their own account directly.')

        user.role = new_role
        self.session.commit()
        logger.info('User %s changed role of user %s to %s', acting.id, user.id, new_role.value)
        return user

    def delete(self, target_id, acting):
        user = self.get(target_id)
        ensure_not_self(acting, user.id, 'You cannot delete your own account.')

        has_bookings = self.session.execute(
            select(Booking.id).filter_by(user_id=user.id).limit(1)
        ).first()
        if has_bookings is not None:
            raise Conflict('Cannot delete user because they have existing bookings.')

        username = user.username
        self.session.delete(user)
        self.session.commit()
        logger.info('User %s deleted user %s (id=%s)', acting.id, username, target_id)
        return username

    def ensure_admin(self, username, password):
        if not username or not password:
            raise InvalidInput('Username and password are required.')

        user = self.find_by_username(username)
        created = user is None
        if created:
            user = User(username=username, role=Role.ADMIN)
            self.session.add(user)
        user.password_hash = hash_password(password)
        user.role = Role.ADMIN
        self.session.commit()
        logger.info('Admin account %s %s', username, 'created' if created else 'reset')
        return user, created
