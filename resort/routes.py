from flask import Blueprint, jsonify, request
from sqlalchemy import func, select

from resort import db
from resort.auth import (BOOKING_MANAGERS, authenticate, authorize, current_identity,
                         ensure_can_access_booking, issue_token)
from resort.bookings import BookingLedger
from resort.errors import InvalidInput
from resort.models import Booking, Role, Room, User
from resort.rooms import RoomCatalog
from resort.users import CredentialStore

api = Blueprint('api', __name__)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput('Request body must be a JSON object.')
    return data


def _count(model):
    return db.session.scalar(select(func.count()).select_from(model))


def _auth_payload(user, message):
    return {
        'message': message,
        'token': issue_token(user),
        'user': {'id': user.id, 'username': user.username, 'role': user.role.value},
    }


@api.route('/', methods=['GET'])
def index():
    return 'Backend server is running!'


### USERS ###

@api.route('/api/register', methods=['POST'])
def register():
    data = _json_body()
    user = CredentialStore(db.session).register(
        data.get('username'), data.get('password'), data.get('role'))
    return jsonify(_auth_payload(user, 'User registered successfully!')), 201


@api.route('/api/login', methods=['POST'])
def login():
    data = _json_body()
    user = CredentialStore(db.session).verify_credentials(data.get('username'), data.get('password'))
    return jsonify(_auth_payload(user, 'Logged in successfully!')), 200


@api.route('/api/protected', methods=['GET'])
@authenticate
def protected():
    identity = current_identity()
    return jsonify({
        'message': 'You are logged in as {}.'.format(identity.role.value),
        'user': {'id': identity.id, 'role': identity.role.value},
    }), 200


### ROOMS ###

@api.route('/api/rooms', methods=['GET'])
def get_rooms():
    rooms = RoomCatalog(db.session).list_available()
    return jsonify([room.to_dict() for room in rooms]), 200


@api.route('/api/rooms/<int:room_id>', methods=['GET'])
def get_room(room_id):
    room = RoomCatalog(db.session).get(room_id)
    return jsonify(room.to_dict()), 200


### BOOKINGS ###

@api.route('/api/bookings', methods=['POST'])
@authenticate
def create_booking():
    data = _json_body()
    booking = BookingLedger(db.session).create(
        current_identity().id,
        data.get('room_id'),
        data.get('check_in_date'),
        data.get('check_out_date'),
        data.get('guests'),
    )
    return jsonify({'message': 'Booking created successfully!', 'booking': booking.to_dict()}), 201


@api.route('/api/bookings/my', methods=['GET'])
@authenticate
def get_my_bookings():
    bookings = BookingLedger(db.session).list_mine(current_identity().id)
    return jsonify([booking.to_dict() for booking in bookings]), 200


@api.route('/api/bookings/<int:booking_id>', methods=['GET'])
@authenticate
def get_booking(booking_id):
    booking = BookingLedger(db.session).get(booking_id)
    ensure_can_access_booking(current_identity(), booking)
    return jsonify(booking.to_dict()), 200


@api.route('/api/bookings/<int:booking_id>/cancel', methods=['PUT'])
@authenticate
def cancel_booking(booking_id):
    booking = BookingLedger(db.session).cancel(booking_id, current_identity())
    return jsonify({
        'message': 'Booking {} has been successfully cancelled.'.format(booking.id),
        'booking': booking.to_dict(),
    }), 200


### ADMINISTRATION ###

@api.route('/api/admin/dashboard', methods=['GET'])
@authorize(Role.ADMIN)
def admin_dashboard():
    return jsonify({
        'message': 'Welcome to the Admin Dashboard.',
        'user': {'id': current_identity().id, 'role': current_identity().role.value},
        'counts': {
            'users': _count(User),
            'rooms': _count(Room),
            'bookings': _count(Booking),
        },
    }), 200


@api.route('/api/admin/rooms', methods=['GET'])
@authorize(Role.ADMIN)
def admin_get_rooms():
    rooms = RoomCatalog(db.session).list_all()
    return jsonify([room.to_dict() for room in rooms]), 200


@api.route('/api/admin/rooms', methods=['POST'])
@authorize(Role.ADMIN)
def admin_create_room():
    room = RoomCatalog(db.session).create(_json_body())
    return jsonify({'message': 'Room added successfully!', 'room': room.to_dict()}), 201


@api.route('/api/admin/rooms/<int:room_id>', methods=['PUT'])
@authorize(Role.ADMIN)
def admin_update_room(room_id):
    room = RoomCatalog(db.session).update(room_id, _json_body())
    return jsonify({'message': 'Room updated successfully!', 'room': room.to_dict()}), 200


@api.route('/api/admin/rooms/<int:room_id>', methods=['DELETE'])
@authorize(Role.ADMIN)
def admin_delete_room(room_id):
    RoomCatalog(db.session).delete(room_id)
    return jsonify({'message': 'Room deleted successfully!'}), 200


@api.route('/api/admin/bookings', methods=['GET'])
@authorize(*BOOKING_MANAGERS)
def admin_get_bookings():
    bookings = BookingLedger(db.session).list_all(request.args.get('status'))
    return jsonify([booking.to_dict() for booking in bookings]), 200


@api.route('/api/admin/bookings/<int:booking_id>/status', methods=['PUT'])
@authorize(*BOOKING_MANAGERS)
def admin_set_booking_status(booking_id):
    booking = BookingLedger(db.session).set_status(booking_id, _json_body().get('status'))
    return jsonify({
        'message': 'Booking {} status updated to {} successfully!'.format(booking.id, booking.status.value),
        'booking': booking.to_dict(),
    }), 200


@api.route('/api/admin/bookings/<int:booking_id>/transition', methods=['POST'])
@authorize(*BOOKING_MANAGERS)
def admin_transition_booking(booking_id):
    booking = BookingLedger(db.session).transition(booking_id, _json_body().get('status'))
    return jsonify({
        'message': 'Booking {} moved to {}.'.format(booking.id, booking.status.value),
        'booking': booking.to_dict(),
    }), 200


@api.route('/api/admin/users', methods=['GET'])
@authorize(Role.ADMIN)
def admin_get_users():
    users = CredentialStore(db.session).list_users()
    return jsonify([user.to_dict() for user in users]), 200


@api.route('/api/admin/users/<int:user_id>', methods=['GET'])
@authorize(Role.ADMIN)
def admin_get_user(user_id):
    user = CredentialStore(db.session).get(user_id)
    return jsonify(user.to_dict()), 200


@api.route('/api/admin/users/<int:user_id>', methods=['PUT'])
@authorize(Role.ADMIN)
def admin_update_user_role(user_id):
    user = CredentialStore(db.session).set_role(user_id, _json_body().get('role'), current_identity())
    return jsonify({
        'message': 'User {} role updated to {} successfully!'.format(user.id, user.role.value),
        'user': user.to_dict(),
    }), 200


@api.route('/api/admin/users/<int:user_id>', methods=['DELETE'])
@authorize(Role.ADMIN)
def admin_delete_user(user_id):
    username = CredentialStore(db.session).delete(user_id, current_identity())
    return jsonify({'message': 'User {} (ID: {}) deleted successfully.'.format(username, user_id)}), 200
