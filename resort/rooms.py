import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from resort.errors import Conflict, InvalidInput, NotFound
from resort.models import Booking, Room
from resort.validators import parse_bool, parse_positive_decimal, parse_positive_int

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = ('Please enter all required room fields: number, type, price, and capacity, '
                           'and ensure price/capacity are positive numbers.')


def _clean_room_fields(data, partial):
    """Validate the room fields present in ``data`` and return them typed."""
    fields = {}

    if 'room_number' in data or not partial:
        room_number = data.get('room_number')
        if room_number is None or not str(room_number).strip():
            raise InvalidInput(REQUIRED_FIELDS_MESSAGE if not partial else 'Room number cannot be empty.')
        fields['room_number'] = str(room_number).strip()

    if 'type' in data or not partial:
        room_type = data.get('type')
        if not isinstance(room_type, str) or not room_type.strip():
            raise InvalidInput(REQUIRED_FIELDS_MESSAGE if not partial else 'Room type cannot be empty.')
        fields['type'] = room_type.strip()

    if 'price_per_night' in data or not partial:
        fields['price_per_night'] = parse_positive_decimal(
            data.get('price_per_night'), 'Price per night must be a positive number.')

    if 'capacity' in data or not partial:
        fields['capacity'] = parse_positive_int(
            data.get('capacity'), 'Capacity must be a positive whole number.')

    if 'description' in data:
        fields['description'] = data['description']

    if 'image_url' in data:
        fields['image_url'] = data['image_url'] or None

    if 'is_available' in data:
        fields['is_available'] = parse_bool(data['is_available'], 'is_available must be true or false.')

    return fields


class RoomCatalog:
    def __init__(self, session):
        self.session = session

    def list_available(self):
        query = select(Room).filter_by(is_available=True).order_by(Room.room_number)
        return self.session.execute(query).scalars().all()

    def list_all(self):
        return self.session.execute(select(Room).order_by(Room.room_number)).scalars().all()

    def get(self, room_id):
        room = self.session.get(Room, room_id)
        if room is None:
            raise NotFound('Room not found.')
        return room

    def _number_taken(self, room_number, exclude_id=None):
        query = select(Room.id).filter_by(room_number=room_number)
        if exclude_id is not None:
            query = query.where(Room.id != exclude_id)
        return self.session.execute(query.limit(1)).first() is not None

    def _commit(self, message):
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise Conflict(message)

    def create(self, data):
        fields = _clean_room_fields(data or {}, partial=False)
        fields.setdefault('is_available', True)

        if self._number_taken(fields['room_number']):
            raise Conflict('Room number already exists. Please choose a different one.')

        room = Room(**fields)
        self.session.add(room)
        self._commit('Room number already exists. Please choose a different one.')
        logger.info('Room %s created (id=%s)', room.room_number, room.id)
        return room

    def update(self, room_id, data):
        room = self.get(room_id)
        fields = _clean_room_fields(data or {}, partial=True)
        if not fields:
            raise InvalidInput('No fields provided for update.')

        new_number = fields.get('room_number')
        if new_number is not None and new_number != room.room_number \
                and self._number_taken(new_number, exclude_id=room.id):
            raise Conflict('New room number already exists for another room.')

        for name, value in fields.items():
            setattr(room, name, value)
        self._commit('New room number already exists for another room.')
        logger.info('Room %s updated: %s', room.id, ', '.join(sorted(fields)))
        return room

    def delete(self, room_id):
        room = self.get(room_id)

        referenced = self.session.execute(
            select(Booking.id).filter_by(room_id=room.id).limit(1)
        ).first()
        if referenced is not None:
            raise Conflict('Cannot delete a room that has bookings. Mark it unavailable instead.')

        room_number = room.room_number
        self.session.delete(room)
        self.session.commit()
        logger.info('Room %s deleted (id=%s)', room_number, room_id)
        return room_number
