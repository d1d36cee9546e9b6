"""Booking ledger: creation, listing and status changes of room bookings.

Bookings in a blocking status (pending, confirmed) hold their room for the
half-open range [check_in_date, check_out_date). Two blocking bookings on the
same room never overlap; a stay may start on the day another one ends.
"""
import datetime
import logging

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from resort import db
from resort.auth import ensure_can_access_booking
from resort.errors import Conflict, InvalidInput, NotFound
from resort.models import BLOCKING_STATUSES, Booking, BookingStatus, Room
from resort.validators import parse_date, parse_positive_int

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

STATUS_CHOICES = ', '.join(status.value for status in BookingStatus)


def count_nights(check_in, check_out):
    return (check_out - check_in).days


def compute_total_price(price_per_night, check_in, check_out):
    return price_per_night * count_nights(check_in, check_out)


def _parse_status(value):
    status = BookingStatus.parse(value)
    if status is None:
        raise InvalidInput('Invalid status provided. Allowed statuses are: {}.'.format(STATUS_CHOICES))
    return status


class BookingLedger:
    def __init__(self, session):
        self.session = session

    def _listing_query(self):
        return (
            select(Booking)
            .options(joinedload(Booking.room), joinedload(Booking.user))
            .order_by(Booking.created_at.desc(), Booking.id.desc())
        )

    def _lock_room(self, room_id):
        # FOR UPDATE serialises concurrent bookings of one room; SQLite ignores it
        # and serialises writers on its own.
        query = select(Room).where(Room.id == room_id).with_for_update()
        return self.session.execute(query).scalar_one_or_none()

    def find_overlapping(self, room_id, check_in, check_out, exclude_id=None):
        query = select(Booking.id).where(
            Booking.room_id == room_id,
            Booking.status.in_(BLOCKING_STATUSES),
            Booking.check_in_date < check_out,
            Booking.check_out_date > check_in,
        )
        if exclude_id is not None:
            query = query.where(Booking.id != exclude_id)
        return self.session.execute(query).scalars().all()

    def create(self, user_id, room_id, check_in_date, check_out_date, guests, today=None):
        if not room_id or not check_in_date or not check_out_date or not guests:
            raise InvalidInput('Please provide room ID, check-in date, check-out date, and number of guests.')

        room_id = parse_positive_int(room_id, 'Room ID must be a positive whole number.')
        guests = parse_positive_int(guests, 'Number of guests must be a positive number.')
        check_in = parse_date(check_in_date, 'check_in_date')
        check_out = parse_date(check_out_date, 'check_out_date')
        today = today or datetime.date.today()

        if check_in >= check_out:
            raise InvalidInput('Check-out date must be after check-in date.')
        if check_in < today:
            raise InvalidInput('Check-in date cannot be in the past.')

        room = self._lock_room(room_id)
        if room is None:
            raise NotFound('Room not found.')
        if not room.is_available:
            raise InvalidInput('This room is currently not available for booking.')
        if guests > room.capacity:
            raise InvalidInput('Number of guests exceeds room capacity ({}).'.format(room.capacity))

        if self.find_overlapping(room.id, check_in, check_out):
            self.session.rollback()
            logger.warning('Room %s already booked between %s and %s', room.id, check_in, check_out)
            raise Conflict('This room is already booked for some part of the requested dates.')

        booking = Booking(
            room_id=room.id,
            user_id=user_id,
            check_in_date=check_in,
            check_out_date=check_out,
            guests=guests,
            total_price=compute_total_price(room.price_per_night, check_in, check_out),
            status=BookingStatus.PENDING,
        )
        self.session.add(booking)
        self.session.flush()

        # A concurrent writer may have inserted between the check and the flush.
        if self.find_overlapping(room.id, check_in, check_out, exclude_id=booking.id):
            self.session.rollback()
            logger.warning('Concurrent booking detected for room %s', room.id)
            raise Conflict('This room is already booked for some part of the requested dates.')

        self.session.commit()
        logger.info('Booking %s created by user %s for room %s (%s to %s)',
                    booking.id, user_id, room.id, check_in, check_out)
        return booking

    def get(self, booking_id):
        booking = self.session.execute(
            self._listing_query().where(Booking.id == booking_id)
        ).unique().scalar_one_or_none()
        if booking is None:
            raise NotFound('Booking not found.')
        return booking

    def list_mine(self, user_id):
        query = self._listing_query().where(Booking.user_id == user_id)
        return self.session.execute(query).unique().scalars().all()

    def list_all(self, status=None):
        query = self._listing_query()
        if status is not None:
            query = query.where(Booking.status == _parse_status(status))
        return self.session.execute(query).unique().scalars().all()

    def _apply_status(self, booking, new_status):
        if new_status in BLOCKING_STATUSES and booking.status not in BLOCKING_STATUSES:
            self._lock_room(booking.room_id)
            if self.find_overlapping(booking.room_id, booking.check_in_date,
                                     booking.check_out_date, exclude_id=booking.id):
                self.session.rollback()
                raise Conflict('Another booking now holds this room for some of these dates.')

        booking.status = new_status
        booking.updated_at = db.func.now()
        self.session.commit()
        return booking

    def transition(self, booking_id, new_status):
        """Move a booking along the pending -> confirmed -> completed lifecycle."""
        new_status = _parse_status(new_status)
        booking = self.get(booking_id)

        if new_status not in ALLOWED_TRANSITIONS[booking.status]:
            raise InvalidInput('Cannot change booking status from {} to {}.'.format(
                booking.status.value, new_status.value))

        self._apply_status(booking, new_status)
        logger.info('Booking %s moved to %s', booking.id, new_status.value)
        return booking

    def set_status(self, booking_id, new_status):
        """Overwrite the status of a booking regardless of its current one."""
        new_status = _parse_status(new_status)
        booking = self.get(booking_id)

        previous = booking.status
        self._apply_status(booking, new_status)
        logger.info('Booking %s status forced from %s to %s',
                    booking.id, previous.value, new_status.value)
        return booking

    def cancel(self, booking_id, identity):
        booking = self.get(booking_id)
        ensure_can_access_booking(identity, booking)

        if booking.status is BookingStatus.CANCELLED:
            raise InvalidInput('Booking is already cancelled.')
        if booking.status is BookingStatus.COMPLETED:
            raise InvalidInput('Cannot cancel a completed booking.')

        self._apply_status(booking, BookingStatus.CANCELLED)
        logger.info('Booking %s cancelled by user %s', booking.id, identity.id)
        return booking
