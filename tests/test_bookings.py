import random
from datetime import date, timedelta
from decimal import Decimal

import pytest

from resort import db
from resort.auth import Identity
from resort.bookings import (BookingLedger, compute_total_price, count_nights)
from resort.errors import ApiError, Conflict, Forbidden, InvalidInput, NotFound
from resort.models import BLOCKING_STATUSES, Booking, BookingStatus, Role
from tests.conftest import day


@pytest.fixture
def ledger(app):
    return BookingLedger(db.session)


def identity(user):
    return Identity(id=user.id, role=user.role)


def test_create_booking_computes_price_and_starts_pending(ledger, guest, make_room):
    user, _ = guest
    room = make_room(price_per_night=100, capacity=2)

    booking = ledger.create(user.id, room.id, day(10), day(12), 2)

    assert booking.status is BookingStatus.PENDING
    assert Decimal(booking.total_price) == Decimal('200')
    assert booking.check_in_date == date.today() + timedelta(days=10)


def test_overlapping_booking_is_rejected(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    ledger.create(user.id, room.id, day(10), day(12), 1)

    with pytest.raises(Conflict):
        ledger.create(user.id, room.id, day(11), day(13), 1)
    with pytest.raises(Conflict):
        ledger.create(user.id, room.id, day(9), day(15), 1)


def test_touching_bookings_do_not_overlap(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    ledger.create(user.id, room.id, day(10), day(12), 1)

    after = ledger.create(user.id, room.id, day(12), day(14), 1)
    before = ledger.create(user.id, room.id, day(8), day(10), 1)

    assert after.id and before.id


def test_same_dates_on_another_room_are_fine(ledger, guest, make_room):
    user, _ = guest
    first, second = make_room(), make_room()
    ledger.create(user.id, first.id, day(10), day(12), 1)

    assert ledger.create(user.id, second.id, day(10), day(12), 1).room_id == second.id


def test_cancelled_and_completed_bookings_do_not_block(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    cancelled = ledger.create(user.id, room.id, day(10), day(12), 1)
    ledger.cancel(cancelled.id, identity(user))
    completed = ledger.create(user.id, room.id, day(10), day(12), 1)
    ledger.set_status(completed.id, 'completed')

    assert ledger.create(user.id, room.id, day(10), day(12), 1).status is BookingStatus.PENDING


@pytest.mark.parametrize('check_in, check_out', [
    (day(10), day(12)),
    (day(-3), day(-1)),
    (day(12), day(10)),
])
def test_guests_over_capacity_always_fail(ledger, guest, make_room, check_in, check_out):
    user, _ = guest
    room = make_room(capacity=2)

    with pytest.raises(InvalidInput):
        ledger.create(user.id, room.id, check_in, check_out, 3)


@pytest.mark.parametrize('check_in, check_out, guests', [
    (None, day(12), 1),
    (day(10), None, 1),
    (day(10), day(12), None),
    (day(10), day(12), 0),
    (day(10), day(12), -1),
    (day(10), day(12), 'two'),
    (day(10), day(12), 1.5),
    (day(10), day(12), '\u00b2'),
    (day(10), day(10), 1),
    (day(12), day(10), 1),
    (day(-1), day(2), 1),
    ('10/06/2030', day(12), 1),
])
def test_invalid_booking_requests(ledger, guest, make_room, check_in, check_out, guests):
    user, _ = guest
    room = make_room()

    with pytest.raises(InvalidInput):
        ledger.create(user.id, room.id, check_in, check_out, guests)


def test_check_in_today_is_allowed(ledger, guest, make_room):
    user, _ = guest
    room = make_room()

    assert ledger.create(user.id, room.id, day(0), day(1), 1).status is BookingStatus.PENDING


def test_today_can_be_pinned(ledger, guest, make_room):
    user, _ = guest
    room = make_room()

    booking = ledger.create(user.id, room.id, '2025-06-01', '2025-06-03', 2, today=date(2025, 5, 1))

    assert Decimal(booking.total_price) == Decimal('200')


def test_unknown_room(ledger, guest):
    user, _ = guest

    with pytest.raises(NotFound):
        ledger.create(user.id, 999, day(10), day(12), 1)


def test_unavailable_room_cannot_be_booked(ledger, guest, make_room):
    user, _ = guest
    room = make_room(is_available=False)

    with pytest.raises(InvalidInput, match='not available'):
        ledger.create(user.id, room.id, day(10), day(12), 1)


def test_price_ignores_time_of_day(ledger, guest, make_room):
    user, _ = guest
    room = make_room(price_per_night='85.50')

    booking = ledger.create(user.id, room.id, day(10) + 'T23:30:00', day(13) + 'T01:00:00Z', 1)

    assert count_nights(booking.check_in_date, booking.check_out_date) == 3
    assert Decimal(booking.total_price) == Decimal('256.50')


def test_compute_total_price():
    assert compute_total_price(Decimal('120'), date(2030, 1, 30), date(2030, 2, 2)) == Decimal('360')
    assert count_nights(date(2030, 3, 1), date(2030, 3, 2)) == 1


def test_listing_is_newest_first_and_enriched(ledger, guest, make_user, make_room):
    user, _ = guest
    other, _ = make_user('bob')
    room = make_room(room_number='101', type='suite')
    first = ledger.create(user.id, room.id, day(10), day(11), 1)
    second = ledger.create(other.id, room.id, day(11), day(12), 1)
    third = ledger.create(user.id, room.id, day(12), day(13), 1)

    mine = ledger.list_mine(user.id)
    everything = ledger.list_all()

    assert [b.id for b in mine] == [third.id, first.id]
    assert [b.id for b in everything] == [third.id, second.id, first.id]
    data = mine[0].to_dict()
    assert data['room_number'] == '101'
    assert data['room_type'] == 'suite'
    assert data['booked_by'] == 'alice'


def test_list_all_filters_by_status(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    kept = ledger.create(user.id, room.id, day(10), day(11), 1)
    dropped = ledger.create(user.id, room.id, day(11), day(12), 1)
    ledger.cancel(dropped.id, identity(user))

    assert [b.id for b in ledger.list_all('pending')] == [kept.id]
    with pytest.raises(InvalidInput):
        ledger.list_all('archived')


def test_owner_can_cancel_pending_and_confirmed(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    pending = ledger.create(user.id, room.id, day(10), day(11), 1)
    confirmed = ledger.create(user.id, room.id, day(11), day(12), 1)
    ledger.transition(confirmed.id, 'confirmed')

    assert ledger.cancel(pending.id, identity(user)).status is BookingStatus.CANCELLED
    assert ledger.cancel(confirmed.id, identity(user)).status is BookingStatus.CANCELLED


def test_cancel_rejects_terminal_bookings(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    booking = ledger.create(user.id, room.id, day(10), day(11), 1)
    ledger.cancel(booking.id, identity(user))

    with pytest.raises(InvalidInput, match='already cancelled'):
        ledger.cancel(booking.id, identity(user))

    ledger.set_status(booking.id, 'completed')
    with pytest.raises(InvalidInput, match='completed'):
        ledger.cancel(booking.id, identity(user))


def test_cancel_by_someone_else(ledger, guest, make_user, make_room):
    user, _ = guest
    stranger, _ = make_user('mallory')
    support, _ = make_user('support', Role.CUSTOMER_SERVICE)
    room = make_room()
    booking = ledger.create(user.id, room.id, day(10), day(11), 1)

    with pytest.raises(Forbidden):
        ledger.cancel(booking.id, identity(stranger))
    assert ledger.cancel(booking.id, identity(support)).status is BookingStatus.CANCELLED


def test_cancel_missing_booking(ledger, guest):
    user, _ = guest

    with pytest.raises(NotFound):
        ledger.cancel(404, identity(user))


def test_strict_transitions(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    booking = ledger.create(user.id, room.id, day(10), day(11), 1)

    with pytest.raises(InvalidInput):
        ledger.transition(booking.id, 'completed')

    ledger.transition(booking.id, 'confirmed')
    ledger.transition(booking.id, 'completed')

    for target in ('pending', 'confirmed', 'cancelled'):
        with pytest.raises(InvalidInput):
            ledger.transition(booking.id, target)
    with pytest.raises(InvalidInput):
        ledger.transition(booking.id, 'bogus')


def test_set_status_allows_any_change(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    booking = ledger.create(user.id, room.id, day(10), day(11), 1)

    assert ledger.set_status(booking.id, 'completed').status is BookingStatus.COMPLETED
    assert ledger.set_status(booking.id, 'PENDING').status is BookingStatus.PENDING

    with pytest.raises(InvalidInput):
        ledger.set_status(booking.id, 'archived')
    with pytest.raises(NotFound):
        ledger.set_status(12345, 'confirmed')


def test_status_change_stamps_updated_at(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    booking = ledger.create(user.id, room.id, day(10), day(11), 1)

    ledger.set_status(booking.id, 'confirmed')
    db.session.expire_all()
    booking = ledger.get(booking.id)

    assert booking.updated_at is not None
    assert booking.updated_at >= booking.created_at


def test_set_status_cannot_reopen_into_a_conflict(ledger, guest, make_room):
    user, _ = guest
    room = make_room()
    old = ledger.create(user.id, room.id, day(10), day(12), 1)
    ledger.cancel(old.id, identity(user))
    ledger.create(user.id, room.id, day(11), day(13), 1)

    with pytest.raises(Conflict):
        ledger.set_status(old.id, 'confirmed')
    assert ledger.get(old.id).status is BookingStatus.CANCELLED


def test_blocking_bookings_never_overlap(ledger, make_user, make_room):
    users = [make_user('user{}'.format(i))[0] for i in range(3)]
    rooms = [make_room(capacity=4) for _ in range(2)]
    rng = random.Random(1234)
    statuses = [status.value for status in BookingStatus]

    for _ in range(120):
        action = rng.random()
        try:
            if action < 0.6:
                start = rng.randint(0, 20)
                ledger.create(rng.choice(users).id, rng.choice(rooms).id,
                              day(start), day(start + rng.randint(1, 4)), 1)
            else:
                ids = db.session.query(Booking.id).all()
                if not ids:
                    continue
                booking_id = rng.choice(ids)[0]
                if action < 0.8:
                    ledger.set_status(booking_id, rng.choice(statuses))
                else:
                    ledger.transition(booking_id, rng.choice(statuses))
        except ApiError:
            pass

    for room in rooms:
        held = (db.session.query(Booking)
                .filter(Booking.room_id == room.id, Booking.status.in_(BLOCKING_STATUSES))
                .all())
        for a in held:
            for b in held:
                if a.id != b.id:
                    assert not (a.check_in_date < b.check_out_date and b.check_in_date < a.check_out_date)
