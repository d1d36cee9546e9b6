# resort/models.py
import enum

from resort import db


class Role(enum.Enum):
    GUEST = 'guest'
    ADMIN = 'admin'
    CUSTOMER_SERVICE = 'customer_service'

    @classmethod
    def parse(cls, value):
        """Return the Role named by ``value`` or None if it names no role.

        Case is ignored and ``customer service`` is read as ``customer_service``.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace(' ', '_').replace('-', '_')
        try:
            return cls(normalized)
        except ValueError:
            return None


class BookingStatus(enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


# Statuses that hold the room for their date range.
BLOCKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.Enum(Role, values_callable=lambda e: [m.value for m in e]),
                     nullable=False, default=Role.GUEST)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=db.func.now(),
                           onupdate=db.func.now(), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'role': self.role.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Room(db.Model):
    __tablename__ = 'rooms'

    id = db.Column(db.Integer, primary_key=True)
    room_number = db.Column(db.String(20), unique=True, nullable=False)
    type = db.Column(db.String(50), nullable=False)
    price_per_night = db.Column(db.Numeric(10, 2), nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text)
    image_url = db.Column(db.String(255))
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'room_number': self.room_number,
            'type': self.type,
            'price_per_night': str(self.price_per_night),
            'capacity': self.capacity,
            'description': self.description,
            'image_url': self.image_url,
            'is_available': self.is_available,
        }


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('rooms.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    check_in_date = db.Column(db.Date, nullable=False)
    check_out_date = db.Column(db.Date, nullable=False)
    guests = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.Enum(BookingStatus, values_callable=lambda e: [m.value for m in e]),
                       nullable=False, default=BookingStatus.PENDING)
    created_at = db.Column(db.DateTime, server_default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, server_default=db.func.now(),
                           onupdate=db.func.now(), nullable=False)

    user = db.relationship('User', backref=db.backref('bookings', lazy=True))
    room = db.relationship('Room', backref=db.backref('bookings', lazy=True))

    __table_args__ = (
        db.Index('ix_bookings_room_dates', 'room_id', 'check_in_date', 'check_out_date'),
        db.CheckConstraint('check_out_date > check_in_date', name='ck_bookings_dates'),
    )

    def to_dict(self):
        data = {
            'id': self.id,
            'room_id': self.room_id,
            'user_id': self.user_id,
            'check_in_date': self.check_in_date.strftime('%Y-%m-%d'),
            'check_out_date': self.check_out_date.strftime('%Y-%m-%d'),
            'guests': self.guests,
            'total_price': str(self.total_price),
            'status': self.status.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if self.room is not None:
            data['room_number'] = self.room.room_number
            data['room_type'] = self.room.type
            data['price_per_night'] = str(self.room.price_per_night)
        if self.user is not None:
            data['booked_by'] = self.user.username
        return data
