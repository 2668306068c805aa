from datetime import datetime
from app.extensions import db


class BloodDrive(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    organizer_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(150), nullable=False)
    date = db.Column(db.DateTime, nullable=False)
    start_time = db.Column(db.String(10), nullable=False)
    end_time = db.Column(db.String(10), nullable=False)
    location = db.Column(db.String(200), nullable=False)
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    description = db.Column(db.Text)
    blood_types = db.Column(db.JSON, default=lambda: ['All'])
    status = db.Column(db.Enum('Upcoming', 'Completed', 'Cancelled', name='drive_status'), default='Upcoming', nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    organizer = db.relationship('User', foreign_keys=[organizer_id])
    attendees = db.relationship('DriveAttendee', backref='drive', lazy=True,
                                cascade='all, delete-orphan', order_by='DriveAttendee.registered_at')

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    def to_dict(self, include_attendees=False):
        data = {
            'id': self.id,
            'organizer_id': self.organizer_id,
            'organizer': self.organizer.summary() if self.organizer else None,
            'title': self.title,
            'date': self.date.isoformat() if self.date else None,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'location': self.location,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'description': self.description,
            'blood_types': self.blood_types,
            'status': self.status,
            'attendee_count': len(self.attendees),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_attendees:
            data['attendees'] = [attendee.to_dict() for attendee in self.attendees]
        return data

    def __repr__(self):
        return f'<BloodDrive {self.title}>'


class DriveAttendee(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    drive_id = db.Column(db.Integer, db.ForeignKey('blood_drive.id', ondelete='CASCADE'), nullable=False)
    donor_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    status = db.Column(db.Enum('Registered', 'Attended', 'Missed', name='attendee_status'), default='Registered', nullable=False)
    registered_at = db.Column(db.DateTime, default=datetime.utcnow)

    donor = db.relationship('User')

    __table_args__ = (db.UniqueConstraint('drive_id', 'donor_id', name='uq_drive_attendee'),)

    def to_dict(self):
        return {
            'donor_id': self.donor_id,
            'donor': self.donor.summary() if self.donor else None,
            'status': self.status,
            'registered_at': self.registered_at.isoformat() if self.registered_at else None,
        }
