from datetime import datetime
from app.extensions import db


class DonationRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)

    # Tagged requester reference: recipient, hospital or admin account
    requester_kind = db.Column(db.Enum('recipient', 'hospital', 'admin', name='donation_requester_kind'), nullable=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)

    blood_type = db.Column(db.String(3), nullable=False)
    units_needed = db.Column(db.Integer, default=1, nullable=False)
    urgency = db.Column(db.String(20), default='normal')
    patient_name = db.Column(db.String(100))
    contact_phone = db.Column(db.String(20))
    message = db.Column(db.Text)
    type = db.Column(db.Enum('Individual', 'Broadcast', 'Drive', name='donation_request_type'), default='Individual')

    status = db.Column(db.Enum('pending', 'accepted', 'rejected', 'completed', name='donation_request_status'),
                       default='pending', nullable=False)
    request_date = db.Column(db.DateTime, default=datetime.utcnow)
    accepted_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)

    # Drive/broadcast scheduling details
    scheduled_date = db.Column(db.DateTime)
    location = db.Column(db.String(200))
    start_time = db.Column(db.String(10))
    end_time = db.Column(db.String(10))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    donor = db.relationship('User', foreign_keys=[donor_id])
    requester = db.relationship('User', foreign_keys=[requester_id])

    TERMINAL_STATUSES = ('completed', 'rejected')

    @property
    def requested_by(self):
        if self.requester_kind is None:
            return None
        return {'kind': self.requester_kind, 'id': self.requester_id}

    def is_participant(self, user):
        return user.id in (self.donor_id, self.requester_id)

    def to_dict(self):
        return {
            'id': self.id,
            'donor_id': self.donor_id,
            'donor': self.donor.summary() if self.donor else None,
            'requested_by': self.requested_by,
            'requester': self.requester.summary() if self.requester else None,
            'blood_type': self.blood_type,
            'units_needed': self.units_needed,
            'urgency': self.urgency,
            'patient_name': self.patient_name,
            'contact_phone': self.contact_phone,
            'message': self.message,
            'type': self.type,
            'status': self.status,
            'request_date': self.request_date.isoformat() if self.request_date else None,
            'accepted_at': self.accepted_at.isoformat() if self.accepted_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'scheduled_date': self.scheduled_date.isoformat() if self.scheduled_date else None,
            'location': self.location,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }

    def __repr__(self):
        return f'<DonationRequest {self.id} donor={self.donor_id} {self.status}>'
