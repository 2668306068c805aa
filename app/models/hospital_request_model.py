from datetime import datetime
from app.extensions import db


class HospitalRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)

    # Who asked: a hospital or recipient account, or an admin entering an offline request
    requester_kind = db.Column(db.Enum('hospital', 'recipient', 'admin', name='bank_requester_kind'), nullable=False)
    requester_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    hospital_name = db.Column(db.String(120), nullable=False)
    patient_name = db.Column(db.String(100))

    blood_type = db.Column(db.String(3), nullable=False)
    units_needed = db.Column(db.Integer, nullable=False)
    urgency = db.Column(db.Enum('normal', 'urgent', 'critical', name='bank_urgency'), default='normal', nullable=False)
    status = db.Column(db.Enum('pending', 'approved', 'rejected', 'completed', name='bank_request_status'),
                       default='pending', nullable=False)
    request_date = db.Column(db.DateTime, default=datetime.utcnow)
    resolved_date = db.Column(db.DateTime)
    resolved_by = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)

    requester = db.relationship('User', foreign_keys=[requester_id])

    TERMINAL_STATUSES = ('completed', 'rejected')

    @property
    def requested_by(self):
        return {'kind': self.requester_kind, 'id': self.requester_id}

    def is_owned_by(self, user):
        return self.requester_id is not None and self.requester_id == user.id

    def to_dict(self):
        return {
            'id': self.id,
            'requested_by': self.requested_by,
            'requester': self.requester.summary() if self.requester else None,
            'hospital_name': self.hospital_name,
            'patient_name': self.patient_name,
            'blood_type': self.blood_type,
            'units_needed': self.units_needed,
            'urgency': self.urgency,
            'status': self.status,
            'request_date': self.request_date.isoformat() if self.request_date else None,
            'resolved_date': self.resolved_date.isoformat() if self.resolved_date else None,
            'resolved_by': self.resolved_by,
        }

    def __repr__(self):
        return f'<HospitalRequest {self.id} {self.units_needed}x{self.blood_type} {self.status}>'
