from datetime import datetime, timedelta
from sqlalchemy import event
from app.extensions import db

SHELF_LIFE_DAYS = 42


class BloodUnit(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    blood_type = db.Column(db.String(3), nullable=False, index=True)

    # A unit comes either from a registered donor or from a manual entry
    donor_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    manual_donor_name = db.Column(db.String(100))
    manual_donor_phone = db.Column(db.String(20))

    status = db.Column(db.Enum('Available', 'Reserved', 'Used', 'Expired', name='unit_status'),
                       default='Available', nullable=False, index=True)
    hospital_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    updated_by = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='SET NULL'), nullable=True)
    donation_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expiry_date = db.Column(db.DateTime, nullable=False)

    donor = db.relationship('User', foreign_keys=[donor_id])

    @staticmethod
    def expiry_for(donation_date):
        return donation_date + timedelta(days=SHELF_LIFE_DAYS)

    def to_dict(self):
        return {
            'id': self.id,
            'blood_type': self.blood_type,
            'donor_id': self.donor_id,
            'donor': self.donor.summary() if self.donor else None,
            'manual_donor_name': self.manual_donor_name,
            'manual_donor_phone': self.manual_donor_phone,
            'status': self.status,
            'hospital_id': self.hospital_id,
            'donation_date': self.donation_date.isoformat() if self.donation_date else None,
            'expiry_date': self.expiry_date.isoformat() if self.expiry_date else None,
        }

    def __repr__(self):
        return f'<BloodUnit {self.id} {self.blood_type} {self.status}>'


@event.listens_for(BloodUnit, 'before_insert')
def set_expiry_date(mapper, connection, unit):
    if unit.donation_date is None:
        unit.donation_date = datetime.utcnow()
    if unit.expiry_date is None:
        unit.expiry_date = BloodUnit.expiry_for(unit.donation_date)
