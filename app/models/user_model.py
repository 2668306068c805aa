from datetime import datetime
from app.extensions import db, bcrypt


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.Enum('donor', 'recipient', 'hospital', 'admin', name='user_role'), nullable=False)
    phone = db.Column(db.String(20), nullable=False)

    # Donor-specific
    blood_type = db.Column(db.String(3), default='')
    address = db.Column(db.String(200), default='')
    city = db.Column(db.String(50), default='')
    is_available = db.Column(db.Boolean, default=True, nullable=False)
    last_donation = db.Column(db.DateTime)

    # Hospital-specific
    hospital_name = db.Column(db.String(120), default='')
    license_number = db.Column(db.String(50), default='')

    profile_picture = db.Column(db.String(255), default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def display_name(self):
        """Name shown to other parties; hospitals go by their hospital name."""
        if self.role == 'hospital' and self.hospital_name:
            return self.hospital_name
        return self.name

    def to_dict(self, private=False):
        data = {
            'id': self.id,
            'name': self.name,
            'role': self.role,
            'blood_type': self.blood_type,
            'city': self.city,
            'is_available': self.is_available,
            'last_donation': self.last_donation.isoformat() if self.last_donation else None,
            'hospital_name': self.hospital_name,
            'profile_picture': self.profile_picture,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if private:
            data.update({
                'email': self.email,
                'phone': self.phone,
                'address': self.address,
                'license_number': self.license_number,
            })
        return data

    def summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'hospital_name': self.hospital_name,
            'email': self.email,
            'phone': self.phone,
            'blood_type': self.blood_type,
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'
