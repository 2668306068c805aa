from datetime import datetime
from app.extensions import db


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    title = db.Column(db.String(150), nullable=False)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.Enum('request', 'acceptance', 'rejection', 'completion', 'emergency', 'info',
                             name='notification_type'), default='info', nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    related_request_id = db.Column(db.Integer)  # Bank or direct request, depending on type
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'type': self.type,
            'is_read': self.is_read,
            'related_request_id': self.related_request_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Notification {self.id} -> {self.user_id}>'
