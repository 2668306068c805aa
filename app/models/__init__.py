from app.models.user_model import User
from app.models.blood_unit_model import BloodUnit
from app.models.hospital_request_model import HospitalRequest
from app.models.donation_request_model import DonationRequest
from app.models.blood_drive_model import BloodDrive, DriveAttendee
from app.models.notification_model import Notification
from app.models.support_message_model import SupportMessage

__all__ = [
    'User',
    'BloodUnit',
    'HospitalRequest',
    'DonationRequest',
    'BloodDrive',
    'DriveAttendee',
    'Notification',
    'SupportMessage',
]
