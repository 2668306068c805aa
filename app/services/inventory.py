"""Blood unit ledger and the stock view derived from it.

Stock is never stored: it is the number of units whose status is
``Available``, counted per blood type on every read.
"""
import logging
from datetime import datetime

from sqlalchemy import func, update

from app.errors import InsufficientStockError, NotFoundError, ValidationError
from app.extensions import db
from app.models.blood_unit_model import BloodUnit
from app.models.user_model import User
from app.services import atomic
from app.validation import BLOOD_TYPES, parse_positive_int, validate_blood_type

logger = logging.getLogger(__name__)

AVAILABLE = 'Available'
USED = 'Used'
EXPIRED = 'Expired'


def stock_levels():
    rows = (db.session.query(BloodUnit.blood_type, func.count(BloodUnit.id))
            .filter(BloodUnit.status == AVAILABLE)
            .group_by(BloodUnit.blood_type)
            .all())
    counts = dict(rows)
    return [{'blood_type': blood_type, 'quantity': counts.get(blood_type, 0)} for blood_type in BLOOD_TYPES]


def stock_count(blood_type):
    return BloodUnit.query.filter_by(blood_type=blood_type, status=AVAILABLE).count()


def available_units(blood_type):
    return (BloodUnit.query
            .filter_by(blood_type=blood_type, status=AVAILABLE)
            .order_by(BloodUnit.expiry_date, BloodUnit.id)
            .all())


def _check_blood_type(blood_type):
    if not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type')


def _check_quantity(quantity):
    number = parse_positive_int(quantity)
    if number is None:
        raise ValidationError('Quantity must be a positive whole number')
    return number


def add_units(blood_type, quantity, donor_id=None, manual_donor_name=None, manual_donor_phone=None,
              donation_date=None, added_by=None):
    """Record ``quantity`` new Available units from one donation source."""
    _check_blood_type(blood_type)
    quantity = _check_quantity(quantity)

    if donor_id:
        donor_id = parse_positive_int(donor_id)
        donor = db.session.get(User, donor_id) if donor_id else None
        if not donor or donor.role != 'donor':
            raise NotFoundError('Donor not found')
        manual_donor_name = manual_donor_phone = None
    elif not manual_donor_name or not manual_donor_phone:
        raise ValidationError('Please provide either a registered Donor or Manual Donor details (Name & Phone)')

    donation_date = donation_date or datetime.utcnow()
    with atomic():
        units = [
            BloodUnit(
                blood_type=blood_type,
                donor_id=donor_id or None,
                manual_donor_name=manual_donor_name,
                manual_donor_phone=manual_donor_phone,
                status=AVAILABLE,
                donation_date=donation_date,
                updated_by=added_by,
            )
            for _ in range(quantity)
        ]
        db.session.add_all(units)

    logger.info('Added %d %s units (donor=%s, by=%s)', quantity, blood_type, donor_id or manual_donor_name, added_by)
    return units


def claim_units(blood_type, quantity, hospital_id=None, claimed_by=None):
    """Flip exactly ``quantity`` Available units of ``blood_type`` to Used.

    Runs inside the caller's transaction and does not commit. Units closest
    to expiry go first. The update is conditional on each unit still being
    Available, so two concurrent claims can never take the same unit; if the
    rowcount comes back short the caller must roll back. Candidates are
    locked FOR UPDATE, so a second claim waits for the first to finish and
    then sees only what is left.

    Returns the claimed rows as (id, donor_id, blood_type, donation_date).
    """
    candidates = (db.session.query(BloodUnit.id, BloodUnit.donor_id, BloodUnit.blood_type, BloodUnit.donation_date)
                  .filter(BloodUnit.blood_type == blood_type, BloodUnit.status == AVAILABLE)
                  .order_by(BloodUnit.expiry_date, BloodUnit.id)
                  .limit(quantity)
                  .with_for_update()
                  .all())
    if len(candidates) < quantity:
        raise InsufficientStockError(
            f'Insufficient stock: {len(candidates)} unit(s) of {blood_type} available, {quantity} required')

    result = db.session.execute(
        update(BloodUnit)
        .where(BloodUnit.id.in_([unit.id for unit in candidates]), BloodUnit.status == AVAILABLE)
        .values(status=USED, hospital_id=hospital_id, updated_by=claimed_by)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != quantity:
        raise InsufficientStockError(f'Stock of {blood_type} changed while claiming units, please retry')
    return candidates


def subtract_units(blood_type, quantity, removed_by=None):
    """Remove units from stock; all or nothing."""
    _check_blood_type(blood_type)
    quantity = _check_quantity(quantity)

    available = stock_count(blood_type)
    if available < quantity:
        raise InsufficientStockError(
            f'Insufficient stock: {available} unit(s) of {blood_type} available, {quantity} requested')

    with atomic():
        claimed = claim_units(blood_type, quantity, claimed_by=removed_by)

    logger.info('Removed %d %s units (by=%s)', quantity, blood_type, removed_by)
    return claimed


def expire_units(now=None):
    """Mark every Available unit past its expiry date as Expired."""
    now = now or datetime.utcnow()
    with atomic():
        result = db.session.execute(
            update(BloodUnit)
            .where(BloodUnit.status == AVAILABLE, BloodUnit.expiry_date < now)
            .values(status=EXPIRED)
            .execution_options(synchronize_session=False)
        )
    if result.rowcount:
        logger.info('Expired %d blood units', result.rowcount)
    return result.rowcount
