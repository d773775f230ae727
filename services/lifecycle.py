"""
Donation lifecycle: creation, lookups, and the status state machine.

    available --claim (receiver)--> claimed --complete (donor)--> completed
        ^                              |
        +------release (donor/claimant)+

Every transition is a single conditional UPDATE guarded by the expected
current status, so two concurrent claims cannot both succeed.
"""
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from errors import Conflict, Forbidden, Internal, NotFound, ValidationError
from extensions import db
from models import (Donation, Message, ROLE_DONOR, ROLE_RECEIVER,
                    STATUS_AVAILABLE, STATUS_CLAIMED, STATUS_COMPLETED)
from utils import parse_datetime, remove_image, save_image, utcnow

REQUIRED_FIELDS = ('title', 'food_type', 'quantity', 'city', 'pickup_address', 'expires_at')


def _parse_location(data):
    """Returns (longitude, latitude) or (None, None) when no location was sent."""
    location = data.get('location')
    if isinstance(location, dict):
        coordinates = location.get('coordinates')
        if coordinates is None:
            return None, None
        if not isinstance(coordinates, (list, tuple)):
            raise ValidationError('Location must be [longitude, latitude]')
    elif location not in (None, ''):
        raise ValidationError('Location must be a GeoJSON point')
    else:
        # multipart form: location[coordinates][0]=lng, location[coordinates][1]=lat
        coordinates = [data.get('location[coordinates][0]'), data.get('location[coordinates][1]')]

    if all(c in (None, '') for c in coordinates):
        return None, None
    if len(coordinates) != 2:
        raise ValidationError('Location must be [longitude, latitude]')

    try:
        lng, lat = float(coordinates[0]), float(coordinates[1])
    except (TypeError, ValueError):
        raise ValidationError('Location coordinates must be numbers')

    if not (-180 <= lng <= 180 and -90 <= lat <= 90):
        raise ValidationError('Location must be [longitude, latitude] within valid ranges')
    return lng, lat


# ==========================================
#  1. CREATE
# ==========================================
def create_donation(donor_id, data, image_file=None):
    missing = [f for f in REQUIRED_FIELDS if not str(data.get(f) or '').strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    description = data.get('description')
    if description is not None and not isinstance(description, str):
        raise ValidationError('description must be a string')

    expires_at = parse_datetime(data['expires_at'], field='expires_at')
    lng, lat = _parse_location(data)

    # status, donor and claimant are never taken from the client
    donation = Donation(
        donor_id=donor_id,
        title=str(data['title']).strip(),
        description=description,
        food_type=str(data['food_type']).strip(),
        quantity=str(data['quantity']).strip(),
        city=str(data['city']).strip(),
        pickup_address=str(data['pickup_address']).strip(),
        expires_at=expires_at,
        longitude=lng,
        latitude=lat,
        status=STATUS_AVAILABLE,
        claimed_by=None,
        claimed_at=None,
    )

    if image_file is not None and image_file.filename:
        donation.image = save_image(image_file)

    try:
        db.session.add(donation)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        remove_image(donation.image)
        current_app.logger.exception("Could not save donation for donor %s", donor_id)
        raise Internal('Could not save donation')

    current_app.logger.info("Donor %s posted donation %s", donor_id, donation.id)
    return donation


# ==========================================
#  2. READ
# ==========================================
def get_donation(donation_id):
    donation = db.session.get(Donation, donation_id, options=[joinedload(Donation.donor)])
    if donation is None:
        raise NotFound('Donation not found')
    return donation


def list_mine(user_id, role):
    """Donors see what they posted, receivers see what they claimed."""
    query = Donation.query.options(joinedload(Donation.donor))
    if role == ROLE_DONOR:
        query = query.filter(Donation.donor_id == user_id)
    else:
        query = query.filter(Donation.claimed_by == user_id)
    return query.order_by(Donation.created_at.desc(), Donation.id.desc()).all()


# ==========================================
#  3. TRANSITIONS
# ==========================================
def _conditional_update(donation_id, expected_status, values):
    values['updated_at'] = utcnow()
    return Donation.query.filter_by(id=donation_id, status=expected_status)\
        .update(values, synchronize_session=False)


def claim(donation_id, caller_id, role):
    donation = get_donation(donation_id)
    if role != ROLE_RECEIVER:
        raise Forbidden('Only NGOs/Receivers can claim donations.')

    rows = _conditional_update(donation.id, STATUS_AVAILABLE, {
        'status': STATUS_CLAIMED,
        'claimed_by': caller_id,
        'claimed_at': utcnow(),
    })
    if not rows:
        db.session.rollback()
        raise Conflict('This item is no longer available.')

    db.session.commit()
    current_app.logger.info("Receiver %s claimed donation %s", caller_id, donation.id)
    db.session.refresh(donation)
    return donation


def complete(donation_id, caller_id):
    donation = get_donation(donation_id)
    if donation.donor_id != caller_id:
        raise Forbidden('Only the original donor can mark this as completed.')

    rows = _conditional_update(donation.id, STATUS_CLAIMED, {'status': STATUS_COMPLETED})
    if not rows:
        db.session.rollback()
        raise Conflict('Only claimed donations can be marked as completed.')

    db.session.commit()
    current_app.logger.info("Donation %s completed", donation.id)
    db.session.refresh(donation)
    return donation


def release(donation_id, caller_id):
    """
    Returns a claimed donation to the pool.

    Releasing an already available donation is a no-op; a completed donation
    cannot be released.
    """
    donation = get_donation(donation_id)
    if donation.status == STATUS_COMPLETED:
        raise Conflict('This donation is already completed.')
    if donation.status == STATUS_AVAILABLE:
        return donation

    if caller_id not in (donation.donor_id, donation.claimed_by):
        raise Forbidden('Not authorized')

    rows = _conditional_update(donation.id, STATUS_CLAIMED, {
        'status': STATUS_AVAILABLE,
        'claimed_by': None,
        'claimed_at': None,
    })
    if not rows:
        # Someone else moved it first
        db.session.rollback()
        db.session.refresh(donation)
        if donation.status == STATUS_AVAILABLE:
            return donation
        raise Conflict('This donation is already completed.')

    db.session.commit()
    current_app.logger.info("User %s released donation %s", caller_id, donation.id)
    db.session.refresh(donation)
    return donation


def change_status(donation_id, caller_id, role, status):
    if status == STATUS_CLAIMED:
        return claim(donation_id, caller_id, role)
    if status == STATUS_COMPLETED:
        return complete(donation_id, caller_id)
    if status == STATUS_AVAILABLE:
        return release(donation_id, caller_id)
    raise ValidationError('Status must be one of: available, claimed, completed')


# ==========================================
#  4. DELETE
# ==========================================
def delete_donation(donation_id, caller_id):
    # Someone else's donation looks exactly like a missing one
    donation = Donation.query.filter_by(id=donation_id, donor_id=caller_id).first()
    if donation is None:
        raise NotFound('Donation not found')

    image = donation.image
    Message.query.filter_by(donation_id=donation.id).delete(synchronize_session=False)
    db.session.delete(donation)
    db.session.commit()

    remove_image(image)
    current_app.logger.info("Donor %s deleted donation %s", caller_id, donation_id)
