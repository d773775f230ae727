from flask import current_app
from sqlalchemy import or_

from errors import NotFound, ValidationError
from extensions import db
from models import Donation, Message, User
from utils import isoformat


def _as_id(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field}')


def send_message(sender_id, data):
    """
    Stores one message about a donation.

    Whether sender and receiver really are the donation's donor and claimant
    is not checked; clients address the counterpart they were shown.
    """
    receiver_id = data.get('receiver_id')
    donation_id = data.get('donation_id')
    content = str(data.get('content') or '').strip()

    if not receiver_id or not donation_id:
        raise ValidationError('Missing receiver_id or donation_id')
    if not content:
        raise ValidationError('Message content cannot be empty')

    receiver_id = _as_id(receiver_id, 'receiver_id')
    donation_id = _as_id(donation_id, 'donation_id')

    if db.session.get(Donation, donation_id) is None:
        raise NotFound('Donation topic not found.')
    if db.session.get(User, receiver_id) is None:
        raise NotFound('Receiver not found.')

    message = Message(
        sender_id=sender_id,
        receiver_id=receiver_id,
        donation_id=donation_id,
        content=content,
    )
    db.session.add(message)
    db.session.commit()
    current_app.logger.debug("Message %s sent on donation %s", message.id, donation_id)
    return message


def list_thread(donation_id):
    return Message.query.filter_by(donation_id=donation_id)\
        .order_by(Message.created_at.asc(), Message.id.asc()).all()


def list_conversations(user_id):
    """
    One summary per donation the user has messaged about, most recent first.

    The counterpart is taken from the latest message of each thread.
    """
    # 1. Every message involving me, newest first (id breaks timestamp ties)
    all_msgs = Message.query.filter(
        or_(Message.sender_id == user_id, Message.receiver_id == user_id)
    ).order_by(Message.created_at.desc(), Message.id.desc()).all()

    # 2. Keep only the latest message per donation
    latest = {}
    for m in all_msgs:
        if m.donation_id not in latest:
            latest[m.donation_id] = m

    # 3. Join donation title and counterpart identity
    results = []
    for donation_id, last_msg in latest.items():
        other_id = last_msg.receiver_id if last_msg.sender_id == user_id else last_msg.sender_id
        donation = db.session.get(Donation, donation_id)
        other = db.session.get(User, other_id)
        if not donation or not other:
            continue

        results.append({
            'donation_id': donation.id,
            'donation_title': donation.title,
            'other_party': other.to_public_dict(),
            'last_message': last_msg.content,
            'last_timestamp': isoformat(last_msg.created_at),
        })

    # dicts keep insertion order, which is already newest first
    return results
