from sqlalchemy import distinct, func

from extensions import db
from models import Donation, STATUS_COMPLETED
from utils import quantity_magnitude, round_half_up


def global_stats():
    """
    Platform-wide impact figures. Every figure is 0 when there is nothing to
    aggregate.

    - total_weight: sum of the leading number of ``quantity`` over completed
      donations ("15 kg" counts 15, "abc" counts 0)
    - partner_count: distinct receivers holding a claim on any donation
    - avg_minutes: mean creation-to-completion time of completed donations
    - success_rate: completed / all donations, as a whole percentage
    """
    completed = db.session.query(Donation.quantity, Donation.created_at, Donation.updated_at)\
        .filter(Donation.status == STATUS_COMPLETED).all()

    total_weight = sum(quantity_magnitude(quantity) for quantity, _, _ in completed)

    partner_count = db.session.query(func.count(distinct(Donation.claimed_by)))\
        .filter(Donation.claimed_by.isnot(None)).scalar() or 0

    durations = [
        (updated - created).total_seconds() / 60
        for _, created, updated in completed
        if created is not None and updated is not None
    ]
    avg_minutes = round_half_up(sum(durations) / len(durations)) if durations else 0

    total = db.session.query(func.count(Donation.id)).scalar() or 0
    success_rate = round_half_up(len(completed) * 100 / total) if total else 0

    return {
        'total_weight': round(total_weight, 2),
        'partner_count': partner_count,
        'avg_minutes': avg_minutes,
        'success_rate': success_rate,
    }
