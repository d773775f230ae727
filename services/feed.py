import math

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from extensions import db
from models import Donation, STATUS_AVAILABLE, geo_point
from utils import utcnow


def _distance_m(lng, lat):
    """Metres from the viewer to each donation, measured by PostGIS on the sphere."""
    return func.ST_DistanceSphere(Donation.location, geo_point(lng, lat))


def _open_filter(now):
    return [Donation.status == STATUS_AVAILABLE, Donation.expires_at >= now]


def viewer_point(lat, lng):
    """(lng, lat) when both are usable, otherwise None. (0, 0) is a real place."""
    if lat is None or lng is None:
        return None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None
    return lng, lat


def _newest(now, *extra):
    return Donation.query.options(joinedload(Donation.donor))\
        .filter(*_open_filter(now), *extra)\
        .order_by(Donation.created_at.desc(), Donation.id.desc()).all()


def _nearest(lng, lat, now):
    distance = _distance_m(lng, lat).label('distance_m')
    return db.session.query(Donation, distance)\
        .options(joinedload(Donation.donor))\
        .filter(*_open_filter(now), Donation.longitude.isnot(None), Donation.latitude.isnot(None))\
        .order_by(distance, Donation.id).all()


def build_feed(lat=None, lng=None):
    """
    Public list of open donations (available and not yet expired).

    With a usable viewer coordinate the list is nearest first and every entry
    carries ``distance_m``; donations without a location follow, newest first.
    When the database cannot answer the distance query (no PostGIS, or the
    query fails) the feed degrades to newest first.
    """
    now = utcnow()
    point = viewer_point(lat, lng)

    if point is not None:
        try:
            ranked = _nearest(point[0], point[1], now)
            unlocated = _newest(now, or_(Donation.longitude.is_(None), Donation.latitude.is_(None)))
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.warning("Distance query failed, serving newest first instead: %s", e)
        else:
            return [d.to_dict(distance_m=dist, include_distance=True) for d, dist in ranked] + \
                [d.to_dict(include_distance=True) for d in unlocated]

    return [d.to_dict(include_distance=True) for d in _newest(now)]
