from geoalchemy2 import Geometry
from sqlalchemy import func
from sqlalchemy.ext.hybrid import hybrid_property
from werkzeug.security import generate_password_hash, check_password_hash
from extensions import db
from utils import utcnow, isoformat

ROLE_DONOR = 'donor'
ROLE_RECEIVER = 'receiver'
ROLES = (ROLE_DONOR, ROLE_RECEIVER)

STATUS_AVAILABLE = 'available'
STATUS_CLAIMED = 'claimed'
STATUS_COMPLETED = 'completed'
STATUSES = (STATUS_AVAILABLE, STATUS_CLAIMED, STATUS_COMPLETED)

SRID_WGS84 = 4326


def geo_point(lng, lat):
    """PostGIS point in WGS84. ST_MakePoint takes longitude first."""
    return func.ST_SetSRID(func.ST_MakePoint(lng, lat), SRID_WGS84,
                           type_=Geometry(geometry_type='POINT', srid=SRID_WGS84))


# ==========================================
#  1. USER MODEL
# ==========================================
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    full_name = db.Column(db.String(120), nullable=False)
    organization_name = db.Column(db.String(150), nullable=True)

    # 'donor' or 'receiver'; never changes after signup
    role = db.Column(db.String(20), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    # --- TIMESTAMPS ---
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    donations = db.relationship('Donation', backref='donor', lazy=True,
                                foreign_keys='Donation.donor_id')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'organization_name': self.organization_name,
            'role': self.role,
            'phone': self.phone,
            'address': self.address,
            'created_at': isoformat(self.created_at),
        }

    def to_public_dict(self):
        """Only what a counterpart in a transaction may see."""
        return {
            'id': self.id,
            'full_name': self.full_name,
            'organization_name': self.organization_name,
        }


# ==========================================
#  2. DONATION MODEL
# ==========================================
class Donation(db.Model):
    __tablename__ = 'donations'

    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    food_type = db.Column(db.String(50), nullable=False)
    # Free text such as "15 kg" or "40 portions"
    quantity = db.Column(db.String(50), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    pickup_address = db.Column(db.String(255), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)
    image = db.Column(db.String(500))

    # GeoJSON order is [longitude, latitude]; keep the columns in that order too.
    # The geometry itself is derived in SQL, see Donation.location.
    longitude = db.Column(db.Float, nullable=True)
    latitude = db.Column(db.Float, nullable=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_AVAILABLE, index=True)
    claimed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    claimed_at = db.Column(db.DateTime, nullable=True)

    # --- TIMESTAMPS ---
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    claimant = db.relationship('User', foreign_keys=[claimed_by])

    @hybrid_property
    def location(self):
        if self.longitude is None or self.latitude is None:
            return None
        return {'type': 'Point', 'coordinates': [self.longitude, self.latitude]}

    @location.expression
    def location(cls):
        return geo_point(cls.longitude, cls.latitude)

    def to_dict(self, distance_m=None, include_distance=False):
        data = {
            'id': self.id,
            'donor_id': self.donor_id,
            'donor': self.donor.to_public_dict() if self.donor else None,
            'title': self.title,
            'description': self.description,
            'food_type': self.food_type,
            'quantity': self.quantity,
            'city': self.city,
            'pickup_address': self.pickup_address,
            'expires_at': isoformat(self.expires_at),
            'image': self.image,
            'location': self.location,
            'status': self.status,
            'claimed_by': self.claimed_by,
            'claimed_at': isoformat(self.claimed_at),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_distance:
            data['distance_m'] = round(distance_m, 1) if distance_m is not None else None
        return data


# Spatial index for the feed; only PostGIS understands it
db.Index('ix_donations_location', Donation.location, postgresql_using='gist').ddl_if(dialect='postgresql')


# ==========================================
#  3. MESSAGE MODEL
# ==========================================
class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    donation_id = db.Column(db.Integer, db.ForeignKey('donations.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    # Not read by anything yet; kept so clients can mark threads as seen later
    read_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'donation_id': self.donation_id,
            'sender_id': self.sender_id,
            'receiver_id': self.receiver_id,
            'content': self.content,
            'read_at': isoformat(self.read_at),
            'created_at': isoformat(self.created_at),
        }
