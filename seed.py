from datetime import timedelta

from app import create_app
from extensions import db
from models import (Donation, User, ROLE_DONOR, ROLE_RECEIVER,
                    STATUS_AVAILABLE, STATUS_CLAIMED, STATUS_COMPLETED)
from utils import utcnow

RECEIVERS = [
    ("Sarah Chen", "Urban Harvest Food Bank", "sarah@urbanharvest.org"),
    ("Mark Rodriguez", "Unity Shelters", "mark@unity.org"),
]

DONORS = [
    ("Chef Luca", "Bella Italia Bistro", "luca@bella.com", (-73.9973, 40.7191)),
    ("David Miller", "Sunset Organic Farm", "david@sunsetfarm.com", (-73.9851, 40.7589)),
    ("Emma Watson", "The Daily Crust Bakery", "emma@dailycrust.com", (-73.9442, 40.6782)),
]


def seed_demo(password='password123'):
    app = create_app()
    with app.app_context():
        db.create_all()

        # 1. Only seed an empty database
        if User.query.first():
            print("Users already exist. Skipping.")
            return

        now = utcnow()
        receivers = []
        for full_name, org, email in RECEIVERS:
            user = User(full_name=full_name, organization_name=org, email=email, role=ROLE_RECEIVER)
            user.set_password(password)
            receivers.append(user)

        donors = []
        for full_name, org, email, _ in DONORS:
            user = User(full_name=full_name, organization_name=org, email=email, role=ROLE_DONOR)
            user.set_password(password)
            donors.append(user)

        db.session.add_all(receivers + donors)
        db.session.flush()

        # 2. One donation per lifecycle state
        (lng0, lat0), (lng1, lat1), (lng2, lat2) = [d[3] for d in DONORS]
        db.session.add_all([
            Donation(
                donor_id=donors[0].id, title="Large Batch of Penne Arrabbiata",
                description="Freshly cooked pasta, slightly spicy tomato sauce.",
                food_type="Cooked Meals", quantity="40 portions", city="New York",
                pickup_address="442 Little Italy Way", expires_at=now + timedelta(hours=24),
                longitude=lng0, latitude=lat0,
                status=STATUS_CLAIMED, claimed_by=receivers[0].id, claimed_at=now,
            ),
            Donation(
                donor_id=donors[1].id, title="Assorted Seasonal Vegetables",
                description="Carrots, kale, and bell peppers.",
                food_type="Fresh Produce", quantity="15 kg", city="New York",
                pickup_address="99 Farm Road", expires_at=now + timedelta(hours=48),
                longitude=lng1, latitude=lat1, status=STATUS_AVAILABLE,
            ),
            Donation(
                donor_id=donors[2].id, title="Morning Pastry Surplus",
                description="Croissants and sourdough loaves.",
                food_type="Bakery Items", quantity="25 items", city="New York",
                pickup_address="12 Baker St", expires_at=now,
                longitude=lng2, latitude=lat2,
                status=STATUS_COMPLETED, claimed_by=receivers[1].id,
                claimed_at=now - timedelta(hours=46),
                created_at=now - timedelta(hours=48), updated_at=now - timedelta(hours=44),
            ),
        ])
        db.session.commit()
        print(f"Seeded {len(receivers)} receivers, {len(donors)} donors and 3 donations.")


if __name__ == "__main__":
    seed_demo()
