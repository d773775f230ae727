import sys
import os
from datetime import timedelta

import pytest
from sqlalchemy import text

# 1. Add the parent directory to Python's path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# 2. NOW import from app
from app import create_app
from extensions import db
from models import Donation, User
from utils import utcnow

# Point this at a PostGIS database to run the distance-ranking tests too
TEST_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture
def app(tmp_path):
    """Create and configure a new app instance for each test."""
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": TEST_DATABASE_URI,
        "JWT_SECRET_KEY": "test-secret-key-for-the-foodshare-suite",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
    })

    with app.app_context():
        if db.engine.dialect.name == "postgresql":
            db.session.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
            db.session.commit()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ==========================================
#  USERS & TOKENS
# ==========================================
def make_user(email, role, full_name, organization_name=None, password="password"):
    user = User(email=email, role=role, full_name=full_name, organization_name=organization_name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def login_headers(client, email, password="password"):
    resp = client.post('/api/auth/login', json={"email": email, "password": password})
    return {'Authorization': f'Bearer {resp.get_json()["token"]}'}


@pytest.fixture
def donor_user(app):
    return make_user("donor@test.com", "donor", "Chef Luca", "Bella Italia Bistro")


@pytest.fixture
def receiver_user(app):
    return make_user("ngo@test.com", "receiver", "Sarah Chen", "Urban Harvest Food Bank")


@pytest.fixture
def other_receiver(app):
    return make_user("shelter@test.com", "receiver", "Mark Rodriguez", "Unity Shelters")


@pytest.fixture
def donor_headers(client, donor_user):
    return login_headers(client, donor_user.email)


@pytest.fixture
def receiver_headers(client, receiver_user):
    return login_headers(client, receiver_user.email)


@pytest.fixture
def other_receiver_headers(client, other_receiver):
    return login_headers(client, other_receiver.email)


# ==========================================
#  DONATIONS
# ==========================================
@pytest.fixture
def donation_factory(donor_user):
    def _create(**kwargs):
        defaults = {
            "title": "Jollof Rice",
            "description": "Hot and fresh",
            "food_type": "Cooked Meals",
            "quantity": "10 kg",
            "city": "Lagos",
            "pickup_address": "12 Marina Road",
            "expires_at": utcnow() + timedelta(days=2),
            "donor_id": donor_user.id,
            "status": "available",
        }
        defaults.update(kwargs)
        item = Donation(**defaults)
        db.session.add(item)
        db.session.commit()
        return item
    return _create
