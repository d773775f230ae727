import os
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from utils import utcnow

ON_POSTGIS = os.getenv("TEST_DATABASE_URL", "").startswith("postgresql")
needs_postgis = pytest.mark.skipif(not ON_POSTGIS, reason="distance ranking runs in PostGIS; set TEST_DATABASE_URL")


def feed(client, query=''):
    response = client.get(f'/api/donations/feed{query}')
    assert response.status_code == 200
    return response.get_json()

# ==========================================
#  1. FILTERING
# ==========================================

def test_feed_only_open_donations(client, receiver_user, donation_factory):
    """Available + unexpired only: expired and claimed items are hidden."""
    donation_factory(title="A")
    donation_factory(title="B", expires_at=utcnow() - timedelta(minutes=5))
    donation_factory(title="C", status="claimed", claimed_by=receiver_user.id, claimed_at=utcnow())
    donation_factory(title="D", status="completed", claimed_by=receiver_user.id)

    assert [d['title'] for d in feed(client)] == ["A"]
    assert [d['title'] for d in feed(client, '?lat=6.5&lng=3.3')] == ["A"]


def test_feed_is_public_and_includes_donor(client, donation_factory):
    donation_factory()
    item = feed(client)[0]
    assert item['donor'] == {'id': item['donor_id'], 'full_name': "Chef Luca",
                             'organization_name': "Bella Italia Bistro"}

# ==========================================
#  2. ORDERING
# ==========================================

def test_feed_without_location_newest_first(client, donation_factory):
    now = utcnow()
    donation_factory(title="Old", created_at=now - timedelta(hours=3), longitude=0.0, latitude=0.0)
    donation_factory(title="New", created_at=now - timedelta(hours=1))

    items = feed(client)
    assert [d['title'] for d in items] == ["New", "Old"]
    assert all(d['distance_m'] is None for d in items)


@needs_postgis
def test_feed_nearest_first_from_origin(client, donation_factory):
    """Viewer at (0, 0): the 10 m item beats the 1 km item even though it is older."""
    now = utcnow()
    donation_factory(title="10m", longitude=0.00009, latitude=0.0, created_at=now - timedelta(hours=2))
    donation_factory(title="1km", longitude=0.009, latitude=0.0, created_at=now - timedelta(hours=1))

    items = feed(client, '?lat=0&lng=0')

    assert [d['title'] for d in items] == ["10m", "1km"]
    assert items[0]['distance_m'] == pytest.approx(10.0, rel=0.01)
    assert items[1]['distance_m'] == pytest.approx(1000.7, rel=0.01)


@needs_postgis
def test_feed_distance_uses_longitude_first(client, donation_factory):
    # 1 degree of latitude north vs 1 degree of longitude east at 60N (about half as far)
    donation_factory(title="North", longitude=10.0, latitude=61.0)
    donation_factory(title="East", longitude=11.0, latitude=60.0)

    items = feed(client, '?lat=60&lng=10')
    assert [d['title'] for d in items] == ["East", "North"]
    assert items[0]['distance_m'] < items[1]['distance_m']


@needs_postgis
def test_feed_unlocated_donations_follow_ranked_ones(client, donation_factory):
    now = utcnow()
    donation_factory(title="Nowhere", created_at=now)
    donation_factory(title="Somewhere", longitude=3.3792, latitude=6.5244, created_at=now - timedelta(days=1))

    items = feed(client, '?lat=6.5&lng=3.4')
    assert [d['title'] for d in items] == ["Somewhere", "Nowhere"]
    assert items[0]['distance_m'] is not None
    assert items[1]['distance_m'] is None

# ==========================================
#  3. GRACEFUL DEGRADATION
# ==========================================

@pytest.mark.parametrize("query", ["?lat=abc&lng=3.3", "?lat=6.5", "?lng=3.3", "?lat=95&lng=3.3", "?lat=6.5&lng=nan"])
def test_feed_bad_coordinates_fall_back_to_newest(client, donation_factory, query):
    now = utcnow()
    donation_factory(title="Far but new", longitude=100.0, latitude=50.0, created_at=now)
    donation_factory(title="Near but old", longitude=3.3, latitude=6.5, created_at=now - timedelta(days=1))

    items = feed(client, query)
    assert [d['title'] for d in items] == ["Far but new", "Near but old"]
    assert all(d['distance_m'] is None for d in items)


def test_feed_geo_failure_falls_back(client, donation_factory, caplog):
    now = utcnow()
    donation_factory(title="Old", longitude=0.0, latitude=0.0, created_at=now - timedelta(hours=2))
    donation_factory(title="New", longitude=1.0, latitude=1.0, created_at=now)

    failure = OperationalError("SELECT ...", {}, Exception("function st_distancesphere does not exist"))
    with patch('services.feed._nearest', side_effect=failure):
        items = feed(client, '?lat=0&lng=0')

    assert [d['title'] for d in items] == ["New", "Old"]
    assert all(d['distance_m'] is None for d in items)
    assert "Distance query failed" in caplog.text


@pytest.mark.skipif(ON_POSTGIS, reason="plain SQLite has no spatial functions")
def test_feed_without_spatial_database_serves_newest_first(client, donation_factory, caplog):
    now = utcnow()
    donation_factory(title="Near but old", longitude=0.0001, latitude=0.0, created_at=now - timedelta(hours=2))
    donation_factory(title="Far but new", longitude=20.0, latitude=20.0, created_at=now)

    items = feed(client, '?lat=0&lng=0')

    assert [d['title'] for d in items] == ["Far but new", "Near but old"]
    assert all(d['distance_m'] is None for d in items)
    assert "Distance query failed" in caplog.text
    # The failed query was rolled back, so the session still works
    assert [d['title'] for d in feed(client)] == ["Far but new", "Near but old"]
