from sqlalchemy import text

from app import create_app
from extensions import db

# Importing models registers every table on db.metadata
import models  # noqa: F401


def enable_postgis():
    """The feed ranks by distance with PostGIS functions; other databases skip this."""
    if db.engine.dialect.name != 'postgresql':
        print("Not a PostgreSQL database, skipping PostGIS (the feed will serve newest first)")
        return
    db.session.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
    db.session.commit()
    print("PostGIS extension enabled")


def init_db():
    """
    Creates any missing tables for the configured DATABASE_URL.
    Use 'flask db upgrade' instead once migrations exist for the target database.
    """
    app = create_app()
    with app.app_context():
        enable_postgis()
        db.create_all()
        print(f"Tables ready on {app.config['SQLALCHEMY_DATABASE_URI']}")


if __name__ == "__main__":
    init_db()
