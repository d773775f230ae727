import logging

from flask import Flask

# 1. IMPORT EXTENSIONS
from config import Config
from errors import register_error_handlers
from extensions import db, migrate, jwt, cors


def create_app(test_config=None):
    """
    The Application Factory.
    Creates and configures the app, but does not run it.
    """
    app = Flask(__name__)

    # --- CONFIGURATION ---
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))

    # --- INITIALIZE EXTENSIONS ---
    # We attach the tools to this specific app instance
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    origins = app.config['CORS_ORIGINS']
    cors.init_app(app, resources={
        r"/api/*": {
            "origins": origins if origins == '*' else [o.strip() for o in origins.split(',')],
            "methods": ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }
    })

    register_error_handlers(app)

    # --- REGISTER BLUEPRINTS ---
    # Import inside the function to avoid circular imports
    from routes.auth import auth_bp
    from routes.donations import donations_bp
    from routes.messaging import messaging_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(donations_bp)
    app.register_blueprint(messaging_bp)

    return app


# --- ENTRY POINT ---
# This only runs if you type 'python app.py'
if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(debug=True)
