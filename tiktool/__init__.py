# tiktool/__init__.py

from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager

from config import Config

db = SQLAlchemy()
jwt = JWTManager()


def create_app(config_object=Config, billing_provider=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)

    CORS(app, resources={r"/api/*": {"origins": "*"}})

    from .errors import TikToolError
    from .services.admin_policy import AdminPolicy
    from .services.billing import StripeBillingProvider

    if billing_provider is None:
        billing_provider = StripeBillingProvider(
            api_key=app.config["STRIPE_SECRET_KEY"],
            webhook_secret=app.config["STRIPE_WEBHOOK_SECRET"],
            premium_price_id=app.config["STRIPE_PREMIUM_PRICE_ID"],
            points_unit_amount=app.config["STRIPE_POINTS_UNIT_AMOUNT"],
        )
    app.extensions["billing_provider"] = billing_provider
    app.extensions["admin_policy"] = AdminPolicy(app.config["ADMIN_USER_IDS"])

    # -----------------------------
    # JWT error handlers
    # -----------------------------
    @jwt.unauthorized_loader
    def unauthorized_callback(reason):
        return (
            jsonify(
                {
                    "message": "Missing or invalid auth token",
                    "error": reason,
                }
            ),
            401,
        )

    @jwt.invalid_token_loader
    def invalid_token_callback(reason):
        return (
            jsonify(
                {
                    "message": "Invalid auth token",
                    "error": reason,
                }
            ),
            422,
        )

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({"message": "Token has expired"}), 401

    @app.errorhandler(TikToolError)
    def tiktool_error(err):
        return jsonify(err.to_dict()), err.status_code

    # -----------------------------
    # IMPORT BLUEPRINTS (all routes)
    # -----------------------------
    from .routes.auth_routes import auth_bp
    from .routes.dashboard_routes import dashboard_bp
    from .routes.challenge_routes import challenges_bp
    from .routes.engagement_routes import engage_bp
    from .routes.billing_routes import billing_bp
    from .routes.admin_routes import admin_bp, ads_bp

    # -----------------------------
    # REGISTER BLUEPRINTS
    # -----------------------------
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(dashboard_bp, url_prefix="/api/dashboard")
    app.register_blueprint(challenges_bp, url_prefix="/api/challenges")
    app.register_blueprint(engage_bp, url_prefix="/api/engage")
    app.register_blueprint(billing_bp, url_prefix="/api/billing")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(ads_bp, url_prefix="/api/ads")

    @app.route("/api/health")
    def health():
        return {"status": "ok"}

    # -----------------------------
    # DB init
    # -----------------------------
    from . import models  # noqa: F401
    from .seed import seed_defaults

    with app.app_context():
        db.create_all()
        seed_defaults()

    return app
