from dataledger.routes.main import bp as main_bp
from dataledger.routes.auth import bp as auth_bp
from dataledger.routes.permissions import bp as permissions_bp
from dataledger.routes.earnings import bp as earnings_bp
from dataledger.routes.privacy import bp as privacy_bp
from dataledger.routes.blockchain import bp as blockchain_bp
from dataledger.routes.reconciler import bp as reconciler_bp


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(permissions_bp)
    app.register_blueprint(earnings_bp)
    app.register_blueprint(privacy_bp)
    app.register_blueprint(blockchain_bp)
    app.register_blueprint(reconciler_bp)
