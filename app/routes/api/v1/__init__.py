from flask import Blueprint

from app.routes.api.v1.auth import api_auth_bp
from app.routes.api.v1.geo import api_geo_bp
from app.routes.api.v1.payments import api_payment_bp
from app.routes.api.v1.wallet import api_wallet_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_payment_bp, url_prefix="/payments")
api_v1_bp.register_blueprint(api_wallet_bp, url_prefix="/wallet")
api_v1_bp.register_blueprint(api_geo_bp, url_prefix="/geo")
