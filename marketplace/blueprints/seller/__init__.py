from flask import Blueprint

seller_bp = Blueprint("seller", __name__)

from marketplace.blueprints.seller import views  # noqa: F401, E402
