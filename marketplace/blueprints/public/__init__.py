from flask import Blueprint

public_bp = Blueprint("public", __name__)

from marketplace.blueprints.public import views  # noqa: F401, E402
