from flask import current_app, g
from flask_jwt_extended import current_user

from escrow_service.extensions import db
from escrow_service.services import Actor, build_services


def get_services():
    if "services" not in g:
        g.services = build_services(
            db.session,
            default_period_days=current_app.config["ESCROW_PERIOD_DAYS"],
        )
    return g.services


def current_actor():
    return Actor.from_user(current_user)
