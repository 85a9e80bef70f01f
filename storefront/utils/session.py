# storefront/utils/session.py
from __future__ import annotations

import uuid
from dataclasses import dataclass

from flask import current_app, g, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

GUEST_PREFIX = "guest-"


@dataclass(frozen=True)
class SessionContext:
    """Who is shopping: a registered user, a guest, or a guest who just logged in."""

    user_id: str | None = None
    guest_id: str | None = None

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    @property
    def guest_owner_id(self) -> str | None:
        return f"{GUEST_PREFIX}{self.guest_id}" if self.guest_id else None

    @property
    def owner_id(self) -> str:
        if self.user_id:
            return self.user_id
        if self.guest_id:
            return self.guest_owner_id
        raise ValueError("session has neither a user id nor a guest id")


def _guest_id_from_request() -> str | None:
    cfg = current_app.config
    gid = request.headers.get(cfg["GUEST_HEADER_NAME"]) or request.cookies.get(cfg["GUEST_COOKIE_NAME"])
    gid = (gid or "").strip()
    if gid.startswith(GUEST_PREFIX):
        gid = gid[len(GUEST_PREFIX):]
    return gid or None


def resolve_session() -> SessionContext:
    """Build the SessionContext for the current request.

    Guests without an id get a fresh one; ``issue_guest_cookie`` hands it back.
    """
    verify_jwt_in_request(optional=True)
    identity = get_jwt_identity()
    user_id = str(identity) if identity is not None else None

    guest_id = _guest_id_from_request()
    if not user_id and not guest_id:
        guest_id = str(uuid.uuid4())
        g.new_guest_id = guest_id
    return SessionContext(user_id=user_id, guest_id=guest_id)


def register_guest_cookie(app):
    @app.after_request
    def issue_guest_cookie(response):
        gid = g.pop("new_guest_id", None)
        if gid:
            response.set_cookie(
                app.config["GUEST_COOKIE_NAME"],
                gid,
                max_age=app.config["GUEST_COOKIE_MAX_AGE"],
                httponly=True,
                samesite="Lax",
            )
            response.headers[app.config["GUEST_HEADER_NAME"]] = gid
        return response
