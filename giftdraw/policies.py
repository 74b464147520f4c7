from __future__ import annotations

import logging

from flask import g, jsonify, request
from flask.views import MethodView

from .models import Group
from .security import verify_secret
from .services.groups import get_group, get_participant, GroupNotFound


logger = logging.getLogger(__name__)


def admin_secret_from_request() -> str:
    # ?admin= keeps the organizer's link shareable as a plain URL
    return (request.headers.get("X-Admin-Secret") or request.args.get("admin") or "").strip()


def is_group_admin(group: Group) -> bool:
    return verify_secret(admin_secret_from_request(), group.admin_secret_hash)


def _forbidden(message: str = "Not authorized."):
    return jsonify(error=message), 403


class AdminRequiredMixin(MethodView):
    """Views under /groups/<group_id>/ that only the group's organizer may call."""

    def dispatch_request(self, *args, **kwargs):
        group = get_group(kwargs["group_id"])
        if not is_group_admin(group):
            logger.warning("Rejected admin request for group %s on %s", group.id, request.path)
            return _forbidden()
        g.group = group
        return super().dispatch_request(*args, **kwargs)


class ParticipantRequiredMixin(MethodView):
    """
    Views under /groups/<group_id>/participants/<participant_id>/ that only
    that participant may call, proven by the access key they got on joining.
    """

    def dispatch_request(self, *args, **kwargs):
        group = get_group(kwargs["group_id"])
        try:
            participant = get_participant(group, kwargs["participant_id"])
        except GroupNotFound:
            # don't reveal which participant ids exist
            return _forbidden()

        access_key = (request.headers.get("X-Access-Key") or "").strip()
        if not verify_secret(access_key, participant.access_key_hash):
            logger.warning("Rejected access key for participant %s", participant.id)
            return _forbidden()

        g.group = group
        g.participant = participant
        return super().dispatch_request(*args, **kwargs)
