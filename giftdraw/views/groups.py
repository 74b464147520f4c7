from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask.views import MethodView

from ..models import Group
from ..services.groups import create_group, get_group, join_group


groups_bp = Blueprint("groups", __name__, url_prefix="/groups")


def group_summary(group: Group) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "budget_limit": group.budget_limit,
        "custom_message": group.custom_message,
        "num_participants": len(group.participants),
        "drawn": group.is_drawn,
        "drawn_at": group.drawn_at.isoformat() if group.drawn_at else None,
    }


class CreateGroupView(MethodView):
    def post(self):
        data = request.get_json(silent=True) or {}
        group, admin_secret = create_group(
            data.get("name"),
            budget_limit=data.get("budget_limit"),
            custom_message=data.get("custom_message"),
        )
        body = group_summary(group)
        body.update(join_code=group.join_code, admin_secret=admin_secret)
        return jsonify(body), 201


class GroupDetailView(MethodView):
    def get(self, group_id: int):
        return jsonify(group_summary(get_group(group_id)))


class JoinGroupView(MethodView):
    def post(self):
        data = request.get_json(silent=True) or {}
        participant, access_key = join_group(
            data.get("join_code"),
            data.get("name"),
            data.get("contact"),
            wishlist=data.get("wishlist"),
        )
        return jsonify(
            participant_id=participant.id,
            group_id=participant.group_id,
            name=participant.name,
            access_key=access_key,
        ), 201


groups_bp.add_url_rule("", view_func=CreateGroupView.as_view("create"), methods=["POST"])
groups_bp.add_url_rule("/<int:group_id>", view_func=GroupDetailView.as_view("detail"), methods=["GET"])
groups_bp.add_url_rule("/join", view_func=JoinGroupView.as_view("join"), methods=["POST"])
