from __future__ import annotations

from flask import Blueprint, g, jsonify

from ..policies import AdminRequiredMixin, ParticipantRequiredMixin
from ..services.assignments import run_draw, clear_assignments, receiver_for
from ..services.groups import remove_participant
from ..services.notifications import send_results


draws_bp = Blueprint("draws", __name__, url_prefix="/groups/<int:group_id>")


class ParticipantsView(AdminRequiredMixin):
    def get(self, group_id: int):
        return jsonify(participants=[
            {"id": p.id, "name": p.name, "contact": p.contact, "wishlist": p.wishlist}
            for p in g.group.participants
        ])


class RemoveParticipantView(AdminRequiredMixin):
    def delete(self, group_id: int, participant_id: int):
        remove_participant(g.group, participant_id)
        return "", 204


class DrawView(AdminRequiredMixin):
    def post(self, group_id: int):
        # the pairs stay secret, even from the organizer
        pairs = run_draw(g.group)
        return jsonify(count=len(pairs), drawn_at=g.group.drawn_at.isoformat())

    def delete(self, group_id: int):
        clear_assignments(g.group)
        return "", 204


class NotifyView(AdminRequiredMixin):
    def post(self, group_id: int):
        report = send_results(g.group)
        return jsonify(report.to_dict())


class MyAssignmentView(ParticipantRequiredMixin):
    def get(self, group_id: int, participant_id: int):
        group = g.group
        receiver = receiver_for(group, g.participant)
        if receiver is None:
            return jsonify(error="Names have not been drawn yet."), 404
        return jsonify(
            group=group.name,
            receiver={"name": receiver.name, "wishlist": receiver.wishlist},
            budget_limit=group.budget_limit,
            custom_message=group.custom_message,
        )


draws_bp.add_url_rule("/participants", view_func=ParticipantsView.as_view("participants"), methods=["GET"])
draws_bp.add_url_rule(
    "/participants/<int:participant_id>",
    view_func=RemoveParticipantView.as_view("remove_participant"),
    methods=["DELETE"],
)
draws_bp.add_url_rule("/draw", view_func=DrawView.as_view("draw"), methods=["POST", "DELETE"])
draws_bp.add_url_rule("/notify", view_func=NotifyView.as_view("notify"), methods=["POST"])
draws_bp.add_url_rule(
    "/participants/<int:participant_id>/assignment",
    view_func=MyAssignmentView.as_view("my_assignment"),
    methods=["GET"],
)
