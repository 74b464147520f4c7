from __future__ import annotations

import logging

from flask import current_app

from ..draw import DEFAULT_MAX_ATTEMPTS, Assignment as Pair, RandomSource, generate
from ..extensions import db
from ..models import Group, Participant, Assignment, utcnow
from ..security import encrypt_receiver, decrypt_receiver
from .groups import RosterChanged, locked_group, roster_for


logger = logging.getLogger(__name__)


def run_draw(group: Group, rng: RandomSource | None = None) -> list[Pair]:
    """
    Draw names for `group` and install the result as its only assignment set.

    Runs under the group's lock, which joins and removals also take. Old rows
    are deleted and new rows inserted in a single commit, so readers see the
    old set or the new one, never a mix. If the roster no longer matches the
    snapshot the draw was made from, RosterChanged is raised instead. On any
    failure the transaction is rolled back and the old set survives.
    """
    max_attempts = int(current_app.config.get("DRAW_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))
    strategy = current_app.config.get("DRAW_STRATEGY", "incremental")

    with locked_group(group.id) as locked:
        roster = roster_for(locked)
        pairs = generate(roster, rng=rng, max_attempts=max_attempts, strategy=strategy)

        Assignment.query.filter_by(group_id=locked.id).delete(synchronize_session=False)
        for giver_id, receiver_id in pairs:
            db.session.add(Assignment(
                group_id=locked.id,
                giver_id=giver_id,
                receiver_ciphertext=encrypt_receiver(receiver_id),
            ))
        locked.drawn_at = utcnow()

        # another process may share the database
        if roster_for(locked) != roster:
            raise RosterChanged("Participants changed during the draw; try again.")
        db.session.commit()

    logger.info("Installed draw for group %s (%s participants)", group.id, len(pairs))
    return pairs


def clear_assignments(group: Group) -> None:
    with locked_group(group.id) as locked:
        Assignment.query.filter_by(group_id=locked.id).delete(synchronize_session=False)
        locked.drawn_at = None
        db.session.commit()
    logger.info("Cleared draw for group %s", group.id)


def receiver_for(group: Group, participant: Participant) -> Participant | None:
    row = Assignment.query.filter_by(group_id=group.id, giver_id=participant.id).first()
    if row is None:
        return None
    return db.session.get(Participant, decrypt_receiver(row.receiver_ciphertext))


def load_assignments(group: Group) -> list[tuple[Participant, Participant]]:
    rows = (
        Assignment.query.filter_by(group_id=group.id)
        .order_by(Assignment.giver_id.asc())
        .all()
    )
    people = {p.id: p for p in Participant.query.filter_by(group_id=group.id).all()}
    return [(people[row.giver_id], people[decrypt_receiver(row.receiver_ciphertext)]) for row in rows]
