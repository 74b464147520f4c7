from __future__ import annotations

import logging
import math
import threading
from contextlib import contextmanager

from ..extensions import db
from ..models import Group, Participant, Assignment
from ..security import generate_join_code, generate_secret, hash_secret


logger = logging.getLogger(__name__)

MAX_JOIN_CODE_TRIES = 10

# Fixed pool of locks, shared by groups whose ids collide modulo its size.
LOCK_STRIPES = 64
_group_locks = [threading.Lock() for _ in range(LOCK_STRIPES)]


class GroupError(RuntimeError):
    pass


class GroupNotFound(GroupError):
    pass


class ValidationError(GroupError):
    pass


class RegistrationClosed(GroupError):
    pass


class DuplicateParticipant(GroupError):
    pass


class RosterChanged(GroupError):
    """The roster moved under a draw; nothing was installed."""


def group_lock(group_id: int) -> threading.Lock:
    return _group_locks[group_id % LOCK_STRIPES]


@contextmanager
def locked_group(group_id: int):
    """
    Serialize everything that changes a group's roster or its draw.

    Holds the in-process lock for the group and re-reads the group row with
    SELECT ... FOR UPDATE (ignored by SQLite). Yields the fresh Group; the
    session is rolled back if the block raises.
    """
    with group_lock(group_id):
        try:
            group = (
                db.session.query(Group)
                .filter_by(id=group_id)
                .with_for_update()
                .populate_existing()
                .one_or_none()
            )
            if group is None:
                raise GroupNotFound(f"Group {group_id} not found.")
            yield group
        except Exception:
            db.session.rollback()
            raise


def _clean(value, field: str, max_len: int, required: bool = True) -> str | None:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string.")
    text = (value or "").strip()
    if not text:
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    if len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters.")
    return text


def _budget(value) -> float | None:
    if value is None or value == "":
        return None
    try:
        budget = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("budget_limit must be a number.") from e
    if not math.isfinite(budget):
        raise ValidationError("budget_limit must be a finite number.")
    if budget < 0:
        raise ValidationError("budget_limit cannot be negative.")
    return budget


def _unused_join_code() -> str:
    for _ in range(MAX_JOIN_CODE_TRIES):
        code = generate_join_code()
        if not Group.query.filter_by(join_code=code).first():
            return code
    raise GroupError("Could not allocate a unique join code.")


def create_group(name, budget_limit=None, custom_message=None) -> tuple[Group, str]:
    """
    Returns (group, admin_secret). Only the hash of the secret is stored,
    so the caller must hand it to the organizer now.
    """
    group_name = _clean(name, "name", 120)
    budget = _budget(budget_limit)
    message = _clean(custom_message, "custom_message", 2000, required=False)

    admin_secret = generate_secret()
    group = Group(
        name=group_name,
        budget_limit=budget,
        custom_message=message,
        join_code=_unused_join_code(),
        admin_secret_hash=hash_secret(admin_secret),
    )
    db.session.add(group)
    db.session.commit()

    logger.info("Created group %s", group.id)
    return group, admin_secret


def get_group(group_id: int) -> Group:
    group = db.session.get(Group, group_id)
    if group is None:
        raise GroupNotFound(f"Group {group_id} not found.")
    return group


def find_group_by_join_code(code) -> Group:
    normalized = (code or "").strip().upper()
    group = Group.query.filter_by(join_code=normalized).first() if normalized else None
    if group is None:
        raise GroupNotFound("Invalid join code.")
    return group


def get_participant(group: Group, participant_id: int) -> Participant:
    p = Participant.query.filter_by(group_id=group.id, id=participant_id).first()
    if p is None:
        raise GroupNotFound(f"Participant {participant_id} not found in this group.")
    return p


def join_group(join_code, name, contact, wishlist=None) -> tuple[Participant, str]:
    """Returns (participant, access_key); the key is what lets them see their draw later."""
    group = find_group_by_join_code(join_code)

    display_name = _clean(name, "name", 64)
    contact_value = _clean(contact, "contact", 255)
    wishlist_value = _clean(wishlist, "wishlist", 2000, required=False)
    name_key = display_name.casefold()

    access_key = generate_secret()
    access_key_hash = hash_secret(access_key)

    with locked_group(group.id) as locked:
        if locked.is_drawn:
            raise RegistrationClosed("Names have already been drawn for this group.")
        if Participant.query.filter_by(group_id=locked.id, name_key=name_key).first():
            raise DuplicateParticipant(f"{display_name} has already joined this group.")

        p = Participant(
            group_id=locked.id,
            name=display_name,
            name_key=name_key,
            contact=contact_value,
            wishlist=wishlist_value,
            access_key_hash=access_key_hash,
        )
        db.session.add(p)
        db.session.commit()

    logger.info("Participant %s joined group %s", p.id, group.id)
    return p, access_key


def remove_participant(group: Group, participant_id: int) -> None:
    """
    Removing someone makes any existing draw stale, so the group's assignments
    are dropped in the same transaction.
    """
    with locked_group(group.id) as locked:
        p = get_participant(locked, participant_id)

        if locked.is_drawn:
            Assignment.query.filter_by(group_id=locked.id).delete(synchronize_session=False)
            locked.drawn_at = None
            logger.info("Cleared draw of group %s after removing participant %s", locked.id, p.id)

        db.session.delete(p)
        db.session.commit()


def roster_for(group: Group) -> list[int]:
    rows = (
        db.session.query(Participant.id)
        .filter(Participant.group_id == group.id)
        .order_by(Participant.id.asc())
        .all()
    )
    return [row.id for row in rows]
