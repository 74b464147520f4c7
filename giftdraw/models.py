from datetime import datetime, timezone
from .extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    budget_limit = db.Column(db.Float, nullable=True)
    custom_message = db.Column(db.Text, nullable=True)

    join_code = db.Column(db.String(16), unique=True, nullable=False)

    # Passlib hash of the admin secret; the plaintext is only shown once, on creation.
    admin_secret_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    # Set when an assignment set is installed, cleared with it.
    drawn_at = db.Column(db.DateTime, nullable=True)

    participants = db.relationship(
        "Participant",
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="Participant.id",
    )

    @property
    def is_drawn(self) -> bool:
        return self.drawn_at is not None


class Participant(db.Model):
    __tablename__ = "participants"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)

    name = db.Column(db.String(64), nullable=False)
    # casefolded name, for per-group uniqueness; casefold() can make a name up to 3x longer
    name_key = db.Column(db.String(192), nullable=False)
    contact = db.Column(db.String(255), nullable=False)
    wishlist = db.Column(db.Text, nullable=True)

    access_key_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    group = db.relationship("Group", back_populates="participants")

    __table_args__ = (
        db.UniqueConstraint("group_id", "name_key", name="uq_participant_group_name"),
    )


class Assignment(db.Model):
    """
    One giver -> receiver pair of a group's live draw.
    The receiver is stored as a Fernet token, never as a plain id.
    """
    __tablename__ = "assignments"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    giver_id = db.Column(db.Integer, db.ForeignKey("participants.id", ondelete="CASCADE"), nullable=False)
    receiver_ciphertext = db.Column(db.Text, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("group_id", "giver_id", name="uq_assignment_group_giver"),
    )
