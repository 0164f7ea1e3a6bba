"""initial trust schema

Revision ID: 3c1f9a2b7d40
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f9a2b7d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

community_role = sa.Enum("ADMIN", "MODERATOR", "MEMBER", name="community_role")
vouch_type = sa.Enum("INDIVIDUAL", "COMMUNITY", name="vouch_type")
vouch_status = sa.Enum(
    "PENDING", "APPROVED", "ACTIVE", "REVOKED", "REJECTED", name="vouch_status"
)
vouch_offer_status = sa.Enum(
    "PENDING", "ACCEPTED", "REJECTED", "EXPIRED", name="vouch_offer_status"
)


def upgrade() -> None:
    """Create users, communities, memberships, vouches, offers and attendance."""
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "community",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("interests", sa.JSON(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("requires_approval", sa.Boolean(), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["created_by_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_community_category", "community", ["category"])

    op.create_table(
        "community_member",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("community_id", sa.String(length=36), nullable=False),
        sa.Column("role", community_role, nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "community_id", name="uq_community_member"),
    )
    op.create_index("ix_community_member_user_id", "community_member", ["user_id"])
    op.create_index("ix_community_member_community_id", "community_member", ["community_id"])

    op.create_table(
        "vouch",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("voucher_id", sa.String(length=36), nullable=False),
        sa.Column("vouchee_id", sa.String(length=36), nullable=False),
        sa.Column("vouch_type", vouch_type, nullable=False),
        sa.Column("weight_percentage", sa.Float(), nullable=False),
        sa.Column("is_community_vouch", sa.Boolean(), nullable=False),
        sa.Column("community_id", sa.String(length=36), nullable=True),
        sa.Column("vouched_by_admin_id", sa.String(length=36), nullable=True),
        sa.Column("status", vouch_status, nullable=False),
        sa.Column("requires_approval", sa.Boolean(), nullable=False),
        sa.Column("is_auto_vouched", sa.Boolean(), nullable=False),
        sa.Column("auto_vouch_criteria", sa.JSON(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoke_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["voucher_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["vouchee_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["vouched_by_admin_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vouch_vouchee_id", "vouch", ["vouchee_id"])
    op.create_index("ix_vouch_community_id", "vouch", ["community_id"])

    op.create_table(
        "community_vouch_offer",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("community_id", sa.String(length=36), nullable=False),
        sa.Column("eligibility_reason", sa.Text(), nullable=False),
        sa.Column("events_attended", sa.Integer(), nullable=False),
        sa.Column("membership_days", sa.Integer(), nullable=False),
        sa.Column("has_negative_feedback", sa.Boolean(), nullable=False),
        sa.Column("status", vouch_offer_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vouch_id", sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["vouch_id"], ["vouch.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_community_vouch_offer_user_id", "community_vouch_offer", ["user_id"])
    op.create_index(
        "ix_community_vouch_offer_community_id", "community_vouch_offer", ["community_id"]
    )

    op.create_table(
        "event_attendance",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("community_id", sa.String(length=36), nullable=False),
        sa.Column("event_id", sa.String(length=64), nullable=False),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["community_id"], ["community.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "event_id", name="uq_event_attendance"),
    )
    op.create_index("ix_event_attendance_user_id", "event_attendance", ["user_id"])
    op.create_index("ix_event_attendance_community_id", "event_attendance", ["community_id"])


def downgrade() -> None:
    """Drop every trust table and enum type."""
    op.drop_table("event_attendance")
    op.drop_table("community_vouch_offer")
    op.drop_table("vouch")
    op.drop_table("community_member")
    op.drop_table("community")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (vouch_offer_status, vouch_status, vouch_type, community_role):
        enum_type.drop(bind, checkfirst=True)
