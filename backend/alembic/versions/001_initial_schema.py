"""Initial schema: participants, events with rounds, registrations with round
outcomes, certificates.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Participant directory, provisioned by the auth service
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'student'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *timestamps(),
        sa.CheckConstraint("role IN ('student', 'organizer', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("venue", sa.String(255), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("administrative_status", sa.String(20), nullable=False, server_default=sa.text("'draft'")),
        sa.Column("organizer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("current_round_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("certificate_sequence", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *timestamps(),
        sa.CheckConstraint("start_date < end_date", name="check_event_dates_ordered"),
        sa.CheckConstraint("current_round_index >= 0", name="check_current_round_non_negative"),
        sa.CheckConstraint("certificate_sequence >= 0", name="check_certificate_sequence_non_negative"),
        sa.CheckConstraint(
            "administrative_status IN ('draft', 'published', 'cancelled')",
            name="check_event_administrative_status",
        ),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    # Covers the public listing: WHERE administrative_status ... ORDER BY start_date
    op.create_index("ix_events_status_start", "events", ["administrative_status", "start_date"])

    # Rounds table
    op.create_table(
        "rounds",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "eligibility_rule", sa.String(30), nullable=False, server_default=sa.text("'passed_previous'")
        ),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("admitted_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *timestamps(),
        sa.UniqueConstraint("event_id", "sequence_number", name="uq_event_round_sequence"),
        sa.CheckConstraint("sequence_number >= 0", name="check_round_sequence_non_negative"),
        sa.CheckConstraint("capacity IS NULL OR capacity > 0", name="check_round_capacity_positive"),
        sa.CheckConstraint("admitted_count >= 0", name="check_round_admitted_non_negative"),
        # Safety net under the guarded admission UPDATE
        sa.CheckConstraint(
            "capacity IS NULL OR admitted_count <= capacity",
            name="check_round_admitted_lte_capacity",
        ),
        sa.CheckConstraint(
            "eligibility_rule IN ('open', 'passed_previous')",
            name="check_round_eligibility_rule",
        ),
    )
    op.create_index("ix_rounds_id", "rounds", ["id"])
    op.create_index("ix_rounds_event_id", "rounds", ["event_id"])

    # Registrations table
    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("registration_number", sa.String(64), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("eliminated_in_round", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *timestamps(),
        sa.UniqueConstraint("registration_number", name="uq_registration_number"),
        sa.UniqueConstraint("participant_id", "event_id", name="uq_participant_event_registration"),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'eliminated')",
            name="check_registration_status",
        ),
    )
    op.create_index("ix_registrations_id", "registrations", ["id"])
    op.create_index("ix_registrations_participant_id", "registrations", ["participant_id"])
    op.create_index("ix_registrations_event_id", "registrations", ["event_id"])
    op.create_index("ix_registrations_event_status", "registrations", ["event_id", "status"])

    # Round outcomes: one row per round a registration has reached
    op.create_table(
        "round_outcomes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "registration_id",
            sa.Integer(),
            sa.ForeignKey("registrations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("outcome", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        *timestamps(),
        sa.UniqueConstraint("registration_id", "sequence_number", name="uq_registration_round_outcome"),
        sa.CheckConstraint("sequence_number >= 0", name="check_outcome_sequence_non_negative"),
        sa.CheckConstraint(
            "outcome IN ('pending', 'passed', 'failed', 'eliminated')",
            name="check_round_outcome_value",
        ),
    )
    op.create_index("ix_round_outcomes_id", "round_outcomes", ["id"])
    op.create_index("ix_round_outcomes_registration_id", "round_outcomes", ["registration_id"])
    # Auto-advance asks "is anyone still pending in round N of event E"
    op.create_index(
        "ix_round_outcomes_event_round_outcome",
        "round_outcomes",
        ["event_id", "sequence_number", "outcome"],
    )

    # Certificates table
    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("certificate_number", sa.String(64), nullable=False),
        sa.Column("verification_code", sa.String(64), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("participant_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("registration_id", sa.Integer(), sa.ForeignKey("registrations.id"), nullable=False),
        sa.Column("issued_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("revoked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(500), nullable=True),
        *timestamps(),
        sa.UniqueConstraint("event_id", "participant_id", name="uq_event_participant_certificate"),
    )
    op.create_index("ix_certificates_id", "certificates", ["id"])
    # Verification looks up either identifier with one indexed query
    op.create_index("ix_certificates_certificate_number", "certificates", ["certificate_number"], unique=True)
    op.create_index("ix_certificates_verification_code", "certificates", ["verification_code"], unique=True)
    op.create_index("ix_certificates_event_id", "certificates", ["event_id"])
    op.create_index("ix_certificates_participant_id", "certificates", ["participant_id"])


def downgrade() -> None:
    op.drop_table("certificates")
    op.drop_table("round_outcomes")
    op.drop_table("registrations")
    op.drop_table("rounds")
    op.drop_table("events")
    op.drop_table("users")
