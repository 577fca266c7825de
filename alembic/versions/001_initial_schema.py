"""001 – Initial schema: users, balances, leave requests, files, notifications, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("user_role", ["employee", "manager", "admin"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    (
        "leave_type",
        ["AnnualLeave", "SickLeave", "FamilyResponsibility", "UnpaidLeave", "Other"],
    ),
    (
        "notification_type",
        [
            "leave_submitted",
            "leave_approved",
            "leave_rejected",
            "leave_cancelled",
            "system",
        ],
    ),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute('CREATE EXTENSION IF NOT EXISTS "btree_gist"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(200) NOT NULL,
            email       VARCHAR(255) NOT NULL UNIQUE,
            phone       VARCHAR(30),
            department  VARCHAR(100),
            position    VARCHAR(100),
            join_date   DATE,
            role        user_role NOT NULL DEFAULT 'employee',
            avatar_url  TEXT,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW(),
            updated_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            user_id     UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            leave_type  leave_type NOT NULL,
            remaining   INTEGER NOT NULL DEFAULT 0,
            updated_at  TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (user_id, leave_type),
            CONSTRAINT ck_leave_balance_non_negative CHECK (remaining >= 0)
        )
    """)

    # ── 3. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            owner_id          UUID NOT NULL REFERENCES users(id),
            leave_type        leave_type NOT NULL,
            start_date        DATE NOT NULL,
            end_date          DATE NOT NULL,
            days              INTEGER NOT NULL,
            reason            TEXT NOT NULL,
            status            leave_status NOT NULL DEFAULT 'pending',
            rejection_reason  TEXT,
            emergency_contact VARCHAR(200),
            emergency_phone   VARCHAR(30),
            actioned_by       UUID REFERENCES users(id),
            actioned_at       TIMESTAMPTZ,
            cancelled_at      TIMESTAMPTZ,
            submitted_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at        TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_dates_ordered CHECK (start_date <= end_date),
            CONSTRAINT ck_leave_days_positive CHECK (days >= 1)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_owner_dates
            ON leave_requests(owner_id, start_date, end_date)
    """)
    op.execute("CREATE INDEX ix_leave_requests_status ON leave_requests(status)")
    # One active request per owner per calendar day, enforced by the database
    op.execute("""
        ALTER TABLE leave_requests
            ADD CONSTRAINT ex_leave_requests_no_overlap
            EXCLUDE USING gist (
                owner_id WITH =,
                daterange(start_date, end_date, '[]') WITH &&
            )
            WHERE (status IN ('pending', 'approved'))
    """)

    # ── 4. leave_files ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_files (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_id       UUID REFERENCES leave_requests(id) ON DELETE SET NULL,
            uploaded_by    UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            original_name  VARCHAR(255) NOT NULL,
            stored_name    VARCHAR(255) NOT NULL UNIQUE,
            url            VARCHAR(500) NOT NULL,
            size           INTEGER NOT NULL,
            content_type   VARCHAR(100) NOT NULL,
            uploaded_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_leave_files_leave_id ON leave_files(leave_id)")
    op.execute("CREATE INDEX ix_leave_files_uploaded_by ON leave_files(uploaded_by)")

    # ── 5. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id     UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            triggered_by_id  UUID REFERENCES users(id) ON DELETE SET NULL,
            leave_id         UUID REFERENCES leave_requests(id) ON DELETE CASCADE,
            type             notification_type NOT NULL DEFAULT 'system',
            title            VARCHAR(200) NOT NULL,
            message          TEXT NOT NULL,
            is_read          BOOLEAN DEFAULT FALSE,
            read_at          TIMESTAMPTZ,
            created_at       TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_notifications_recipient_read
            ON notifications(recipient_id, is_read)
    """)

    # ── 6. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES users(id) ON DELETE SET NULL,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_entity
            ON audit_trail(entity_type, entity_id)
    """)
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "leave_files",
        "leave_requests",
        "leave_balances",
        "users",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)
