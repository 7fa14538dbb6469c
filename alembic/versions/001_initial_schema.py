"""Initial schema.

Creates the enum types and every table: users, profiles, points_ledger,
subjects, badges, user_badges, questions, answers, study_groups,
group_members, group_invitations, messages, resources and notifications.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_TYPES = {
    "difficulty_level": ("easy", "medium", "hard"),
    "group_role": ("admin", "moderator", "member"),
    "privacy_level": ("public", "private", "invite_only"),
    "message_type": ("text", "file", "system"),
    "notification_type": (
        "question_answered",
        "answer_accepted",
        "group_invitation",
        "resource_shared",
        "points_earned",
    ),
    "badge_requirement_type": (
        "points",
        "questions_asked",
        "answers_given",
        "answers_accepted",
        "resources_shared",
    ),
}


def upgrade() -> None:
    for name, values in ENUM_TYPES.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"CREATE TYPE {name} AS ENUM ({labels})")

    # --- Users & profiles ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            password_hash VARCHAR(256) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            last_login TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            id UUID PRIMARY KEY,
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            full_name TEXT NOT NULL DEFAULT 'Student',
            avatar_url TEXT,
            school_name TEXT,
            grade_level TEXT,
            bio TEXT,
            points INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS points_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            reason VARCHAR(32) NOT NULL,
            idempotency_key VARCHAR(128) UNIQUE NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_points_ledger_user ON points_ledger(user_id)")

    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS subjects (
            id UUID PRIMARY KEY,
            name TEXT NOT NULL,
            code VARCHAR(16) UNIQUE NOT NULL,
            description TEXT,
            grade_levels JSONB NOT NULL DEFAULT '[]',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id UUID PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(16) NOT NULL,
            color VARCHAR(16) NOT NULL,
            requirement_type badge_requirement_type NOT NULL,
            requirement_value INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_badges (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            badge_id UUID NOT NULL REFERENCES badges(id) ON DELETE CASCADE,
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_user_badges_user_badge UNIQUE (user_id, badge_id)
        )
    """)

    # --- Q&A ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS questions (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            subject_id UUID REFERENCES subjects(id) ON DELETE SET NULL,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            difficulty difficulty_level NOT NULL DEFAULT 'medium',
            grade_level TEXT,
            view_count INTEGER NOT NULL DEFAULT 0,
            upvotes INTEGER NOT NULL DEFAULT 0,
            is_resolved BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_questions_created ON questions(created_at DESC)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_questions_user ON questions(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS answers (
            id UUID PRIMARY KEY,
            question_id UUID NOT NULL REFERENCES questions(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            upvotes INTEGER NOT NULL DEFAULT 0,
            downvotes INTEGER NOT NULL DEFAULT 0,
            is_accepted BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS ix_answers_question_id ON answers(question_id)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_answers_user ON answers(user_id)")
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_answers_one_accepted_per_question
        ON answers(question_id) WHERE is_accepted
    """)

    # --- Study groups & chat ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS study_groups (
            id UUID PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT,
            creator_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            subject_id UUID REFERENCES subjects(id) ON DELETE SET NULL,
            max_members INTEGER NOT NULL DEFAULT 50 CHECK (max_members >= 2),
            privacy privacy_level NOT NULL DEFAULT 'public',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS group_members (
            id UUID PRIMARY KEY,
            group_id UUID NOT NULL REFERENCES study_groups(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role group_role NOT NULL DEFAULT 'member',
            joined_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_group_members_group_user UNIQUE (group_id, user_id)
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_group_members_user ON group_members(user_id)")
    op.execute("""
        CREATE TABLE IF NOT EXISTS group_invitations (
            id UUID PRIMARY KEY,
            group_id UUID NOT NULL REFERENCES study_groups(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            invited_by UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_group_invitations_group_user UNIQUE (group_id, user_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id UUID PRIMARY KEY,
            group_id UUID NOT NULL REFERENCES study_groups(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            message_type message_type NOT NULL DEFAULT 'text',
            file_url TEXT,
            file_name TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_messages_group_created ON messages(group_id, created_at)")

    # --- Resources ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS resources (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            subject_id UUID REFERENCES subjects(id) ON DELETE SET NULL,
            group_id UUID REFERENCES study_groups(id) ON DELETE SET NULL,
            title TEXT NOT NULL,
            description TEXT,
            file_url TEXT,
            file_type VARCHAR(128),
            file_size BIGINT,
            download_count INTEGER NOT NULL DEFAULT 0,
            rating NUMERIC(3, 2) NOT NULL DEFAULT 0.0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id UUID PRIMARY KEY,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type notification_type NOT NULL,
            title TEXT NOT NULL,
            message TEXT NOT NULL,
            related_id UUID,
            is_read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_notifications_user_created ON notifications(user_id, created_at)")
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_unread
        ON notifications(user_id) WHERE is_read = false
    """)


def downgrade() -> None:
    for table in (
        "notifications",
        "resources",
        "messages",
        "group_invitations",
        "group_members",
        "study_groups",
        "answers",
        "questions",
        "user_badges",
        "badges",
        "subjects",
        "points_ledger",
        "profiles",
        "users",
    ):
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")
    for name in reversed(ENUM_TYPES):
        op.execute(f"DROP TYPE IF EXISTS {name}")
