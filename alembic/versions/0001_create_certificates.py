"""create certificates table and public verification function

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Returns only the publicly disclosable columns of an ACTIVE certificate.
# Database consumers that bypass the service get the same redaction.
VERIFY_FUNCTION = """
CREATE OR REPLACE FUNCTION verify_certificate_public(cert_id text)
RETURNS TABLE (
    certificate_id varchar,
    student_name varchar,
    degree varchar,
    field_of_study varchar,
    university_name varchar,
    graduation_date date,
    issued_at timestamptz,
    gpa double precision,
    honors text,
    status varchar
)
LANGUAGE sql STABLE SECURITY DEFINER
AS $$
    SELECT c.certificate_id, c.student_name, c.degree, c.field_of_study,
           c.university_name, c.graduation_date, c.issued_at, c.gpa,
           c.honors, 'valid'::varchar
    FROM certificates c
    WHERE c.certificate_id = upper(btrim(cert_id))
      AND c.status = 'active'
$$;
"""


def upgrade() -> None:
    op.create_table(
        "certificates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("certificate_id", sa.String(length=64), nullable=False),
        sa.Column("student_name", sa.String(length=255), nullable=False),
        sa.Column("student_id", sa.String(length=128), nullable=False),
        sa.Column("degree", sa.String(length=255), nullable=False),
        sa.Column("field_of_study", sa.String(length=255), nullable=False),
        sa.Column("university_name", sa.String(length=255), nullable=False),
        sa.Column("university_code", sa.String(length=10), nullable=False),
        sa.Column("graduation_date", sa.Date(), nullable=False),
        sa.Column("gpa", sa.Float(), nullable=True),
        sa.Column("honors", sa.Text(), nullable=True),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="active"
        ),
        sa.Column("issued_by", sa.String(length=255), nullable=False),
        sa.Column(
            "issued_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("revoked_by", sa.String(length=255), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("qr_payload", sa.Text(), nullable=True),
        sa.UniqueConstraint("certificate_id", name="uq_certificates_certificate_id"),
        sa.CheckConstraint(
            "status IN ('active', 'revoked', 'pending')", name="ck_certificates_status"
        ),
        sa.CheckConstraint(
            "gpa IS NULL OR (gpa >= 0 AND gpa <= 4)", name="ck_certificates_gpa"
        ),
    )
    op.create_index(
        "ix_certificates_university_code_issued_at",
        "certificates",
        ["university_code", "issued_at"],
    )
    op.execute(VERIFY_FUNCTION)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS verify_certificate_public(text)")
    op.drop_index("ix_certificates_university_code_issued_at", table_name="certificates")
    op.drop_table("certificates")
