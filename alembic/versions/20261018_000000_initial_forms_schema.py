"""Initial forms schema

Revision ID: initial_forms_schema
Revises:
Create Date: 2026-10-18

Creates the users, chemicals, forms, shrub_forms, lawn_forms and
pesticide_applications tables, plus the server-side rules:
- updated_at stamped by trigger on users and forms
- form_type immutable after insert
- detail rows must match their form's form_type
- deferred check that every committed form has a detail row
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision = "initial_forms_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # gen_random_uuid() on PostgreSQL < 13
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==================== TABLES ====================

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("pending", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("role", sa.Text(), server_default=sa.text("'employee'"), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("date_of_birth", sa.Date(), server_default=sa.text("'2000-01-01'"), nullable=False),
        sa.Column("username", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.CheckConstraint("role IN ('employee', 'admin')", name="ck_users_role"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
    )

    op.create_table(
        "chemicals",
        sa.Column("id", sa.SmallInteger(), autoincrement=True, nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("brand_name", sa.Text(), nullable=False),
        sa.Column("chemical_name", sa.Text(), nullable=False),
        sa.Column("epa_reg_no", sa.Text(), nullable=False),
        sa.Column("recipe", sa.Text(), nullable=False),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.CheckConstraint("category IN ('lawn', 'shrub')", name="ck_chemicals_category"),
        sa.PrimaryKeyConstraint("id", name="pk_chemicals"),
    )

    op.create_table(
        "forms",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("created_by", UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("form_type", sa.Text(), nullable=False),
        sa.Column("first_name", sa.Text(), nullable=False),
        sa.Column("last_name", sa.Text(), nullable=False),
        sa.Column("street_number", sa.Text(), nullable=False),
        sa.Column("street_name", sa.Text(), nullable=False),
        sa.Column("town", sa.Text(), nullable=False),
        sa.Column("zip_code", sa.Text(), nullable=False),
        sa.Column("home_phone", sa.Text(), nullable=False),
        sa.Column("other_phone", sa.Text(), nullable=False),
        sa.Column("call_before", sa.Boolean(), server_default=sa.text("FALSE"), nullable=False),
        sa.Column("is_holiday", sa.Boolean(), server_default=sa.text("FALSE"), nullable=False),
        sa.CheckConstraint("form_type IN ('shrub', 'lawn')", name="ck_forms_form_type"),
        sa.CheckConstraint(r"zip_code ~ '^\d{5}(-\d{4})?$'", name="ck_forms_zip_code"),
        sa.ForeignKeyConstraint(
            ["created_by"], ["users.id"],
            name="fk_forms_created_by_users", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_forms"),
    )
    op.create_index("ix_forms_created_by_created_at", "forms", ["created_by", "created_at"])
    op.create_index("ix_forms_zip_code", "forms", ["zip_code"])
    op.execute("CREATE INDEX ix_forms_name_lower ON forms (lower(first_name), lower(last_name))")

    op.create_table(
        "shrub_forms",
        sa.Column("form_id", UUID(as_uuid=True), nullable=False),
        sa.Column("num_shrubs", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("flea_only", sa.Boolean(), server_default=sa.text("FALSE"), nullable=False),
        sa.CheckConstraint("num_shrubs >= 0", name="ck_shrub_forms_num_shrubs_non_negative"),
        sa.ForeignKeyConstraint(
            ["form_id"], ["forms.id"],
            name="fk_shrub_forms_form_id_forms", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("form_id", name="pk_shrub_forms"),
    )

    op.create_table(
        "lawn_forms",
        sa.Column("form_id", UUID(as_uuid=True), nullable=False),
        sa.Column("lawn_area_sq_ft", sa.Integer(), nullable=False),
        sa.Column("fert_only", sa.Boolean(), server_default=sa.text("FALSE"), nullable=False),
        sa.CheckConstraint("lawn_area_sq_ft >= 0", name="ck_lawn_forms_lawn_area_non_negative"),
        sa.ForeignKeyConstraint(
            ["form_id"], ["forms.id"],
            name="fk_lawn_forms_form_id_forms", ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("form_id", name="pk_lawn_forms"),
    )

    op.create_table(
        "pesticide_applications",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("form_id", UUID(as_uuid=True), nullable=False),
        sa.Column("chem_used", sa.SmallInteger(), nullable=False),
        sa.Column("app_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("rate", sa.Text(), nullable=False),
        sa.Column("amount_applied", sa.Numeric(10, 2), nullable=False),
        sa.Column("location_code", sa.String(2), nullable=False),
        sa.CheckConstraint(
            "amount_applied >= 0",
            name="ck_pesticide_applications_amount_applied_non_negative",
        ),
        sa.ForeignKeyConstraint(
            ["form_id"], ["forms.id"],
            name="fk_pesticide_applications_form_id_forms", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["chem_used"], ["chemicals.id"],
            name="fk_pesticide_applications_chem_used_chemicals",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_pesticide_applications"),
    )
    op.create_index("ix_pesticide_applications_form_id", "pesticide_applications", ["form_id"])
    op.create_index("ix_pesticide_applications_chem_used", "pesticide_applications", ["chem_used"])

    # ==================== FUNCTIONS ====================

    op.execute("""
        CREATE OR REPLACE FUNCTION set_updated_at()
        RETURNS TRIGGER AS $$
        BEGIN
          NEW.updated_at = NOW();
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_form_type_change()
        RETURNS TRIGGER AS $$
        BEGIN
          IF OLD.form_type IS DISTINCT FROM NEW.form_type THEN
            RAISE EXCEPTION 'form_type cannot be changed once set'
              USING ERRCODE = 'check_violation';
          END IF;
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION enforce_shrub_form()
        RETURNS TRIGGER AS $$
        BEGIN
          IF (SELECT form_type FROM forms WHERE id = NEW.form_id) IS DISTINCT FROM 'shrub' THEN
            RAISE EXCEPTION 'form % is not a shrub form', NEW.form_id
              USING ERRCODE = 'check_violation';
          END IF;
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION enforce_lawn_form()
        RETURNS TRIGGER AS $$
        BEGIN
          IF (SELECT form_type FROM forms WHERE id = NEW.form_id) IS DISTINCT FROM 'lawn' THEN
            RAISE EXCEPTION 'form % is not a lawn form', NEW.form_id
              USING ERRCODE = 'check_violation';
          END IF;
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)

    op.execute("""
        CREATE OR REPLACE FUNCTION enforce_form_has_details()
        RETURNS TRIGGER AS $$
        DECLARE
          target UUID;
        BEGIN
          IF TG_TABLE_NAME = 'forms' THEN
            target = NEW.id;
          ELSE
            target = OLD.form_id;
          END IF;

          IF EXISTS (SELECT 1 FROM forms WHERE id = target)
             AND NOT EXISTS (SELECT 1 FROM shrub_forms WHERE form_id = target)
             AND NOT EXISTS (SELECT 1 FROM lawn_forms WHERE form_id = target) THEN
            RAISE EXCEPTION 'form % has no detail row', target
              USING ERRCODE = 'integrity_constraint_violation';
          END IF;
          RETURN NULL;
        END;
        $$ LANGUAGE plpgsql
    """)

    # ==================== TRIGGERS ====================

    op.execute("""
        CREATE TRIGGER trg_users_updated_at
        BEFORE UPDATE ON users
        FOR EACH ROW
        EXECUTE FUNCTION set_updated_at()
    """)

    op.execute("""
        CREATE TRIGGER trg_forms_updated_at
        BEFORE INSERT OR UPDATE ON forms
        FOR EACH ROW
        EXECUTE FUNCTION set_updated_at()
    """)

    op.execute("""
        CREATE TRIGGER trg_prevent_form_type_change
        BEFORE UPDATE ON forms
        FOR EACH ROW
        EXECUTE FUNCTION prevent_form_type_change()
    """)

    op.execute("""
        CREATE CONSTRAINT TRIGGER trg_forms_require_details
        AFTER INSERT ON forms
        DEFERRABLE INITIALLY DEFERRED
        FOR EACH ROW
        EXECUTE FUNCTION enforce_form_has_details()
    """)

    op.execute("""
        CREATE TRIGGER trg_shrub_forms_type_check
        BEFORE INSERT OR UPDATE ON shrub_forms
        FOR EACH ROW
        EXECUTE FUNCTION enforce_shrub_form()
    """)

    op.execute("""
        CREATE CONSTRAINT TRIGGER trg_shrub_forms_require_details
        AFTER DELETE ON shrub_forms
        DEFERRABLE INITIALLY DEFERRED
        FOR EACH ROW
        EXECUTE FUNCTION enforce_form_has_details()
    """)

    op.execute("""
        CREATE TRIGGER trg_lawn_forms_type_check
        BEFORE INSERT OR UPDATE ON lawn_forms
        FOR EACH ROW
        EXECUTE FUNCTION enforce_lawn_form()
    """)

    op.execute("""
        CREATE CONSTRAINT TRIGGER trg_lawn_forms_require_details
        AFTER DELETE ON lawn_forms
        DEFERRABLE INITIALLY DEFERRED
        FOR EACH ROW
        EXECUTE FUNCTION enforce_form_has_details()
    """)


def downgrade() -> None:
    # Dropping the tables drops their triggers
    op.drop_table("pesticide_applications")
    op.drop_table("lawn_forms")
    op.drop_table("shrub_forms")
    op.drop_table("forms")
    op.drop_table("chemicals")
    op.drop_table("users")

    op.execute("DROP FUNCTION IF EXISTS enforce_form_has_details()")
    op.execute("DROP FUNCTION IF EXISTS enforce_lawn_form()")
    op.execute("DROP FUNCTION IF EXISTS enforce_shrub_form()")
    op.execute("DROP FUNCTION IF EXISTS prevent_form_type_change()")
    op.execute("DROP FUNCTION IF EXISTS set_updated_at()")
