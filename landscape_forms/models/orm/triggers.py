"""
Server-side integrity rules for the forms schema.

These functions and triggers are the storage layer's copy of the form
invariants, so they hold even for writes that bypass the repository:

- ``updated_at`` on forms and users is stamped by the database
- ``form_type`` cannot change after insert
- a detail row must match its form's ``form_type``
- a form cannot be committed without a detail row (deferred check)

They are attached to ``metadata.create_all`` for PostgreSQL here; the Alembic
baseline migration creates the same objects.
"""

from sqlalchemy import DDL, event

from landscape_forms.models.orm.forms import Form, LawnDetails, ShrubDetails
from landscape_forms.models.orm.users import User

SET_UPDATED_AT_FUNCTION = """
CREATE OR REPLACE FUNCTION set_updated_at()
RETURNS TRIGGER AS $$
BEGIN
  NEW.updated_at = NOW();
  RETURN NEW;
END;
$$ LANGUAGE plpgsql
"""

PREVENT_FORM_TYPE_CHANGE_FUNCTION = """
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
"""

ENFORCE_SHRUB_FORM_FUNCTION = """
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
"""

ENFORCE_LAWN_FORM_FUNCTION = """
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
"""

# Fires from forms (AFTER INSERT) and from the detail tables (AFTER DELETE).
# A cascaded delete removes the form too, so the EXISTS guard lets it through.
ENFORCE_FORM_HAS_DETAILS_FUNCTION = """
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
"""

FORMS_TRIGGERS = [
    SET_UPDATED_AT_FUNCTION,
    PREVENT_FORM_TYPE_CHANGE_FUNCTION,
    ENFORCE_FORM_HAS_DETAILS_FUNCTION,
    """
    CREATE TRIGGER trg_forms_updated_at
    BEFORE INSERT OR UPDATE ON forms
    FOR EACH ROW
    EXECUTE FUNCTION set_updated_at()
    """,
    """
    CREATE TRIGGER trg_prevent_form_type_change
    BEFORE UPDATE ON forms
    FOR EACH ROW
    EXECUTE FUNCTION prevent_form_type_change()
    """,
    """
    CREATE CONSTRAINT TRIGGER trg_forms_require_details
    AFTER INSERT ON forms
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION enforce_form_has_details()
    """,
]

USERS_TRIGGERS = [
    SET_UPDATED_AT_FUNCTION,
    """
    CREATE TRIGGER trg_users_updated_at
    BEFORE UPDATE ON users
    FOR EACH ROW
    EXECUTE FUNCTION set_updated_at()
    """,
]

SHRUB_FORMS_TRIGGERS = [
    ENFORCE_SHRUB_FORM_FUNCTION,
    ENFORCE_FORM_HAS_DETAILS_FUNCTION,
    """
    CREATE TRIGGER trg_shrub_forms_type_check
    BEFORE INSERT OR UPDATE ON shrub_forms
    FOR EACH ROW
    EXECUTE FUNCTION enforce_shrub_form()
    """,
    """
    CREATE CONSTRAINT TRIGGER trg_shrub_forms_require_details
    AFTER DELETE ON shrub_forms
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION enforce_form_has_details()
    """,
]

LAWN_FORMS_TRIGGERS = [
    ENFORCE_LAWN_FORM_FUNCTION,
    ENFORCE_FORM_HAS_DETAILS_FUNCTION,
    """
    CREATE TRIGGER trg_lawn_forms_type_check
    BEFORE INSERT OR UPDATE ON lawn_forms
    FOR EACH ROW
    EXECUTE FUNCTION enforce_lawn_form()
    """,
    """
    CREATE CONSTRAINT TRIGGER trg_lawn_forms_require_details
    AFTER DELETE ON lawn_forms
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION enforce_form_has_details()
    """,
]


def _attach(table, statements: list[str]) -> None:
    for statement in statements:
        # DDL runs statements through %-formatting
        ddl = DDL(statement.replace("%", "%%")).execute_if(dialect="postgresql")
        event.listen(table, "after_create", ddl)


_attach(User.__table__, USERS_TRIGGERS)
_attach(Form.__table__, FORMS_TRIGGERS)
_attach(ShrubDetails.__table__, SHRUB_FORMS_TRIGGERS)
_attach(LawnDetails.__table__, LAWN_FORMS_TRIGGERS)
