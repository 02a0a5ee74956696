"""
Unit tests for FormRepository.

Uses a mock AsyncSession; statements passed to session.execute are compiled
against the PostgreSQL dialect to check their predicates.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import exc as sa_exc

from landscape_forms.core.auth import AdminGrant
from landscape_forms.core.exceptions import (
    NotFoundOrUnauthorized,
    TransientInfrastructureFailure,
    ValidationFailure,
)
from landscape_forms.models.contracts.forms import (
    FormCreate,
    FormUpdate,
    LawnFormView,
    ListFormsOptions,
    ShrubFormView,
)
from landscape_forms.models.orm.forms import Form, PesticideApplication
from landscape_forms.repositories.forms import FormRepository
from tests.helpers.factories import (
    build_application_row,
    build_form_row,
    make_application_data,
    make_form_create_data,
)
from tests.helpers.mock_db import (
    compiled_sql,
    executed_sql,
    rowcount_result,
    scalar_result,
    scalars_result,
)


class FakeDriverError(Exception):
    """Driver exception carrying a SQLSTATE, like asyncpg's."""

    def __init__(self, message: str, sqlstate: str):
        super().__init__(message)
        self.sqlstate = sqlstate


@pytest.fixture
def repository(mock_session):
    """Create repository with mock session."""
    return FormRepository(mock_session)


class TestCreateForm:
    """Tests for FormRepository.create_form."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"lawn": {"lawn_area_sq_ft": 10}},  # both payloads
            {"shrub": None},  # neither payload
        ],
    )
    async def test_rejects_wrong_number_of_details(self, repository, mock_session, overrides):
        """Both or neither detail payloads fail before touching the session."""
        data = FormCreate(**make_form_create_data("shrub", **overrides))

        with pytest.raises(ValidationFailure):
            await repository.create_form(uuid4(), data)

        mock_session.begin.assert_not_called()
        mock_session.execute.assert_not_called()
        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_detail_not_matching_form_type(self, repository, mock_session):
        """A lawn payload on a shrub-typed form is rejected."""
        data = FormCreate(**make_form_create_data(
            "shrub", shrub=None, lawn={"lawn_area_sq_ft": 500}))

        with pytest.raises(ValidationFailure):
            await repository.create_form(uuid4(), data)

        mock_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_malformed_caller_id(self, repository, mock_session):
        data = FormCreate(**make_form_create_data("shrub"))

        with pytest.raises(ValidationFailure, match="caller id"):
            await repository.create_form("not-a-uuid", data)

        mock_session.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_creates_form_with_details_and_applications(self, repository, mock_session):
        """Base row, matching detail row and applications are added together."""
        owner_id = uuid4()
        data = FormCreate(**make_form_create_data(
            "lawn", applications=[make_application_data()]))
        stored = build_form_row("lawn", owner_id=owner_id)
        mock_session.execute.return_value = scalar_result(stored)

        view = await repository.create_form(str(owner_id), data)

        added = mock_session.add.call_args.args[0]
        assert isinstance(added, Form)
        assert added.created_by == owner_id
        assert added.form_type == "lawn"
        assert added.lawn.lawn_area_sq_ft == 1200
        assert added.shrub is None
        assert len(added.applications) == 1
        assert isinstance(added.applications[0], PesticideApplication)

        mock_session.flush.assert_awaited_once()
        mock_session.begin.assert_called_once()
        assert isinstance(view, LawnFormView)
        assert view.id == stored.id

    @pytest.mark.asyncio
    async def test_uses_savepoint_inside_caller_transaction(self, repository, mock_session):
        """An already-open transaction gets a SAVEPOINT instead of a new BEGIN."""
        mock_session.in_transaction.return_value = True
        mock_session.execute.return_value = scalar_result(build_form_row("shrub"))

        await repository.create_form(uuid4(), FormCreate(**make_form_create_data("shrub")))

        mock_session.begin_nested.assert_called_once()
        mock_session.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_constraint_violation_becomes_validation_failure(self, repository, mock_session):
        """Storage rejections surface as ValidationFailure with the driver error chained."""
        error = sa_exc.IntegrityError(
            "INSERT INTO pesticide_applications ...",
            {},
            FakeDriverError("violates foreign key constraint", "23503"),
        )
        mock_session.flush.side_effect = error

        with pytest.raises(ValidationFailure) as exc_info:
            await repository.create_form(uuid4(), FormCreate(**make_form_create_data(
                "shrub", applications=[make_application_data(chem_used=999)])))

        assert exc_info.value.__cause__ is error


class TestGetFormView:
    """Tests for FormRepository.get_form_view."""

    @pytest.mark.asyncio
    async def test_missing_or_foreign_form_raises_not_found(self, repository, mock_session):
        mock_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundOrUnauthorized) as exc_info:
            await repository.get_form_view(uuid4(), uuid4())

        assert str(exc_info.value) == "Form not found"

    @pytest.mark.asyncio
    async def test_query_includes_ownership_predicate(self, repository, mock_session):
        """Ownership is part of the SELECT, not a check after loading."""
        mock_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundOrUnauthorized):
            await repository.get_form_view(uuid4(), uuid4())

        sql = executed_sql(mock_session)[0]
        assert "forms.id = " in sql
        assert "forms.created_by = " in sql

    @pytest.mark.asyncio
    async def test_returns_shrub_variant(self, repository, mock_session):
        owner_id = uuid4()
        stored = build_form_row("shrub", owner_id=owner_id)
        mock_session.execute.return_value = scalar_result(stored)

        view = await repository.get_form_view(owner_id, stored.id)

        assert isinstance(view, ShrubFormView)
        assert view.form_type == "shrub"
        assert view.shrub.num_shrubs == 4
        assert not hasattr(view, "lawn")
        assert view.first_name == "Jane"
        assert view.last_name == "Doe"

    @pytest.mark.asyncio
    async def test_view_derives_application_dates(self, repository, mock_session):
        early = datetime(2024, 3, 1, tzinfo=timezone.utc)
        late = datetime(2024, 6, 1, tzinfo=timezone.utc)
        stored = build_form_row("lawn", applications=[
            build_application_row(late),
            build_application_row(early),
        ])
        mock_session.execute.return_value = scalar_result(stored)

        view = await repository.get_form_view(stored.created_by, stored.id)

        assert view.first_app_date == early
        assert view.last_app_date == late

    @pytest.mark.asyncio
    async def test_malformed_form_id_raises_validation_failure(self, repository, mock_session):
        with pytest.raises(ValidationFailure, match="form id"):
            await repository.get_form_view(uuid4(), "1234")

        mock_session.execute.assert_not_called()


class TestUpdateForm:
    """Tests for FormRepository.update_form."""

    @pytest.mark.asyncio
    async def test_no_matching_row_raises_not_found(self, repository, mock_session):
        mock_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundOrUnauthorized):
            await repository.update_form(uuid4(), uuid4(), FormUpdate(first_name="Ann"))

        assert mock_session.execute.await_count == 1
        sql = executed_sql(mock_session)[0]
        assert sql.startswith("UPDATE forms SET")
        assert "forms.created_by = " in sql
        assert "RETURNING forms.form_type" in sql

    @pytest.mark.asyncio
    async def test_detail_only_update_touches_base_row(self, repository, mock_session):
        """updated_at moves because the base row is always written."""
        stored = build_form_row("shrub")
        mock_session.execute.side_effect = [
            scalar_result("shrub"),
            rowcount_result(1),
            scalar_result(stored),
        ]

        view = await repository.update_form(
            stored.created_by, stored.id, FormUpdate(shrub={"num_shrubs": 9}))

        statements = executed_sql(mock_session)
        assert "SET first_name=forms.first_name" in statements[0]
        assert statements[1].startswith("UPDATE shrub_forms SET num_shrubs=")
        assert "flea_only" not in statements[1]
        assert isinstance(view, ShrubFormView)

    @pytest.mark.asyncio
    async def test_detail_for_other_form_type_is_rejected(self, repository, mock_session):
        """Shrub details cannot be written to a lawn form; the transaction rolls back."""
        mock_session.execute.return_value = scalar_result("lawn")

        with pytest.raises(ValidationFailure, match="shrub details to a lawn form"):
            await repository.update_form(uuid4(), uuid4(), FormUpdate(shrub={"num_shrubs": 2}))

        assert mock_session.execute.await_count == 1
        exit_args = mock_session.transaction.__aexit__.call_args.args
        assert exit_args[0] is ValidationFailure

    @pytest.mark.asyncio
    async def test_both_detail_payloads_rejected_before_sql(self, repository, mock_session):
        data = FormUpdate(shrub={"num_shrubs": 2}, lawn={"lawn_area_sq_ft": 3})

        with pytest.raises(ValidationFailure):
            await repository.update_form(uuid4(), uuid4(), data)

        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_detail_row_raises_not_found(self, repository, mock_session):
        mock_session.execute.side_effect = [scalar_result("lawn"), rowcount_result(0)]

        with pytest.raises(NotFoundOrUnauthorized):
            await repository.update_form(uuid4(), uuid4(), FormUpdate(lawn={"fert_only": False}))

    @pytest.mark.asyncio
    async def test_applications_are_replaced(self, repository, mock_session):
        stored = build_form_row("lawn")
        mock_session.execute.side_effect = [
            scalar_result("lawn"),
            MagicMock(),
            scalar_result(stored),
        ]

        await repository.update_form(
            stored.created_by,
            stored.id,
            FormUpdate(applications=[make_application_data(), make_application_data(rate="4 oz")]),
        )

        statements = executed_sql(mock_session)
        assert statements[1].startswith("DELETE FROM pesticide_applications")
        rows = mock_session.add_all.call_args.args[0]
        assert [row.rate for row in rows] == ["2 oz/gal", "4 oz"]
        assert all(row.form_id == stored.id for row in rows)

    @pytest.mark.asyncio
    async def test_empty_application_list_clears_applications(self, repository, mock_session):
        stored = build_form_row("shrub")
        mock_session.execute.side_effect = [
            scalar_result("shrub"),
            MagicMock(),
            scalar_result(stored),
        ]

        await repository.update_form(stored.created_by, stored.id, FormUpdate(applications=[]))

        assert executed_sql(mock_session)[1].startswith("DELETE FROM pesticide_applications")
        mock_session.add_all.assert_not_called()


class TestDeleteForm:
    """Tests for FormRepository.delete_form."""

    @pytest.mark.asyncio
    async def test_delete_is_single_owner_scoped_statement(self, repository, mock_session):
        form_id = uuid4()
        mock_session.execute.return_value = scalar_result(form_id)

        result = await repository.delete_form(uuid4(), form_id)

        assert result is None
        assert mock_session.execute.await_count == 1
        sql = executed_sql(mock_session)[0]
        assert sql.startswith("DELETE FROM forms")
        assert "forms.created_by = " in sql
        assert "RETURNING forms.id" in sql

    @pytest.mark.asyncio
    async def test_no_matching_row_raises_not_found(self, repository, mock_session):
        mock_session.execute.return_value = scalar_result(None)

        with pytest.raises(NotFoundOrUnauthorized):
            await repository.delete_form(uuid4(), uuid4())


class TestListForms:
    """Tests for list_forms_by_owner / list_all_forms and the listing query."""

    @pytest.mark.asyncio
    async def test_list_by_owner_scopes_to_caller(self, repository, mock_session):
        owner_id = uuid4()
        mock_session.execute.return_value = scalars_result([
            build_form_row("shrub", owner_id=owner_id),
            build_form_row("lawn", owner_id=owner_id),
        ])

        views = await repository.list_forms_by_owner(owner_id)

        assert [type(v) for v in views] == [ShrubFormView, LawnFormView]
        assert "forms.created_by = " in executed_sql(mock_session)[0]

    @pytest.mark.asyncio
    async def test_list_all_has_no_ownership_predicate(self, repository, mock_session):
        mock_session.execute.return_value = scalars_result([])

        views = await repository.list_all_forms(AdminGrant(caller_id=uuid4()))

        assert views == []
        assert "forms.created_by = " not in executed_sql(mock_session)[0]

    @pytest.mark.asyncio
    async def test_list_all_requires_admin_grant(self, repository, mock_session):
        with pytest.raises(TypeError):
            await repository.list_all_forms(uuid4())

        mock_session.execute.assert_not_called()

    def test_default_order_is_newest_first(self, repository):
        sql = compiled_sql(repository.build_list_query(ListFormsOptions(), None), literal_binds=True)

        assert "ORDER BY forms.created_at DESC, forms.id DESC" in sql

    def test_unknown_sort_falls_back_to_created_at_desc(self, repository):
        bogus = repository.build_list_query(ListFormsOptions(sort_by="bogus", order="sideways"), None)
        explicit = repository.build_list_query(
            ListFormsOptions(sort_by="created_at", order="DESC"), None)

        assert compiled_sql(bogus, literal_binds=True) == compiled_sql(explicit, literal_binds=True)

    def test_name_sort_is_case_insensitive(self, repository):
        query = repository.build_list_query(ListFormsOptions(sort_by="first_name", order="asc"), None)

        assert "ORDER BY lower(forms.first_name) ASC, forms.id ASC" in compiled_sql(query, literal_binds=True)

    def test_first_app_date_sort_puts_empty_forms_last(self, repository):
        query = repository.build_list_query(
            ListFormsOptions(sort_by="first_app_date", order="ASC"), None)

        sql = compiled_sql(query, literal_binds=True)
        assert "ORDER BY app_bounds.first_app_date ASC NULLS LAST, forms.id ASC" in sql
        assert "LEFT OUTER JOIN" in sql

    def test_pagination_applied_only_for_positive_values(self, repository):
        paged = compiled_sql(
            repository.build_list_query(ListFormsOptions(limit=10, offset=5), None), literal_binds=True)
        ignored = compiled_sql(
            repository.build_list_query(ListFormsOptions(limit=0, offset=-3), None), literal_binds=True)

        assert "LIMIT 10 OFFSET 5" in paged
        assert "LIMIT" not in ignored
        assert "OFFSET" not in ignored

    def test_filters(self, repository):
        options = ListFormsOptions(
            form_type="lawn",
            chemical_ids=[1, 2],
            zip_code="02134",
            holiday="YES",
        )
        sql = compiled_sql(repository.build_list_query(options, None), literal_binds=True)

        assert "forms.form_type = 'lawn'" in sql
        assert "pesticide_applications.chem_used IN (1, 2)" in sql
        assert "forms.zip_code = '02134'" in sql
        assert "forms.is_holiday is true" in sql.lower()

    def test_unrecognised_holiday_value_is_ignored(self, repository):
        sql = compiled_sql(
            repository.build_list_query(ListFormsOptions(holiday="maybe"), None), literal_binds=True)

        assert "is_holiday is" not in sql.lower()

    def test_name_search_and_date_range(self, repository):
        options = ListFormsOptions(
            search_name="doe",
            date_low=datetime(2024, 1, 1, tzinfo=timezone.utc),
            date_high=datetime(2024, 12, 31, tzinfo=timezone.utc),
        )
        sql = compiled_sql(repository.build_list_query(options, None))

        assert "forms.first_name ILIKE" in sql
        assert "forms.last_name ILIKE" in sql
        assert "app_bounds.first_app_date >=" in sql
        assert "app_bounds.last_app_date <=" in sql


class TestTransactionBoundary:
    """Failure translation and rollback behaviour shared by every operation."""

    @pytest.mark.asyncio
    async def test_connection_failure_is_transient(self, repository, mock_session):
        error = sa_exc.OperationalError(
            "SELECT ...", {}, FakeDriverError("connection refused", "08006"))
        mock_session.execute.side_effect = error

        with pytest.raises(TransientInfrastructureFailure) as exc_info:
            await repository.get_form_view(uuid4(), uuid4())

        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_pool_timeout_is_transient(self, repository, mock_session):
        mock_session.execute.side_effect = sa_exc.TimeoutError("QueuePool limit reached")

        with pytest.raises(TransientInfrastructureFailure):
            await repository.list_forms_by_owner(uuid4())

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back_and_propagates(self, repository, mock_session):
        """A caller timeout cancels the operation; the transaction sees the exception."""
        mock_session.execute.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await repository.delete_form(uuid4(), uuid4())

        exit_args = mock_session.transaction.__aexit__.call_args.args
        assert exit_args[0] is asyncio.CancelledError
