"""
Form Repository

Ownership-scoped CRUD and listing for shrub and lawn forms. Every public
method runs in a single transaction and returns pydantic views built while
that transaction is still open.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.orm import selectinload

from landscape_forms.core.auth import AdminGrant
from landscape_forms.core.exceptions import NotFoundOrUnauthorized, ValidationFailure
from landscape_forms.models import (
    Form,
    LawnDetails,
    PesticideApplication,
    ShrubDetails,
)
from landscape_forms.models.contracts.forms import (
    FormCreate,
    FormUpdate,
    FormView,
    LawnFormView,
    ListFormsOptions,
    PesticideApplicationInput,
    ShrubFormView,
)
from landscape_forms.models.enums import FormSortField, FormType, SortOrder
from landscape_forms.repositories.base import parse_id
from landscape_forms.repositories.owner_scoped import OwnerScopedRepository

DETAIL_MODELS: dict[FormType, type[ShrubDetails] | type[LawnDetails]] = {
    FormType.SHRUB: ShrubDetails,
    FormType.LAWN: LawnDetails,
}


def to_form_view(form: Form) -> FormView:
    """Map a loaded Form (details and applications included) to its view variant."""
    if form.form_type == FormType.SHRUB.value:
        return ShrubFormView.model_validate(form)
    return LawnFormView.model_validate(form)


def _application_rows(items: list[PesticideApplicationInput], **extra: Any) -> list[PesticideApplication]:
    return [PesticideApplication(**item.model_dump(), **extra) for item in items]


def _application_bounds():
    """Per-form first/last application timestamps."""
    return (
        select(
            PesticideApplication.form_id.label("form_id"),
            func.min(PesticideApplication.app_timestamp).label("first_app_date"),
            func.max(PesticideApplication.app_timestamp).label("last_app_date"),
        )
        .group_by(PesticideApplication.form_id)
        .subquery("app_bounds")
    )


class FormRepository(OwnerScopedRepository[Form]):
    """
    Form repository.

    Callers pass their user id explicitly; it is folded into every
    statement's WHERE clause. Rows that exist but belong to another user
    raise the same NotFoundOrUnauthorized as rows that do not exist.
    """

    model = Form

    def _view_query(self) -> Select[tuple[Form]]:
        # Rows already in the identity map may predate a bulk UPDATE
        return (
            select(Form)
            .options(
                selectinload(Form.shrub),
                selectinload(Form.lawn),
                selectinload(Form.applications),
            )
            .execution_options(populate_existing=True)
        )

    async def _load_view(self, owner_id: UUID, form_id: UUID) -> FormView:
        query = self._view_query().where(Form.id == form_id)
        query = self.filter_owned(query, owner_id)

        result = await self.session.execute(query)
        form = result.scalar_one_or_none()
        if form is None:
            raise NotFoundOrUnauthorized()
        return to_form_view(form)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_form(self, caller_id: UUID | str, data: FormCreate) -> FormView:
        """
        Create a form with its detail row and application line items.

        Args:
            caller_id: Owner of the new form
            data: Creation payload; exactly one of shrub/lawn, matching form_type

        Returns:
            View of the stored form

        Raises:
            ValidationFailure: Missing, extra or mismatched detail payload, or a
                storage constraint rejected the row
            TransientInfrastructureFailure: Database unavailable
        """
        owner_id = parse_id(caller_id, "caller id")

        if (data.shrub is None) == (data.lawn is None):
            raise ValidationFailure("Exactly one of shrub or lawn details is required")
        if data.form_type == FormType.SHRUB and data.shrub is None:
            raise ValidationFailure("Shrub form requires shrub details")
        if data.form_type == FormType.LAWN and data.lawn is None:
            raise ValidationFailure("Lawn form requires lawn details")

        form = Form(
            created_by=owner_id,
            form_type=data.form_type.value,
            **data.common_values(),
        )
        if data.shrub is not None:
            form.shrub = ShrubDetails(**data.shrub.model_dump())
        else:
            form.lawn = LawnDetails(**data.lawn.model_dump())
        form.applications = _application_rows(data.applications)

        async with self._transaction():
            await self.create(form)
            return await self._load_view(owner_id, form.id)

    async def get_form_view(self, caller_id: UUID | str, form_id: UUID | str) -> FormView:
        """
        Get one of the caller's forms.

        Raises:
            NotFoundOrUnauthorized: No such form, or owned by someone else
        """
        owner_id = parse_id(caller_id, "caller id")
        form_uuid = parse_id(form_id, "form id")

        async with self._transaction():
            return await self._load_view(owner_id, form_uuid)

    async def update_form(
        self,
        caller_id: UUID | str,
        form_id: UUID | str,
        data: FormUpdate,
    ) -> FormView:
        """
        Update common fields, details and/or applications of a form.

        The base row is always written so ``updated_at`` moves even for a
        detail-only change. ``form_type`` cannot be changed.

        Args:
            caller_id: Requesting user; must own the form
            form_id: Form to update
            data: Partial update; only fields that are set are written

        Returns:
            View of the updated form

        Raises:
            NotFoundOrUnauthorized: No such form, or owned by someone else
            ValidationFailure: Detail payload does not match the stored form
                type, or a storage constraint rejected the change
        """
        owner_id = parse_id(caller_id, "caller id")
        form_uuid = parse_id(form_id, "form id")

        if data.shrub is not None and data.lawn is not None:
            raise ValidationFailure("Only one of shrub or lawn details may be updated")

        values: dict[str, Any] = data.common_changes() or {"first_name": Form.first_name}

        async with self._transaction():
            stmt = (
                update(Form)
                .where(Form.id == form_uuid)
                .values(**values)
                .returning(Form.form_type)
                .execution_options(synchronize_session=False)
            )
            stmt = self.filter_owned(stmt, owner_id)
            stored_type = (await self.session.execute(stmt)).scalar_one_or_none()
            if stored_type is None:
                raise NotFoundOrUnauthorized()

            detail_payload = data.shrub if data.shrub is not None else data.lawn
            if detail_payload is not None:
                payload_type = FormType.SHRUB if data.shrub is not None else FormType.LAWN
                if payload_type.value != stored_type:
                    raise ValidationFailure(
                        f"Cannot apply {payload_type.value} details to a {stored_type} form"
                    )
                await self._update_details(form_uuid, payload_type, detail_payload.model_dump(
                    exclude_unset=True, exclude_none=True))

            if data.applications is not None:
                await self._replace_applications(form_uuid, data.applications)

            return await self._load_view(owner_id, form_uuid)

    async def _update_details(self, form_id: UUID, form_type: FormType, changes: dict[str, Any]) -> None:
        if not changes:
            return
        detail_model = DETAIL_MODELS[form_type]
        result = await self.session.execute(
            update(detail_model)
            .where(detail_model.form_id == form_id)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundOrUnauthorized()

    async def _replace_applications(self, form_id: UUID, items: list[PesticideApplicationInput]) -> None:
        await self.session.execute(
            delete(PesticideApplication)
            .where(PesticideApplication.form_id == form_id)
            .execution_options(synchronize_session=False)
        )
        if items:
            self.session.add_all(_application_rows(items, form_id=form_id))
            await self.session.flush()

    async def delete_form(self, caller_id: UUID | str, form_id: UUID | str) -> None:
        """
        Delete a form; its detail row and applications cascade with it.

        Raises:
            NotFoundOrUnauthorized: No such form, or owned by someone else
        """
        owner_id = parse_id(caller_id, "caller id")
        form_uuid = parse_id(form_id, "form id")

        async with self._transaction():
            stmt = (
                delete(Form)
                .where(Form.id == form_uuid)
                .returning(Form.id)
                .execution_options(synchronize_session=False)
            )
            stmt = self.filter_owned(stmt, owner_id)
            deleted = (await self.session.execute(stmt)).scalar_one_or_none()
            if deleted is None:
                raise NotFoundOrUnauthorized()

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_forms_by_owner(
        self,
        caller_id: UUID | str,
        options: ListFormsOptions | None = None,
    ) -> list[FormView]:
        """
        List the caller's own forms.

        Args:
            caller_id: Requesting user
            options: Filters, sort and pagination (defaults: newest first)

        Returns:
            Views of matching forms; empty list when none match
        """
        owner_id = parse_id(caller_id, "caller id")
        return await self._list(options or ListFormsOptions(), owner_id)

    async def list_all_forms(
        self,
        grant: AdminGrant,
        options: ListFormsOptions | None = None,
    ) -> list[FormView]:
        """
        List every user's forms.

        Args:
            grant: Proof that require_admin() passed for the caller
            options: Filters, sort and pagination (defaults: newest first)

        Returns:
            Views of matching forms across all owners
        """
        if not isinstance(grant, AdminGrant):
            raise TypeError("list_all_forms requires an AdminGrant from require_admin()")
        return await self._list(options or ListFormsOptions(), None)

    async def _list(self, options: ListFormsOptions, owner_id: UUID | None) -> list[FormView]:
        query = self.build_list_query(options, owner_id)

        async with self._transaction():
            result = await self.session.execute(query)
            return [to_form_view(form) for form in result.scalars().all()]

    def build_list_query(self, options: ListFormsOptions, owner_id: UUID | None) -> Select[tuple[Form]]:
        """
        Build the listing SELECT for the given options.

        Args:
            options: Filters, sort and pagination
            owner_id: Restrict to this owner; None lists every owner

        Returns:
            Select over Form with details and applications eager-loaded
        """
        bounds = _application_bounds()
        query = self._view_query().outerjoin(bounds, bounds.c.form_id == Form.id)

        if owner_id is not None:
            query = self.filter_owned(query, owner_id)

        if options.form_type is not None:
            query = query.where(Form.form_type == options.form_type.value)

        if options.search_name:
            term = options.search_name.strip()
            query = query.where(
                Form.first_name.icontains(term, autoescape=True)
                | Form.last_name.icontains(term, autoescape=True)
            )

        if options.chemical_ids:
            using_chemicals = select(PesticideApplication.form_id).where(
                PesticideApplication.chem_used.in_(options.chemical_ids)
            )
            query = query.where(Form.id.in_(using_chemicals))

        if options.date_low is not None:
            query = query.where(bounds.c.first_app_date >= options.date_low)
        if options.date_high is not None:
            query = query.where(bounds.c.last_app_date <= options.date_high)

        if options.zip_code:
            query = query.where(Form.zip_code == options.zip_code)

        holiday = (options.holiday or "").strip().lower()
        if holiday == "yes":
            query = query.where(Form.is_holiday.is_(True))
        elif holiday == "no":
            query = query.where(Form.is_holiday.is_(False))

        query = query.order_by(*self._ordering(options, bounds))

        if options.limit is not None and options.limit > 0:
            query = query.limit(options.limit)
        if options.offset is not None and options.offset > 0:
            query = query.offset(options.offset)

        return query

    @staticmethod
    def _ordering(options: ListFormsOptions, bounds) -> list[Any]:
        try:
            sort_field = FormSortField((options.sort_by or "").strip().lower())
        except ValueError:
            sort_field = FormSortField.CREATED_AT

        try:
            order = SortOrder((options.order or "").strip().upper())
        except ValueError:
            order = SortOrder.DESC

        columns = {
            FormSortField.FIRST_NAME: func.lower(Form.first_name),
            FormSortField.LAST_NAME: func.lower(Form.last_name),
            FormSortField.CREATED_AT: Form.created_at,
            FormSortField.FIRST_APP_DATE: bounds.c.first_app_date,
        }
        column = columns[sort_field]
        primary = column.asc() if order == SortOrder.ASC else column.desc()
        if sort_field == FormSortField.FIRST_APP_DATE:
            primary = primary.nulls_last()

        tiebreak = Form.id.asc() if order == SortOrder.ASC else Form.id.desc()
        return [primary, tiebreak]
