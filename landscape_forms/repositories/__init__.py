# Data access layer - PostgreSQL repositories
from landscape_forms.repositories.base import BaseRepository, parse_id
from landscape_forms.repositories.forms import FormRepository, to_form_view
from landscape_forms.repositories.owner_scoped import OwnerScopedRepository

__all__ = [
    "BaseRepository",
    "FormRepository",
    "OwnerScopedRepository",
    "parse_id",
    "to_form_view",
]
