"""ORM models. Importing this package registers every table on Base.metadata."""

from portfolio_kernel.models.entity_mapping import EntityMappingModel
from portfolio_kernel.models.ledger_entry import LedgerEntryModel
from portfolio_kernel.models.property import PropertyModel

__all__ = [
    "EntityMappingModel",
    "LedgerEntryModel",
    "PropertyModel",
]
