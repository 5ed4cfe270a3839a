"""
Typed exception hierarchy for the portfolio kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as structured attributes, so callers catch by type and report by
code instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PortfolioKernelError (base)
    |
    +-- IngestionError
    |   +-- AmountParseError
    |   +-- ReportRejectedError
    |       +-- EmptyReportError
    |       +-- UndecodableReportError
    |       +-- UnrecognizedLayoutError
    |
    +-- DomainValueError
    |   +-- InvalidDateRangeError
    |
    +-- EntityError
    |   +-- EntityNotFoundError
    |   +-- LedgerEntryNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ImportInProgressError
    |
    +-- PersistenceError
        +-- LedgerPersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                   | When Raised
-------------|------------------------|------------------------------------------
Ingestion    | AMOUNT_PARSE_ERROR     | Monetary text cannot be read as a number
             | EMPTY_REPORT           | No content, header only, or no usable rows
             | UNDECODABLE_REPORT     | Bytes are not valid UTF-8
             | UNRECOGNIZED_LAYOUT    | Header matches no known report layout
-------------|------------------------|------------------------------------------
Domain       | INVALID_DATE_RANGE     | Range start is after range end
-------------|------------------------|------------------------------------------
Entity       | ENTITY_NOT_FOUND       | Property id unknown for the owner
             | LEDGER_ENTRY_NOT_FOUND | Ledger entry id unknown for the owner
-------------|------------------------|------------------------------------------
Concurrency  | IMPORT_IN_PROGRESS     | Another run holds the owner's lock
-------------|------------------------|------------------------------------------
Persistence  | LEDGER_PERSISTENCE     | Write failed; the unit of work rolled back

Fatal report errors are raised before any write.  Row-level problems are
never raised; they are accumulated and returned with the import outcome.
"""


class PortfolioKernelError(Exception):
    """Base exception for all portfolio kernel errors."""

    code: str = "PORTFOLIO_KERNEL_ERROR"


# Ingestion


class IngestionError(PortfolioKernelError):
    """Base exception for report ingestion errors."""

    code: str = "INGESTION_ERROR"


class AmountParseError(IngestionError):
    """Monetary text could not be parsed."""

    code: str = "AMOUNT_PARSE_ERROR"

    def __init__(self, raw_value: str | None, reason: str):
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"Cannot parse amount {raw_value!r}: {reason}")


class ReportRejectedError(IngestionError):
    """The report as a whole cannot be processed. Nothing was written."""

    code: str = "REPORT_REJECTED"


class EmptyReportError(ReportRejectedError):
    """Report has no content, only a header, or no recognizable rows."""

    code: str = "EMPTY_REPORT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Report is empty: {reason}")


class UndecodableReportError(ReportRejectedError):
    """Report bytes are not valid UTF-8."""

    code: str = "UNDECODABLE_REPORT"

    def __init__(self, position: int, reason: str):
        self.position = position
        self.reason = reason
        super().__init__(
            f"Report is not valid UTF-8 at byte {position}: {reason}"
        )


class UnrecognizedLayoutError(ReportRejectedError):
    """Header row matches none of the known report layouts."""

    code: str = "UNRECOGNIZED_LAYOUT"

    def __init__(self, headers: list[str]):
        self.headers = headers
        super().__init__(
            f"Report header matches no known layout: {', '.join(headers)}"
        )


# Domain values


class DomainValueError(PortfolioKernelError):
    """Base exception for invalid domain values."""

    code: str = "DOMAIN_VALUE_ERROR"


class InvalidDateRangeError(DomainValueError):
    """Date range start is after its end."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: {start} is after {end}")


# Entities


class EntityError(PortfolioKernelError):
    """Base exception for entity lookups."""

    code: str = "ENTITY_ERROR"


class EntityNotFoundError(EntityError):
    """Property does not exist or belongs to another owner."""

    code: str = "ENTITY_NOT_FOUND"

    def __init__(self, entity_id: str, owner_id: str):
        self.entity_id = entity_id
        self.owner_id = owner_id
        super().__init__(f"Entity {entity_id} not found for owner {owner_id}")


class LedgerEntryNotFoundError(EntityError):
    """Ledger entry does not exist or belongs to another owner."""

    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str, owner_id: str):
        self.entry_id = entry_id
        self.owner_id = owner_id
        super().__init__(f"Ledger entry {entry_id} not found for owner {owner_id}")


# Concurrency


class ConcurrencyError(PortfolioKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ImportInProgressError(ConcurrencyError):
    """Another run for the same owner holds the lock."""

    code: str = "IMPORT_IN_PROGRESS"

    def __init__(self, owner_id: str, timeout_seconds: float | None):
        self.owner_id = owner_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Another import is running for owner {owner_id} "
            f"(waited {timeout_seconds}s)"
        )


# Persistence


class PersistenceError(PortfolioKernelError):
    """Base exception for storage failures."""

    code: str = "PERSISTENCE_ERROR"


class LedgerPersistenceError(PersistenceError):
    """A ledger write failed and the unit of work was rolled back."""

    code: str = "LEDGER_PERSISTENCE"

    def __init__(self, owner_id: str, reason: str):
        self.owner_id = owner_id
        self.reason = reason
        super().__init__(
            f"Ledger write for owner {owner_id} failed and was rolled back: {reason}"
        )
