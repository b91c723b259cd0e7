# medrecords/core/errors.py
"""
Error taxonomy for the reconciliation layer.

Optional sub-record lookups absorb these locally; required top-level calls
let them bubble to the caller unchanged in kind.
"""


class RecordsError(Exception):
    """Base class for every domain error raised by medrecords."""

    def __init__(self, message: str = "", **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(RecordsError):
    """Malformed create/update input. Never retried."""

    def __init__(self, message: str = "Invalid input", errors: dict[str, str] | None = None):
        super().__init__(message, errors=errors or {})
        self.errors = errors or {}


class NotFound(RecordsError):
    """Referenced patient, grant or sub-record is absent."""


class Unauthorized(RecordsError):
    """Caller lacks an active grant or ownership for the patient."""


class BackendError(RecordsError):
    """Backend rejected the operation for a reason other than connectivity."""


class BackendUnavailable(BackendError):
    """Connectivity/transient fault on a backend call."""


class SchemaMismatch(BackendError):
    """Backend reports a missing table or column (deployment not migrated)."""

    def __init__(self, message: str = "", table: str | None = None):
        if not message:
            message = (
                f"Table '{table}' is missing or out of date. "
                "Run 'alembic upgrade head' against the database."
            )
        super().__init__(message, table=table)
        self.table = table
