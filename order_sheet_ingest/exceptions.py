"""
Custom exception hierarchy for order-sheet-ingest.

Why a custom hierarchy:
- Callers can catch specific exceptions (e.g., UnknownFormatError vs
  InvalidUploadError) without relying on generic ValueError/RuntimeError.
- Error messages are tailored to marketplace order-export ingestion, so an
  operator can tell whether to rename a column, fix the upload, or ask for
  a parser update.

Row-level defects (missing order id, bad date, non-positive revenue) are
NOT exceptions: parsers skip those rows and record them in a ParseReport.
"""


class OrderSheetIngestError(Exception):
    """Base exception for all order-sheet-ingest errors."""


class UnknownFormatError(OrderSheetIngestError):
    """Raised when no native parser and no aggregator layout matched the sheet.

    The message carries the header text and the row count so a human can
    adjust column naming or request a parser update. Both are also kept as
    attributes for callers that build their own response.
    """

    def __init__(self, message: str, header: str = "", row_count: int = 0) -> None:
        super().__init__(message)
        self.header = header
        self.row_count = row_count


class InvalidUploadError(OrderSheetIngestError):
    """Raised when an uploaded spreadsheet is rejected before parsing.

    For example: wrong extension, larger than the configured limit, empty
    file, or a workbook that cannot be opened.
    """


class ConfigValidationError(OrderSheetIngestError):
    """Raised when orderconfig.yaml is empty or fails validation."""


class SignatureError(OrderSheetIngestError):
    """Raised when a marketplace signature YAML file is malformed.

    For example, a matcher entry with no predicate, or a signature file
    whose name does not match any known parser.
    """


class CoercionError(OrderSheetIngestError, ValueError):
    """Raised by the strict coercion helpers for an unparseable cell.

    Never escapes a parser: in strict mode it is turned into a row-level
    warning, and the lenient value (0 / absent) is used instead.
    """


class PersistenceError(OrderSheetIngestError):
    """Raised when the order store fails to read or write its tables.

    Also raised when an import inserted nothing while errors occurred; the
    import job is marked ``failed`` before the exception propagates.
    """
