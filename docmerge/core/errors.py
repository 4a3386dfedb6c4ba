"""Custom exceptions used across docmerge."""


class DocMergeError(Exception):
    """Base error for the application."""


class ConfigError(DocMergeError):
    """Profile or settings file related error."""


class PreflightError(DocMergeError):
    """Raised before any row is touched; aborts the whole run."""


class ConfigNotFound(PreflightError):
    """No configuration row matches the requested dataset."""


class ConfigIncomplete(PreflightError):
    """The dataset configuration row is missing required fields."""


class MappingParseError(PreflightError):
    """The column mapping text could not be parsed."""

    def __init__(self, message: str, *, raw: str) -> None:
        super().__init__(message)
        self.raw = raw


class InvalidDestinationReference(PreflightError):
    """The destination folder reference cannot be resolved."""


class MissingDataset(PreflightError):
    """The dataset table does not exist."""


class MissingOutputColumns(PreflightError):
    """One or more required output columns are absent from the header row."""

    def __init__(self, message: str, *, missing: list[str]) -> None:
        super().__init__(message)
        self.missing = missing


class RenderError(DocMergeError):
    """Raised when a single row cannot be rendered; isolated to that row."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class TemplateError(DocMergeError):
    """Template duplication or editing failed."""


class PdfExportError(DocMergeError):
    """PDF conversion failed."""


class StorageError(DocMergeError):
    """Writing to the destination store failed."""


class UnavailableValue(DocMergeError):
    """A cell's value is not known, e.g. a formula that was never recalculated."""
