"""
Exception hierarchy for the recon tracking pipeline.

Per-file ingestion errors are recovered at the file boundary by the ingest
orchestrator; reconciliation and query errors propagate to the caller.
"""

from pathlib import Path


class ReconTrackError(Exception):
    """Base exception for all recontrack errors."""

    pass


class FileIngestError(ReconTrackError):
    """Base for failures that reject a single intake file."""

    def __init__(self, message: str, file_path: Path | str | None = None):
        self.file_path = Path(file_path) if file_path is not None else None
        super().__init__(message)


class UnrecognizedFileError(FileIngestError):
    """Raised when a file name matches none of the known DMS export kinds."""

    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Unknown file type: {file_name}", file_name)


class FileParseError(FileIngestError):
    """Raised when an intake file cannot be parsed as CSV."""

    def __init__(self, message: str, file_path: Path | str | None = None, original_error: Exception | None = None):
        self.original_error = original_error
        if original_error is not None:
            message = f"{message} (Original error: {original_error})"
        super().__init__(message, file_path)


class ContractBreachError(FileIngestError):
    """Raised when a file header lacks required fields and breaches are fatal."""

    def __init__(self, file_path: Path | str, violations: list):
        self.violations = list(violations)
        details = "; ".join(v.details for v in self.violations)
        super().__init__(f"Header contract breached: {details}", file_path)


class IngestTimeoutError(FileIngestError):
    """Raised when parsing a file exceeds the configured time budget."""

    def __init__(self, file_path: Path | str, elapsed_seconds: float, limit_seconds: float):
        self.elapsed_seconds = elapsed_seconds
        self.limit_seconds = limit_seconds
        super().__init__(
            f"Parsing exceeded {limit_seconds:.1f}s budget after {elapsed_seconds:.1f}s",
            file_path,
        )


class ReconciliationError(ReconTrackError):
    """Raised when the fact table rebuild fails; affects every vehicle, not one file."""

    def __init__(self, message: str, original_error: Exception | None = None):
        self.original_error = original_error
        if original_error is not None:
            message = f"{message} (Original error: {original_error})"
        super().__init__(message)


class VehicleNotFoundError(ReconTrackError):
    """Raised when a VIN has no row in the fact table."""

    def __init__(self, vin: str):
        self.vin = vin
        super().__init__(f"Vehicle not found: {vin}")


class InvalidFilterError(ReconTrackError, ValueError):
    """Raised when a vehicle list filter has an unsupported value."""

    def __init__(self, field_name: str, value: object, allowed: list | None = None):
        self.field_name = field_name
        self.value = value
        self.allowed = list(allowed or [])
        message = f"Invalid value for {field_name}: {value!r}"
        if self.allowed:
            message = f"{message}. Allowed: {self.allowed}"
        super().__init__(message)
