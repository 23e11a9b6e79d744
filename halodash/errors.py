"""Exception hierarchy for halodash.

Per-widget failures (synthesis, classified and unclassified query errors) are
recovered by the composite operations and recorded on their results. Only
persistence of a dashboard itself and configuration problems are fatal.
"""

from __future__ import annotations


class HaloDashError(Exception):
    """Base class for every error raised by halodash."""


class ArtifactNotFound(HaloDashError):
    """A requested report or dashboard does not exist."""

    def __init__(self, resource: str, artifact_id: int | str | None = None) -> None:
        self.resource = resource
        self.artifact_id = artifact_id
        suffix = f" with ID {artifact_id}" if artifact_id is not None else ""
        super().__init__(f"{resource}{suffix} not found")


class SynthesisFailure(HaloDashError):
    """No backing report could be found or created for a widget."""


class PersistenceFailure(HaloDashError):
    """Creating, updating or deleting a report or dashboard failed."""


class QueryError(HaloDashError):
    """A report's query failed to execute."""

    def __init__(self, report_id: int, message: str) -> None:
        self.report_id = report_id
        self.message = message
        super().__init__(f"Report {report_id} failed: {message}")


class ClassifiedQueryError(QueryError):
    """Execution failed with an error that matched a known failure signature."""

    def __init__(self, report_id: int, message: str, signature: str) -> None:
        self.signature = signature
        super().__init__(report_id, message)


class UnclassifiedQueryError(QueryError):
    """Execution failed and no failure signature matched; not auto-fixable."""


class HaloApiError(HaloDashError):
    """A HaloPSA REST call returned an unsuccessful status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class HaloAuthenticationError(HaloApiError):
    """The OAuth2 client-credentials exchange failed."""
