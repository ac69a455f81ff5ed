"""larder exception hierarchy.

All public exceptions inherit from ``LarderError`` so the CLI can map any
library failure to a friendly message without swallowing unrelated errors.
Each class carries a short ``code`` for machine-readable reporting.
"""

from __future__ import annotations


class LarderError(Exception):
    """Base exception for all larder errors."""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class SourceFetchError(LarderError):
    """A single source's universe could not be retrieved.

    The installer recovers from this one: the failing source is reported
    and simply contributes nothing to the universe.
    """

    code = "SOURCE_FETCH_ERROR"

    def __init__(self, message: str, uri: str = "") -> None:
        super().__init__(message)
        self.uri = uri


# Name used by the source clients.
APIClientError = SourceFetchError


class UnresolvableConstraintError(LarderError):
    """The resolver could not satisfy the declared constraints."""

    code = "UNRESOLVABLE"

    def __init__(self, message: str, demands: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.demands = demands or {}


class NoSourceForVersionError(LarderError):
    """No configured source can serve a locked ``(name, version)``."""

    code = "NO_SOURCE"

    def __init__(self, name: str, version: str) -> None:
        super().__init__(
            f"No configured source serves cookbook '{name}' ({version})"
        )
        self.name = name
        self.version = version


class DownloadError(LarderError):
    """Transferring a cookbook artifact failed."""

    code = "DOWNLOAD_ERROR"


class StoreImportError(LarderError):
    """A downloaded cookbook could not be imported into the local store."""

    code = "STORE_IMPORT_ERROR"


class LockfileError(LarderError):
    """The lock file is malformed or could not be written."""

    code = "LOCKFILE_ERROR"


class ManifestError(LarderError):
    """The manifest is missing or invalid."""

    code = "MANIFEST_ERROR"


class ScmError(LarderError):
    """Checking out an SCM location failed."""

    code = "SCM_ERROR"
