"""Error types for Desktop Declutter.

Selection and registration problems are raised as exceptions before any
state is touched.  Relocation problems never raise; they are reported as
an :class:`ErrorKind` on the returned record.
"""

from enum import Enum

PERMISSION_HINT = (
    "Permission denied. Please re-add the cloud destination and choose a "
    "writable folder (e.g., Google Drive → My Drive)."
)


class ErrorKind(str, Enum):
    """Why a relocation did not fully succeed."""

    NO_DESTINATION = "no_destination"
    UNRESOLVABLE_DESTINATION = "unresolvable_destination"
    NOT_WRITABLE = "not_writable"
    SOURCE_MISSING = "source_missing"
    COPY_FAILED = "copy_failed"
    # Copy succeeded, original still present
    DELETE_FAILED = "delete_failed"


class DeclutterError(Exception):
    """Base class for errors surfaced to the caller."""


class NotACloudDirectory(DeclutterError):
    """The selected folder is not inside a recognised cloud container."""

    def __init__(self, path):
        super().__init__(
            f"{path} is not a cloud folder. Pick a folder inside iCloud Drive "
            "or ~/Library/CloudStorage."
        )
        self.path = path


class NotWritable(DeclutterError):
    """The destination root is missing or the app folder cannot be created."""

    def __init__(self, path, reason: str = ""):
        msg = f"Destination is not writable: {path}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.path = path
        self.reason = reason


class UnknownDestination(DeclutterError):
    """No registered destination matches the given id."""


class TokenResolutionError(Exception):
    """An access token is corrupt, revoked, or in a format no longer accepted.

    Handled inside the registry, which falls back to path-based access.
    """
