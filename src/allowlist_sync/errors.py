"""Error taxonomy for an allowlist sync run.

Every failure that aborts a run derives from AllowlistSyncError so the entry
points can map it to a non-zero exit code. Verification problems after a
successful write are not errors; they are reported as warnings on the result.
"""

from __future__ import annotations


class AllowlistSyncError(Exception):
    """Base class for fatal sync errors."""

    pass


class InvalidArgumentError(AllowlistSyncError):
    """Raised when a required input is missing or malformed."""

    pass


class FetchFailedError(AllowlistSyncError):
    """Raised when no candidate source yielded usable prefix content."""

    pass


class NoPrefixesFoundError(AllowlistSyncError):
    """Raised when every extraction strategy came back empty."""

    pass


class ResourceRetrievalError(AllowlistSyncError):
    """Raised when the existing resource cannot be read."""

    pass


class WriteFailedError(AllowlistSyncError):
    """Raised when the replacement body could not be written."""

    pass


class UnsupportedResourceTypeError(AllowlistSyncError):
    """Raised when a resource id is neither a site nor a workflow."""

    pass
