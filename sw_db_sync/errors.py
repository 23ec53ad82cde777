"""
Exceptions raised by the database synchronization pipeline

Stage functions raise these; the synchronizer and the CLI turn them into
console messages and a failed exit status.
"""

from typing import Optional


class SyncError(Exception):
    """
    Base class for every pipeline failure
    """


class ConfigError(SyncError):
    """
    Required connection settings are missing or invalid.
    Raised before any remote operation is attempted.
    """


class RemoteConfigError(SyncError):
    """
    The remote .env file could not be read or holds no database name
    """

    def __init__(self, message: str, auth_failure: bool = False, details: Optional[str] = None):
        """
        Args:
            message: Human-readable reason
            auth_failure: True when SSH rejected the connection (keys, host key, refused)
            details: Raw error output of the remote command
        """
        super().__init__(message)
        self.auth_failure = auth_failure
        self.details = details or ""


class DumpError(SyncError):
    """
    The remote dump command failed or timed out
    """


class TransferError(SyncError):
    """
    The dump file could not be downloaded, or arrived empty
    """


class DatabaseImportError(SyncError):
    """
    The local database client rejected the dump.
    The local database may be partially populated afterwards.
    """


class QueryError(SyncError):
    """
    A statement sent to the local database failed
    """


class OverrideError(SyncError):
    """
    The declarative override file is malformed
    """
