"""Exceptions raised by the backup engine."""


class UDiskBackupError(Exception):
    """Base class for errors surfaced to callers."""


class InvalidArgument(UDiskBackupError):
    """A target path is malformed."""


class TargetUnavailable(UDiskBackupError):
    """A target mount point cannot be statted or does not exist."""


class NotAllowed(UDiskBackupError):
    """A target lies outside the allowed mount roots."""


class AlreadyRunning(UDiskBackupError):
    """A transfer is already in progress."""


class DirectoryError(UDiskBackupError):
    """The working directories for a run could not be created."""


class PersistenceFailure(UDiskBackupError):
    """A run summary or report could not be written."""


class InventoryError(UDiskBackupError):
    """The block device listing could not be obtained."""
