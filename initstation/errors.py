"""Exceptions raised by initstation."""


class InitStationError(Exception):
    """Base class for initstation errors."""


class ConfigError(InitStationError):
    """Raised when the configuration file cannot be loaded."""


class AdminStoreError(InitStationError):
    """Raised when the ILS admin file is missing or empty.

    Nothing can be resolved without it, so callers treat this as fatal.
    """


class ArtifactNameError(InitStationError, ValueError):
    """Raised when a filename is not of the form <UserIdentity>.<StationID>."""


class LockDirectoryError(InitStationError):
    """Raised when the session directory is missing.

    Every lock would look headless without it, so the run must stop.
    """
