"""Exceptions raised by lingosub."""


class LingoSubError(Exception):
    """Base class for lingosub errors."""


class DecodeError(LingoSubError):
    """Audio could not be decoded into mono PCM."""


class AuthError(LingoSubError):
    """No credentials are configured for the cloud backend."""


class JobRejectedError(LingoSubError):
    """A generation job is already running for a different source."""
