"""Base exception shared by the ZKPassport client modules."""


class ZkPassportError(RuntimeError):
    """Root of every error raised by this package."""
