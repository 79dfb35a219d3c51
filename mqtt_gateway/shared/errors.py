"""Exception types shared by decoders, targets and configuration loading."""


class ConfigError(Exception):
    """Raised when the configuration file is missing required structure."""

    pass


class DecodeError(Exception):
    """Base class for messages that could not be turned into points."""

    def __init__(self, message: str, topic: str = ""):
        super().__init__(message)
        self.topic = topic


class UnroutableTopic(DecodeError):
    """No configured source prefix matches the topic."""

    pass


class UnknownSuffix(DecodeError):
    """The source matched but its decoder has no rule for the topic suffix."""

    pass


class PayloadParseError(DecodeError):
    """The payload could not be coerced to the expected type."""

    pass


class MissingTimestampContext(DecodeError):
    """A reading arrived before its device published a timestamp."""

    pass


class WriteError(Exception):
    """Base class for target write failures."""

    pass


class TransientWriteError(WriteError):
    """Network or timeout failure; the write may be retried."""

    pass


class RejectedWriteError(WriteError):
    """The backend refused the write (schema, auth, ...); never retried."""

    pass
