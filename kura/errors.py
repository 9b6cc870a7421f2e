"""kura.errors - Error taxonomy"""

from typing import List, Optional


class KuraError(Exception):
    """Base class for every error kura reports to the user."""
    error_type = "error"


class Illegal(KuraError):
    """Malformed command, wrong arity or bad selector syntax."""
    error_type = "illegal"


class JSONDialectError(Illegal):
    """Relaxed JSON input that could not be parsed."""
    error_type = "json"

    def __init__(self, message: str, position: int = -1):
        super().__init__(message)
        self.position = position


class NoMatch(KuraError):
    error_type = "unknown"


class Ambiguous(KuraError):
    error_type = "ambiguous"

    def __init__(self, matches: List[str]):
        super().__init__(", ".join(matches))
        self.matches = list(matches)


class DatabaseMissing(KuraError):
    error_type = "db_missing"


class CollectionMissing(KuraError):
    error_type = "coll_missing"


class Overflow(KuraError):
    """Input or a document exceeded one of the fixed bounds."""
    error_type = "overflow"


class BufferTooSmall(Overflow):
    error_type = "buffer"

    def __init__(self, capacity: int, needed: Optional[int] = None):
        msg = f"document exceeds {capacity} characters"
        if needed is not None:
            msg = f"document needs {needed} characters, limit is {capacity}"
        super().__init__(msg)
        self.capacity = capacity
        self.needed = needed


class PathTooLong(Overflow):
    error_type = "path_too_long"


class LineTooLong(Overflow):
    error_type = "line_too_long"


class PromptTooNarrow(Overflow):
    error_type = "prompt"


class DriverError(KuraError):
    """The database reported a failure."""
    error_type = "driver"


class OperatorRequired(DriverError):
    """A multi-document update was given a replacement document."""
    error_type = "operator_required"


class ConfigError(KuraError):
    """Fatal start-up problem: identity, config file or history store."""
    error_type = "config"
