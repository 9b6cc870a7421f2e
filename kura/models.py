"""kura.models - Shell state and resolver results"""

from dataclasses import dataclass, field
from typing import List
from enum import Enum


@dataclass(frozen=True)
class Context:
    """Current database and collection. Empty string means not selected."""
    database: str = ""
    collection: str = ""

    def is_empty(self) -> bool:
        return not self.database and not self.collection


class MatchKind(Enum):
    NONE = "none"
    UNIQUE = "unique"
    AMBIGUOUS = "ambiguous"


@dataclass
class MatchResult:
    kind: MatchKind
    matches: List[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        """The matched name; only meaningful for a unique match."""
        return self.matches[0] if self.kind == MatchKind.UNIQUE else ""


class OperationKind(Enum):
    LIST = "ls"
    CHANGE_DIR = "cd"
    COUNT = "count"
    FIND = "find"
    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    REMOVE = "remove"
    AGGREGATE = "aggregate"


class SignalKind(Enum):
    ILLEGAL = "illegal"
    UNKNOWN = "unknown"
    AMBIGUOUS = "ambiguous"
    HELP = "help"
    DATABASE_MISSING = "db_missing"
    COLLECTION_MISSING = "coll_missing"


@dataclass
class Operation:
    """A resolved input line, ready to execute."""
    kind: OperationKind
    residual: str = ""
    args: List[str] = field(default_factory=list)
    requires_db: bool = False
    requires_collection: bool = False


@dataclass
class ControlSignal:
    """A resolved input line that does not reach the database."""
    kind: SignalKind
    matches: List[str] = field(default_factory=list)
    topic: str = ""


@dataclass
class Token:
    """One word of an input line and where it sits in that line."""
    value: str
    start: int
    end: int


@dataclass
class Completion:
    matches: List[str] = field(default_factory=list)
    prefix_length: int = 0
    word: str = ""

    @property
    def insertion(self) -> str:
        """Text to splice after the word being completed."""
        if not self.matches:
            return ""
        common = self.matches[0][:self.prefix_length]
        if not common.startswith(self.word):
            return ""
        return common[len(self.word):]
