"""kura.kura - The shell session"""

import logging
import shutil
import sys
from typing import Any, Callable, List, Optional, TextIO, Tuple
try:
    from bson import json_util
    from bson.errors import BSONError
    from bson.json_util import RELAXED_JSON_OPTIONS
except ImportError:
    print("Please install pymongo: pip install pymongo")
    raise

from .command import COMMAND_HELP, VERBS, print_command_help
from .core import report
from .errors import (
    Ambiguous,
    BufferTooSmall,
    CollectionMissing,
    DatabaseMissing,
    Illegal,
    KuraError,
    LineTooLong,
    NoMatch,
    OperatorRequired,
)
from .jsonify import MAX_DOC, DocBuffer, parse_selector, relaxed_to_strict, render
from .models import Context, ControlSignal, MatchKind, Operation, OperationKind, SignalKind
from .path import format_path, resolve_path
from .prefix import match
from .prompt import make_prompt
from .resolver import resolve

logger = logging.getLogger(__name__)

MAX_LINE = 1024


def terminal_width() -> int:
    return shutil.get_terminal_size().columns


class Kura:
    """
    One interactive session against a database driver.

    Owns the navigation context: it only changes when a cd succeeds, and every
    change happens inside execute(), one line at a time.
    """

    def __init__(
        self,
        driver,
        pretty: bool = False,
        width: Callable[[], int] = terminal_width,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        max_doc: int = MAX_DOC,
    ):
        self.driver = driver
        self.pretty = pretty
        self.width = width
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.max_doc = max_doc
        self.context = Context()
        self.handle = None

    def prompt(self) -> str:
        return make_prompt(self.context)

    # =========================================================================
    # LINE EXECUTION
    # =========================================================================

    def execute(self, line: str) -> bool:
        """Resolve and run one input line. Errors are reported, never raised."""
        try:
            if len(line) > MAX_LINE:
                raise LineTooLong(f"longer than {MAX_LINE} characters")
            resolution = resolve(line, self.context)
            if resolution is None:
                return True
            if isinstance(resolution, ControlSignal):
                return self.signal(resolution)
            self.run(resolution)
            return True
        except Ambiguous as e:
            self._print_names(e.matches)
            return False
        except KuraError as e:
            report(e, file=self.err)
            return False

    def signal(self, signal: ControlSignal) -> bool:
        kind = signal.kind
        if kind == SignalKind.HELP:
            self.help(signal.topic)
            return True
        if kind == SignalKind.AMBIGUOUS:
            raise Ambiguous(signal.matches)
        if kind == SignalKind.UNKNOWN:
            raise NoMatch()
        if kind == SignalKind.DATABASE_MISSING:
            raise DatabaseMissing()
        if kind == SignalKind.COLLECTION_MISSING:
            raise CollectionMissing()
        raise Illegal()

    def run(self, op: Operation) -> None:
        handlers = {
            OperationKind.LIST: self.ls,
            OperationKind.CHANGE_DIR: self.cd,
            OperationKind.COUNT: self.count,
            OperationKind.FIND: self.find,
            OperationKind.INSERT: self.insert,
            OperationKind.UPDATE: self.update,
            OperationKind.UPSERT: self.upsert,
            OperationKind.REMOVE: self.remove,
            OperationKind.AGGREGATE: self.aggregate,
        }
        handlers[op.kind](op)

    def help(self, topic: str = "") -> None:
        if not topic:
            self._print_names(VERBS)
            return
        result = match(list(COMMAND_HELP), topic)
        if result.kind == MatchKind.AMBIGUOUS:
            self._print_names(result.matches)
        else:
            print_command_help(result.name or topic, file=self.out)

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def change_dir(self, expr: str) -> Context:
        """Move to expr. The context is only replaced once the handle is obtained."""
        new = resolve_path(expr, self.context)
        handle = None
        if new.database and new.collection:
            handle = self.driver.collection(new.database, new.collection)
        logger.debug("cd %s -> %s", format_path(self.context), format_path(new))
        self.context = new
        self.handle = handle
        return new

    def cd(self, op: Operation) -> None:
        self.change_dir(op.args[0])

    def ls(self, op: Operation) -> None:
        target = resolve_path(op.args[0], self.context) if op.args else self.context
        if target.database:
            names = self.driver.list_collections(target.database)
        else:
            names = self.driver.list_databases()
        self._print_names(names)

    # =========================================================================
    # COLLECTION OPERATIONS
    # =========================================================================

    def count(self, op: Operation) -> None:
        query, _ = self._selector(op.residual, default="{}")
        print(self.driver.count(self.handle, query), file=self.out)

    def find(self, op: Operation) -> None:
        query, consumed = self._selector(op.residual, default="{}")
        rest = op.residual[consumed:]
        projection = None
        if rest.strip():
            projection = self._document(rest)[0]
        self._print_documents(self.driver.find(self.handle, query, projection))

    def insert(self, op: Operation) -> None:
        doc, _ = self._document(op.residual, allow_list=True)
        self.driver.insert(self.handle, doc)

    def update(self, op: Operation, upsert: bool = False) -> None:
        query, consumed = self._selector(op.residual)
        doc, _ = self._document(op.residual[consumed:])
        try:
            self.driver.update(self.handle, query, doc, multi=True, upsert=upsert)
        except OperatorRequired as e:
            logger.debug("multi update refused (%s), retrying as single update", e)
            self.driver.update(self.handle, query, doc, multi=False, upsert=upsert)

    def upsert(self, op: Operation) -> None:
        self.update(op, upsert=True)

    def remove(self, op: Operation) -> None:
        query, _ = self._selector(op.residual)
        self.driver.remove(self.handle, query)

    def aggregate(self, op: Operation) -> None:
        pipeline, _ = self._document(op.residual, allow_list=True)
        if isinstance(pipeline, dict):
            pipeline = [pipeline]
        self._print_documents(self.driver.aggregate(self.handle, pipeline))

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _load(self, text: str) -> Any:
        try:
            return json_util.loads(text)
        except (ValueError, TypeError, OverflowError, BSONError) as e:
            raise Illegal(str(e)) from e

    def _selector(self, text: str, default: Optional[str] = None) -> Tuple[Any, int]:
        buf = DocBuffer(self.max_doc)
        consumed = parse_selector(buf, text)
        if consumed == 0:
            if default is None:
                raise Illegal("missing selector")
            return self._load(default), 0
        return self._load(buf.getvalue()), consumed

    def _document(self, text: str, allow_list: bool = False) -> Tuple[Any, int]:
        buf = DocBuffer(self.max_doc)
        consumed = relaxed_to_strict(buf, text)
        doc = self._load(buf.getvalue())
        if isinstance(doc, dict):
            return doc, consumed
        if allow_list and isinstance(doc, list) and all(isinstance(d, dict) for d in doc):
            return doc, consumed
        raise Illegal("expected a document")

    def _print_names(self, names: List[str]) -> None:
        for name in names:
            print(name, file=self.out)

    def _print_documents(self, docs) -> None:
        width = self.width()
        for doc in docs:
            text = json_util.dumps(doc, json_options=RELAXED_JSON_OPTIONS)
            if len(text) > self.max_doc:
                raise BufferTooSmall(self.max_doc, len(text))
            print(render(text, width, self.pretty, self.max_doc), file=self.out)
