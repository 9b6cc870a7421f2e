"""
Tests for the shell session: dispatch, context changes, document handling
and diagnostics, against a recording stub driver.

Run with: pytest tests/test_session.py -v
"""

import io
import json

import lmdb
import pytest
from bson import ObjectId

from kura.cli import Completer, repl
from kura.errors import DriverError, OperatorRequired
from kura.kura import MAX_LINE, Kura
from kura.models import Context

OID = "5f1a2b3c4d5e6f7081920a1b"


class StubDriver:
    """Records every call; find/aggregate yield the canned documents."""

    def __init__(self, documents=None, databases=None, collections=None):
        self.calls = []
        self.documents = documents or []
        self.databases = databases or ["admin", "shop"]
        self.collections = collections or {"shop": ["orders", "customers"]}
        self.fail_cursor_after = None
        self.lookup_error = None

    def list_databases(self):
        self.calls.append(("list_databases",))
        if self.lookup_error:
            raise self.lookup_error
        return list(self.databases)

    def list_collections(self, database):
        self.calls.append(("list_collections", database))
        if self.lookup_error:
            raise self.lookup_error
        return list(self.collections.get(database, []))

    def collection(self, database, name):
        self.calls.append(("collection", database, name))
        return (database, name)

    def count(self, handle, query):
        self.calls.append(("count", handle, query))
        return 42

    def _cursor(self):
        for i, doc in enumerate(self.documents):
            if self.fail_cursor_after is not None and i >= self.fail_cursor_after:
                raise DriverError("cursor failed: connection reset")
            yield doc

    def find(self, handle, query, projection=None):
        self.calls.append(("find", handle, query, projection))
        return self._cursor()

    def insert(self, handle, doc):
        self.calls.append(("insert", handle, doc))

    def update(self, handle, query, update, multi=True, upsert=False):
        self.calls.append(("update", handle, query, update, multi, upsert))
        if multi and not all(k.startswith("$") for k in update):
            raise OperatorRequired("replacement document")

    def remove(self, handle, query):
        self.calls.append(("remove", handle, query))

    def aggregate(self, handle, pipeline):
        self.calls.append(("aggregate", handle, pipeline))
        return self._cursor()


@pytest.fixture
def driver():
    return StubDriver()


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def err():
    return io.StringIO()


@pytest.fixture
def shell(driver, out, err):
    return Kura(driver, pretty=False, width=lambda: 80, out=out, err=err)


@pytest.fixture
def ready(shell, driver):
    """A session inside /shop/orders with the cd call forgotten."""
    assert shell.execute("cd /shop/orders")
    driver.calls.clear()
    return shell


def db_calls(driver, name):
    return [c for c in driver.calls if c[0] == name]


# ── Navigation ──────────────────────────────────────────────────────────────


class TestNavigation:
    def test_cd_absolute(self, shell, driver):
        assert shell.execute("cd /shop/orders")
        assert shell.context == Context("shop", "orders")
        assert shell.handle == ("shop", "orders")
        assert driver.calls == [("collection", "shop", "orders")]

    def test_cd_database_only_has_no_handle(self, shell, driver):
        assert shell.execute("cd /shop")
        assert shell.context == Context("shop", "")
        assert shell.handle is None
        assert driver.calls == []

    def test_cd_relative_switches_collection(self, ready):
        assert ready.execute("cd customers")
        assert ready.context == Context("shop", "customers")
        assert ready.handle == ("shop", "customers")

    def test_cd_abbreviated(self, shell):
        assert shell.execute("c /shop/orders") is False  # c is cd or count
        assert shell.context == Context()

    def test_cd_without_argument(self, ready, err):
        assert ready.execute("cd") is False
        assert "illegal syntax" in err.getvalue()
        assert ready.context == Context("shop", "orders")

    def test_cd_path_too_long_keeps_context(self, ready, err):
        assert ready.execute("cd /" + "x" * 201) is False
        assert "illegal path spec" in err.getvalue()
        assert ready.context == Context("shop", "orders")

    def test_cd_failure_keeps_context(self, ready, driver, err):
        def boom(database, name):
            raise DriverError("bad collection name")
        driver.collection = boom
        assert ready.execute("cd /other/things") is False
        assert ready.context == Context("shop", "orders")
        assert "execution failed" in err.getvalue()

    def test_prompt_follows_context(self, shell):
        assert shell.prompt() == "/> "
        shell.execute("cd /shop")
        assert shell.prompt() == "/shop> "
        shell.execute("cd orders")
        assert shell.prompt() == "/shop/orders> "

    def test_ls_databases(self, shell, out):
        assert shell.execute("ls")
        assert out.getvalue() == "admin\nshop\n"

    def test_ls_collections_of_current_database(self, ready, out):
        assert ready.execute("ls")
        assert out.getvalue() == "orders\ncustomers\n"

    def test_ls_path(self, shell, out, driver):
        assert shell.execute("ls /shop")
        assert out.getvalue() == "orders\ncustomers\n"
        assert shell.context == Context()

    def test_ls_too_many_arguments(self, shell, err):
        assert shell.execute("ls a b") is False
        assert "illegal syntax" in err.getvalue()


# ── Resolution signals ──────────────────────────────────────────────────────


class TestSignals:
    def test_blank_line(self, shell, out, err, driver):
        assert shell.execute("   ")
        assert out.getvalue() == err.getvalue() == ""
        assert driver.calls == []

    def test_unknown(self, shell, err):
        assert shell.execute("frobnicate") is False
        assert err.getvalue() == "kura: unknown command\n"

    def test_ambiguous_lists_matches_and_skips_database(self, ready, out, driver):
        assert ready.execute('u {a: 1} {$set: {b: 1}}') is False
        assert out.getvalue() == "update\nupsert\n"
        assert driver.calls == []

    def test_no_database(self, shell, err, driver):
        assert shell.execute("find") is False
        assert "no database selected" in err.getvalue()
        assert driver.calls == []

    def test_no_collection(self, shell, err, driver):
        shell.execute("cd /shop")
        assert shell.execute("find") is False
        assert "no collection selected" in err.getvalue()
        assert driver.calls == []

    def test_line_too_long(self, ready, err, driver):
        assert ready.execute("find " + "x" * MAX_LINE) is False
        assert "line too long" in err.getvalue()
        assert driver.calls == []

    def test_help_lists_verbs(self, shell, out):
        assert shell.execute("help")
        assert out.getvalue().split() == [
            "ls", "cd", "count", "find", "insert", "update", "upsert", "remove", "aggregate", "help",
        ]

    def test_help_topic_prefix(self, shell, out):
        assert shell.execute("help f")
        assert "COMMAND: find" in out.getvalue()

    def test_help_ambiguous_topic(self, shell, out):
        assert shell.execute("help up")
        assert out.getvalue() == "update\nupsert\n"

    def test_help_unknown_topic(self, shell, out):
        assert shell.execute("help zzz")
        assert "No detailed help for 'zzz'" in out.getvalue()


# ── Queries ─────────────────────────────────────────────────────────────────


class TestFind:
    def test_find_all(self, ready, driver, out):
        driver.documents = [{"_id": "bob", "n": 1}, {"_id": "amy", "n": 2}]
        assert ready.execute("find")
        assert db_calls(driver, "find") == [("find", ("shop", "orders"), {}, None)]
        assert out.getvalue() == '{"_id": "bob", "n": 1}\n{"_id": "amy", "n": 2}\n'

    def test_find_relaxed_query(self, ready, driver):
        assert ready.execute('f {age: {$gt: 30}, name: "bob"}')
        assert db_calls(driver, "find")[0][2] == {"age": {"$gt": 30}, "name": "bob"}

    def test_find_literal_id(self, ready, driver):
        assert ready.execute("find bob")
        assert db_calls(driver, "find")[0][2] == {"_id": "bob"}

    def test_find_object_id(self, ready, driver):
        assert ready.execute("find " + OID)
        assert db_calls(driver, "find")[0][2] == {"_id": ObjectId(OID)}

    def test_find_with_projection(self, ready, driver):
        assert ready.execute("find {} {name: 1, _id: 0}")
        assert db_calls(driver, "find")[0][3] == {"name": 1, "_id": 0}

    def test_find_id_with_projection(self, ready, driver):
        assert ready.execute("find bob {name: 1}")
        call = db_calls(driver, "find")[0]
        assert call[2] == {"_id": "bob"}
        assert call[3] == {"name": 1}

    def test_object_id_printed_as_extended_json(self, ready, driver, out):
        driver.documents = [{"_id": ObjectId(OID)}]
        ready.execute("find")
        assert json.loads(out.getvalue()) == {"_id": {"$oid": OID}}

    def test_bad_query(self, ready, driver, err):
        assert ready.execute("find {a: }") is False
        assert "illegal document" in err.getvalue()
        assert db_calls(driver, "find") == []

    @pytest.mark.parametrize("line", [
        "count {a: {$date: 1e400}}",
        "find {when: {$date: 1e400}}",
    ])
    def test_extended_json_out_of_range(self, ready, driver, err, line):
        assert ready.execute(line) is False
        assert "illegal syntax" in err.getvalue()
        assert db_calls(driver, "count") == db_calls(driver, "find") == []
        assert ready.execute("count")

    def test_pretty_reflows_wide_documents(self, driver, out, err):
        shell = Kura(driver, pretty=True, width=lambda: 20, out=out, err=err)
        shell.execute("cd /shop/orders")
        driver.documents = [{"name": "a long name value", "n": 1}]
        assert shell.execute("find")
        assert out.getvalue() == '{\n  "name": "a long name value",\n  "n": 1\n}\n'

    def test_single_line_keeps_wide_documents(self, ready, driver, out):
        driver.documents = [{"name": "a long name value" * 10}]
        ready.execute("find")
        assert out.getvalue().count("\n") == 1

    def test_document_too_large(self, driver, out, err):
        shell = Kura(driver, out=out, err=err, width=lambda: 80, max_doc=30)
        shell.execute("cd /shop/orders")
        driver.documents = [{"n": 1}, {"blob": "x" * 100}, {"n": 3}]
        assert shell.execute("find") is False
        assert out.getvalue() == '{"n": 1}\n'
        assert "document too large" in err.getvalue()

    def test_cursor_failure_midway(self, ready, driver, out, err):
        driver.documents = [{"n": 1}, {"n": 2}, {"n": 3}]
        driver.fail_cursor_after = 1
        assert ready.execute("find") is False
        assert out.getvalue() == '{"n": 1}\n'
        assert "execution failed" in err.getvalue()
        assert "connection reset" in err.getvalue()

    def test_count(self, ready, driver, out):
        assert ready.execute("co {status: \"open\"}")
        assert db_calls(driver, "count") == [("count", ("shop", "orders"), {"status": "open"})]
        assert out.getvalue() == "42\n"

    def test_count_all(self, ready, driver):
        assert ready.execute("count")
        assert db_calls(driver, "count")[0][2] == {}


# ── Writes ──────────────────────────────────────────────────────────────────


class TestWrites:
    def test_insert(self, ready, driver):
        assert ready.execute('i {name: "bob", tags: ["a", "b"]}')
        assert db_calls(driver, "insert") == [
            ("insert", ("shop", "orders"), {"name": "bob", "tags": ["a", "b"]}),
        ]

    def test_insert_many(self, ready, driver):
        assert ready.execute("insert [{a: 1}, {a: 2}]")
        assert db_calls(driver, "insert")[0][2] == [{"a": 1}, {"a": 2}]

    def test_insert_requires_document(self, ready, driver, err):
        assert ready.execute("insert bob") is False
        assert db_calls(driver, "insert") == []

    def test_insert_rejects_array_of_scalars(self, ready, driver, err):
        assert ready.execute("insert [1, 2]") is False
        assert "illegal syntax" in err.getvalue()
        assert db_calls(driver, "insert") == []

    def test_update_with_operators_is_one_call(self, ready, driver):
        assert ready.execute("update {a: 1} {$set: {b: 2}}")
        assert db_calls(driver, "update") == [
            ("update", ("shop", "orders"), {"a": 1}, {"$set": {"b": 2}}, True, False),
        ]

    def test_update_replacement_falls_back_once(self, ready, driver):
        assert ready.execute("update bob {name: \"robert\"}")
        calls = db_calls(driver, "update")
        assert len(calls) == 2
        assert calls[0][4] is True
        assert calls[1] == ("update", ("shop", "orders"), {"_id": "bob"}, {"name": "robert"}, False, False)

    def test_upsert(self, ready, driver):
        assert ready.execute("ups {a: 1} {$set: {b: 2}}")
        assert db_calls(driver, "update")[0][5] is True

    def test_upsert_replacement_falls_back_with_upsert(self, ready, driver):
        assert ready.execute("upsert bob {n: 1}")
        calls = db_calls(driver, "update")
        assert [(c[4], c[5]) for c in calls] == [(True, True), (False, True)]

    def test_update_without_document(self, ready, driver, err):
        assert ready.execute("update {a: 1}") is False
        assert "illegal document" in err.getvalue()
        assert db_calls(driver, "update") == []

    def test_update_without_selector(self, ready, driver, err):
        assert ready.execute("update") is False
        assert "illegal syntax" in err.getvalue()
        assert db_calls(driver, "update") == []

    def test_remove(self, ready, driver):
        assert ready.execute("rem {done: true}")
        assert db_calls(driver, "remove") == [("remove", ("shop", "orders"), {"done": True})]

    def test_remove_object_id(self, ready, driver):
        assert ready.execute("remove " + OID)
        assert db_calls(driver, "remove")[0][2] == {"_id": ObjectId(OID)}

    def test_remove_requires_selector(self, ready, driver, err):
        assert ready.execute("remove") is False
        assert db_calls(driver, "remove") == []

    def test_aggregate_pipeline(self, ready, driver, out):
        driver.documents = [{"_id": "open", "n": 3}]
        assert ready.execute('a [{$match: {a: 1}}, {$group: {_id: "$status", n: {$sum: 1}}}]')
        assert db_calls(driver, "aggregate")[0][2] == [
            {"$match": {"a": 1}},
            {"$group": {"_id": "$status", "n": {"$sum": 1}}},
        ]
        assert out.getvalue() == '{"_id": "open", "n": 3}\n'

    def test_aggregate_single_stage(self, ready, driver):
        assert ready.execute("aggregate {$match: {a: 1}}")
        assert db_calls(driver, "aggregate")[0][2] == [{"$match": {"a": 1}}]

    def test_errors_do_not_end_the_session(self, ready, driver):
        assert ready.execute("frob") is False
        assert ready.execute("find {") is False
        assert ready.execute("count")
        assert ready.context == Context("shop", "orders")


# ── Completion ──────────────────────────────────────────────────────────────


class TestCompleter:
    def test_readline_protocol(self, shell):
        completer = Completer(shell, lambda: "c")
        assert completer.complete("c", 0) == "cd"
        assert completer.complete("c", 1) == "count"
        assert completer.complete("c", 2) is None

    def test_paths(self, shell):
        completer = Completer(shell, lambda: "cd /s")
        assert completer.complete("/s", 0) == "/shop"
        assert completer.complete("/s", 1) is None

    def test_collections_in_database(self, shell):
        shell.execute("cd /shop")
        completer = Completer(shell, lambda: "cd o")
        assert completer.complete("o", 0) == "orders"

    def test_lookup_failure_completes_nothing(self, shell, driver):
        driver.lookup_error = DriverError("not authorized")
        completer = Completer(shell, lambda: "ls ")
        assert completer.complete("", 0) is None


# ── Read loop ───────────────────────────────────────────────────────────────


class RecordingHistory:
    def __init__(self, error=None):
        self.lines = []
        self.error = error

    def append(self, line):
        if self.error:
            raise self.error
        self.lines.append(line)


def feed(monkeypatch, lines):
    """Make input() return lines, then end of input."""
    pending = iter(lines)

    def fake_input(prompt=""):
        try:
            return next(pending)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr("builtins.input", fake_input)


class TestRepl:
    def test_interactive_lines_recorded(self, shell, monkeypatch):
        history = RecordingHistory()
        feed(monkeypatch, ["help", "  ", "cd /shop"])
        repl(shell, history, interactive=True)
        assert history.lines == ["help", "cd /shop"]
        assert shell.context == Context("shop")

    def test_piped_lines_not_recorded(self, shell, monkeypatch):
        history = RecordingHistory()
        feed(monkeypatch, ["help", "cd /shop"])
        repl(shell, history, interactive=False)
        assert history.lines == []
        assert shell.context == Context("shop")

    def test_history_failure_keeps_session(self, shell, monkeypatch):
        history = RecordingHistory(error=lmdb.MapFullError("map full"))
        feed(monkeypatch, ["cd /shop", "cd orders"])
        repl(shell, history, interactive=True)
        assert shell.context == Context("shop", "orders")
