"""kura.resolver - Turn an input line into an operation"""

import logging
from typing import Callable, Iterable, List, Union

from .command import CONTEXT_FREE, VERB_KINDS, VERBS
from .models import (
    Completion,
    Context,
    ControlSignal,
    MatchKind,
    Operation,
    OperationKind,
    SignalKind,
    Token,
)
from .prefix import common_prefix_length, match, prefix_matches

logger = logging.getLogger(__name__)

BLANKS = " \t"


def tokenize(line: str) -> List[Token]:
    """
    Split a line into blank separated words, keeping each word's span.

    Single and double quotes group blanks into one word and are dropped from
    the value, a backslash escapes the next character. An unterminated quote
    runs to the end of the line.
    """
    tokens = []
    i, n = 0, len(line)
    while i < n:
        if line[i] in BLANKS or line[i] in "\r\n":
            i += 1
            continue

        start = i
        value = []
        quote = None
        while i < n:
            ch = line[i]
            if quote:
                if ch == quote:
                    quote = None
                elif ch == "\\" and quote == '"' and i + 1 < n:
                    i += 1
                    value.append(line[i])
                else:
                    value.append(ch)
            elif ch in BLANKS or ch in "\r\n":
                break
            elif ch in "'\"":
                quote = ch
            elif ch == "\\" and i + 1 < n:
                i += 1
                value.append(line[i])
            else:
                value.append(ch)
            i += 1

        tokens.append(Token("".join(value), start, i))
    return tokens


Resolution = Union[Operation, ControlSignal, None]


def resolve(line: str, context: Context) -> Resolution:
    """
    Classify one input line.

    Returns None for a blank line, a ControlSignal for anything that must not
    reach the database (unknown/ambiguous verbs, help, bad arity, missing
    selection), or an Operation carrying the text after the verb verbatim.
    """
    tokens = tokenize(line)
    if not tokens:
        return None

    verb_token = tokens[0]
    result = match(VERBS, verb_token.value)
    if result.kind == MatchKind.NONE:
        return ControlSignal(SignalKind.UNKNOWN)
    if result.kind == MatchKind.AMBIGUOUS:
        return ControlSignal(SignalKind.AMBIGUOUS, matches=result.matches)

    verb = result.name
    args = [t.value for t in tokens[1:]]
    residual = line[verb_token.end:]
    logger.debug("resolved %r to %s, residual %r", verb_token.value, verb, residual)

    if verb in CONTEXT_FREE:
        if verb == "help":
            return ControlSignal(SignalKind.HELP, topic=args[0] if args else "")
        if verb == "cd" and len(args) != 1:
            return ControlSignal(SignalKind.ILLEGAL)
        if verb == "ls" and len(args) > 1:
            return ControlSignal(SignalKind.ILLEGAL)
        return Operation(VERB_KINDS[verb], residual=residual, args=args)

    if not context.database:
        return ControlSignal(SignalKind.DATABASE_MISSING)
    if not context.collection:
        return ControlSignal(SignalKind.COLLECTION_MISSING)

    return Operation(
        VERB_KINDS[verb],
        residual=residual,
        args=args,
        requires_db=True,
        requires_collection=True,
    )


# =============================================================================
# COMPLETION
# =============================================================================

NameLister = Callable[..., Iterable[str]]


def _completion(candidates: Iterable[str], word: str) -> Completion:
    matches = prefix_matches(candidates, word)
    return Completion(matches, common_prefix_length(matches), word)


def complete_verb(partial: str) -> Completion:
    return _completion(VERBS, partial)


def complete_path(
    partial: str,
    context: Context,
    list_databases: NameLister,
    list_collections: NameLister,
) -> Completion:
    """
    Complete a cd/ls argument.

    Absolute paths complete "/db" until a second "/" is typed, then
    "/db/coll". Relative paths complete collections of the current database
    when anything is selected, database names otherwise.
    """
    if partial.startswith("/"):
        rest = partial.lstrip("/")
        if "/" in rest:
            database, _, _ = rest.partition("/")
            names = [f"/{database}/{c}" for c in sorted(list_collections(database))]
        else:
            names = [f"/{d}" for d in sorted(list_databases())]
        return _completion(names, partial)

    if context.database:
        return _completion(sorted(list_collections(context.database)), partial)
    if context.collection:
        # a collection without a database has nothing to list
        return Completion(word=partial)
    return _completion(sorted(list_databases()), partial)


def complete(
    buffer: str,
    context: Context,
    list_databases: NameLister,
    list_collections: NameLister,
) -> Completion:
    """Complete the last word of an edit buffer."""
    tokens = tokenize(buffer)
    at_new_word = not buffer or buffer[-1] in BLANKS
    word = "" if at_new_word or not tokens else tokens[-1].value
    index = len(tokens) if at_new_word else len(tokens) - 1

    if index == 0:
        return complete_verb(word)

    if index == 1:
        result = match(VERBS, tokens[0].value)
        if result.kind == MatchKind.UNIQUE and VERB_KINDS.get(result.name) in (
            OperationKind.CHANGE_DIR,
            OperationKind.LIST,
        ):
            return complete_path(word, context, list_databases, list_collections)

    return Completion(word=word)
