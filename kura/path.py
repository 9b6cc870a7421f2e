"""kura.path - Database/collection path navigation"""

from .errors import PathTooLong
from .models import Context

MAX_DBNAME = 200
MAX_COLLNAME = 200


def _checked(database: str, collection: str) -> Context:
    if len(database) > MAX_DBNAME:
        raise PathTooLong(f"database name longer than {MAX_DBNAME} characters")
    if len(collection) > MAX_COLLNAME:
        raise PathTooLong(f"collection name longer than {MAX_COLLNAME} characters")
    return Context(database, collection)


def _split(expr: str) -> Context:
    # only the first separator is structural, collection names may contain "/"
    database, _, collection = expr.partition("/")
    return _checked(database, collection)


def resolve_path(expr: str, context: Context) -> Context:
    """
    Interpret a path expression against the current context.

    Returns the candidate new context; the caller commits it only once the
    database/collection handle could be obtained.

        /db/coll   absolute, replaces both
        /db        absolute, no collection
        name       relative: the new collection when anything is selected,
                   otherwise parsed like an absolute path without the slash
    """
    expr = expr.lstrip(" \t")
    if not expr:
        return context

    if expr.startswith("/"):
        return _split(expr.lstrip("/"))

    if not context.is_empty():
        return _checked(context.database, expr)

    return _split(expr)


def format_path(context: Context) -> str:
    if not context.database:
        return "/"
    if not context.collection:
        return f"/{context.database}"
    return f"/{context.database}/{context.collection}"
