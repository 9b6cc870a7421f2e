"""kura.command - Verb table and per-command help"""

import sys

from .models import OperationKind

# Order matters: ambiguous prefixes are reported in this order.
VERBS = [
    "ls",
    "cd",
    "count",
    "find",
    "insert",
    "update",
    "upsert",
    "remove",
    "aggregate",
    "help",
]

VERB_KINDS = {
    "ls": OperationKind.LIST,
    "cd": OperationKind.CHANGE_DIR,
    "count": OperationKind.COUNT,
    "find": OperationKind.FIND,
    "insert": OperationKind.INSERT,
    "update": OperationKind.UPDATE,
    "upsert": OperationKind.UPSERT,
    "remove": OperationKind.REMOVE,
    "aggregate": OperationKind.AGGREGATE,
}

# Verbs that work without a database/collection selection.
CONTEXT_FREE = {"ls", "cd", "help"}


COMMAND_HELP = {
    'ls': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: ls                                                                  ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: List databases or collections                                       ║
║                                                                              ║
║ USAGE:                                                                       ║
║   ls              # databases, or collections of the current database        ║
║   ls <path>       # collections of the database named by <path>              ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   /> ls                                                                      ║
║   /> ls /shop                                                                ║
║   /shop> ls                                                                  ║
║                                                                              ║
║ NOTES:                                                                       ║
║   - Works without a selection, use it to browse before cd                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'cd': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: cd                                                                  ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Change database and/or collection                                   ║
║                                                                              ║
║ USAGE:                                                                       ║
║   cd /<database>/<collection>    # absolute                                  ║
║   cd /<database>                 # absolute, no collection                   ║
║   cd <collection>                # relative, stays in the current database   ║
║   cd /                           # clear the selection                       ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   /> cd /shop/orders                                                         ║
║   /shop/orders> cd customers     # -> /shop/customers                        ║
║   /> cd shop/orders              # nothing selected: db/collection           ║
║                                                                              ║
║ NOTES:                                                                       ║
║   - Only the first "/" after the database is a separator, the rest of the    ║
║     path is the collection name                                              ║
║   - Exactly one argument; quote names containing blanks                     ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'count': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: count                                                               ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Count documents in the current collection                           ║
║                                                                              ║
║ USAGE:                                                                       ║
║   count [selector]                                                           ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   count                          # all documents                             ║
║   count {status: "open"}                                                     ║
║   count 5f1a2b3c4d5e6f7081920a1b # by object id                              ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'find': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: find                                                                ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Query the current collection                                        ║
║                                                                              ║
║ USAGE:                                                                       ║
║   find [selector] [projection]                                               ║
║                                                                              ║
║ SELECTOR:                                                                    ║
║   {...}        a JSON document, keys may be left unquoted                    ║
║   <24 hex>     shorthand for {"_id": {"$oid": "<24 hex>"}}                   ║
║   <word>       shorthand for {"_id": "<word>"}                               ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   find                                                                       ║
║   find {age: {$gt: 30}}                                                      ║
║   find {} {name: 1, _id: 0}                                                  ║
║   find bob                                                                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'insert': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: insert                                                              ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Insert a document (or an array of documents)                        ║
║                                                                              ║
║ USAGE:                                                                       ║
║   insert <document>                                                          ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   insert {name: "bob", age: 31}                                              ║
║   insert [{a: 1}, {a: 2}]                                                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'update': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: update                                                              ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Update every document matching a selector                           ║
║                                                                              ║
║ USAGE:                                                                       ║
║   update <selector> <update document>                                        ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   update {status: "open"} {$set: {status: "closed"}}                         ║
║   update bob {name: "bob", age: 32}  # replaces a single document            ║
║                                                                              ║
║ NOTES:                                                                       ║
║   - Operator documents ($set, $inc, ...) update all matches                  ║
║   - A plain document replaces the first match only                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'upsert': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: upsert                                                              ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Like update, but insert when nothing matches                        ║
║                                                                              ║
║ USAGE:                                                                       ║
║   upsert <selector> <update document>                                        ║
║                                                                              ║
║ EXAMPLE:                                                                     ║
║   upsert alice {$set: {visits: 1}}                                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'remove': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: remove                                                              ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Remove every document matching a selector                           ║
║                                                                              ║
║ USAGE:                                                                       ║
║   remove <selector>                                                          ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   remove {status: "closed"}                                                  ║
║   remove 5f1a2b3c4d5e6f7081920a1b                                            ║
║                                                                              ║
║ ⚠️  A selector is required. Use remove {} to empty the collection.            ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'aggregate': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: aggregate                                                           ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ PURPOSE: Run an aggregation pipeline on the current collection               ║
║                                                                              ║
║ USAGE:                                                                       ║
║   aggregate <pipeline>                                                       ║
║                                                                              ║
║ EXAMPLES:                                                                    ║
║   aggregate [{$match: {a: 1}}, {$group: {_id: "$b", n: {$sum: 1}}}]          ║
║   aggregate {$count: "total"}       # a single stage                         ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
    'help': """
╔══════════════════════════════════════════════════════════════════════════════╗
║ COMMAND: help                                                                ║
╠══════════════════════════════════════════════════════════════════════════════╣
║ USAGE:                                                                       ║
║   help             # list all commands                                       ║
║   help <command>   # detailed help, prefixes work: help agg                  ║
║                                                                              ║
║ Commands can be abbreviated to any unambiguous prefix: f = find              ║
╚══════════════════════════════════════════════════════════════════════════════╝
""",
}


def print_command_help(command: str, file=None):
    """Print detailed help for a specific command."""
    file = file or sys.stdout
    if command in COMMAND_HELP:
        print(COMMAND_HELP[command], file=file)
    else:
        print(f"No detailed help for '{command}'. Run 'help' for all commands.", file=file)
