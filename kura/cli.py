"""
Kura 蔵 (Storehouse) - Interactive MongoDB Navigation Shell

Browse databases and collections like directories and query them with
abbreviated commands and relaxed JSON:

    /> cd /shop/orders
    /shop/orders> f {status: "open"}

Install: pip install kura
"""

import argparse
import logging
import sys
from typing import Callable, List, Optional

import lmdb

from . import __version__
from .core import PROGNAME, init_user, read_config, report, setup_logging
from .driver import DEFAULT_URL, MongoDriver
from .errors import ConfigError, DriverError, KuraError
from .history import HISTORY_SIZE, History
from .kura import Kura
from .resolver import complete

logger = logging.getLogger(__name__)


class Completer:
    """readline completer for commands, databases and collections."""

    def __init__(self, shell: Kura, line_buffer: Callable[[], str]):
        self.shell = shell
        self.line_buffer = line_buffer
        self.matches: List[str] = []

    def candidates(self, buffer: str) -> List[str]:
        driver = self.shell.driver
        try:
            result = complete(buffer, self.shell.context, driver.list_databases, driver.list_collections)
        except DriverError as e:
            logger.debug("completion lookup failed: %s", e)
            return []
        return result.matches

    def complete(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            self.matches = self.candidates(self.line_buffer())
        return self.matches[state] if state < len(self.matches) else None


def setup_readline(shell: Kura, history: History) -> None:
    try:
        import readline
    except ImportError:
        logger.debug("readline not available, line editing disabled")
        return

    readline.clear_history()
    for line in history.lines():
        readline.add_history(line)
    readline.set_history_length(HISTORY_SIZE)
    readline.set_completer_delims(" \t")
    completer = Completer(shell, lambda: readline.get_line_buffer()[:readline.get_endidx()])
    readline.set_completer(completer.complete)
    readline.parse_and_bind("tab: complete")


def repl(shell: Kura, history: History, interactive: bool) -> None:
    """Read, resolve and run lines until end of input. Only typed lines go to history."""
    while True:
        try:
            line = input(shell.prompt() if interactive else "")
        except EOFError:
            break
        except KeyboardInterrupt:
            print()
            continue

        if not line.strip():
            continue
        if interactive:
            try:
                history.append(line)
            except lmdb.Error as e:
                logger.debug("history not recorded: %s", e)
        shell.execute(line)


def main(argv: Optional[List[str]] = None) -> int:
    COMMANDS_HELP = """
commands (inside the shell, any unambiguous prefix works):
  ls [path]                     List databases or collections
  cd <path>                     Change database and/or collection
  count [selector]              Count documents
  find [selector] [projection]  Query documents
  insert <doc>                  Insert a document
  update <selector> <doc>       Update matching documents
  upsert <selector> <doc>       Update, or insert when nothing matches
  remove <selector>             Remove matching documents
  aggregate <pipeline>          Run an aggregation pipeline
  help [command]                Show help

config:
  ~/.kura holds the connection url on a single line
  (default mongodb://localhost:27017)

examples:
  kura /shop/orders
  echo 'count {status: "open"}' | kura /shop/orders
"""

    parser = argparse.ArgumentParser(
        prog=PROGNAME,
        description="Kura 蔵 - Interactive MongoDB Navigation Shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=COMMANDS_HELP
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('-p', '--pretty', action='store_true',
                      help='Reflow documents wider than the terminal (default on a tty)')
    mode.add_argument('-s', '--single-line', action='store_true',
                      help='Print every document on a single line')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging to stderr')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('path', nargs='?', default=None, metavar='/database/collection',
                        help='Start in this database/collection')

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    interactive = sys.stdin.isatty()
    pretty = interactive
    if args.pretty:
        pretty = True
    elif args.single_line:
        pretty = False

    try:
        user = init_user()
        url = read_config(user) or DEFAULT_URL
        history = History(str(user.history_path))
    except ConfigError as e:
        report(e)
        return 1

    try:
        driver = MongoDriver(url)
    except DriverError as e:
        report(e)
        history.close()
        return 1

    shell = Kura(driver, pretty=pretty)
    try:
        if args.path:
            try:
                shell.change_dir(args.path)
            except KuraError as e:
                report(e)
                return 1

        if interactive:
            setup_readline(shell, history)
        repl(shell, history, interactive)
    finally:
        driver.close()
        history.close()

    if interactive:
        print()
    return 0
