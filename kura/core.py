"""kura.core - User identity, config file and diagnostics"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TextIO

from .errors import ConfigError, KuraError

PROGNAME = "kura"
CONFIG_FILE = ".kura"
HISTORY_DIR = ".kura_history"
MAX_URL = 200
MAX_USERNAME = 100


@dataclass
class User:
    name: str
    home: Path

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILE

    @property
    def history_path(self) -> Path:
        return self.home / HISTORY_DIR


def init_user() -> User:
    """Look up the current user. HOME, when set, overrides the password database."""
    try:
        import pwd
        pw = pwd.getpwuid(os.getuid())
    except (ImportError, KeyError) as e:
        raise ConfigError("can't determine the current user") from e

    if len(pw.pw_name) >= MAX_USERNAME:
        raise ConfigError("user name too long")

    home = os.environ.get("HOME") or pw.pw_dir
    if not home:
        raise ConfigError("can't determine home directory")
    return User(pw.pw_name, Path(home))


def parse_config(fp: TextIO) -> str:
    """The config file is a single line holding the connection url."""
    line = fp.readline()
    if not line:
        raise ConfigError("config file is empty")
    url = line.rstrip("\r\n")
    if len(url) > MAX_URL:
        raise ConfigError(f"url in config longer than {MAX_URL} characters")
    if not url:
        raise ConfigError("config file has no url")
    return url


def read_config(user: User) -> Optional[str]:
    """Read ~/.kura. Returns the url, or None when there is no config file."""
    try:
        with open(user.config_path) as fp:
            return parse_config(fp)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ConfigError(f"can't read {user.config_path}: {e}") from e


def setup_logging(verbose: bool = False) -> None:
    root = logging.getLogger(PROGNAME)
    if not verbose:
        root.setLevel(logging.WARNING)
        return
    root.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root.addHandler(handler)


ERROR_PROMPTS = {
    'illegal': "illegal syntax",
    'json': "illegal document",
    'unknown': "unknown command",
    'ambiguous': "ambiguous command",
    'db_missing': "no database selected",
    'coll_missing': "no collection selected",
    'overflow': "input too large",
    'buffer': "document too large",
    'path_too_long': "illegal path spec",
    'line_too_long': "line too long",
    'prompt': "can't fit prompt",
    'driver': "execution failed",
    'operator_required': "execution failed",
    'config': "can't start",
}


def print_error(error_type: str, context: dict = None, file: TextIO = None):
    """Print a one-line diagnostic for error_type, followed by any context."""
    file = file or sys.stderr
    message = ERROR_PROMPTS.get(error_type, error_type)
    print(f"{PROGNAME}: {message}", file=file)

    if context:
        for k, v in context.items():
            print(f"  {k}: {v}", file=file)


def report(error: KuraError, file: TextIO = None):
    """Print a KuraError with its detail, if it carries one."""
    detail = str(error)
    print_error(error.error_type, {'detail': detail} if detail else None, file=file)
