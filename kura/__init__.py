"""kura - MongoDB navigation shell"""

__version__ = "0.1.0"

from .kura import Kura
from .cli import main
from .models import Context, ControlSignal, Operation, OperationKind, SignalKind, MatchKind, MatchResult
from .command import COMMAND_HELP, VERBS, print_command_help
from .core import ERROR_PROMPTS, print_error
from .path import resolve_path
from .resolver import resolve, complete
from .jsonify import DocBuffer, parse_selector, relaxed_to_strict, reflow

__all__ = ['Kura', 'main', 'Context', 'ControlSignal', 'Operation', 'OperationKind', 'SignalKind', 'MatchKind', 'MatchResult', 'COMMAND_HELP', 'VERBS', 'print_command_help', 'ERROR_PROMPTS', 'print_error', 'resolve_path', 'resolve', 'complete', 'DocBuffer', 'parse_selector', 'relaxed_to_strict', 'reflow', '__version__']
