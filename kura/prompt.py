"""kura.prompt - Shell prompt that always fits"""

from typing import Tuple

from .errors import PromptTooNarrow
from .models import Context

MAX_PROMPT = 30
DECORATION = 4  # "/", "/", ">", " " in "/db/coll> "
ELLIPSIS = ".."
MIN_SHORT = 1 + len(ELLIPSIS) + 1  # "d..e"


def ellipsize(label: str, width: int) -> str:
    """Shorten label to width characters as head..tail."""
    if len(label) <= width:
        return label
    if width < MIN_SHORT:
        raise PromptTooNarrow(f"cannot shorten {label!r} to {width} characters")
    keep = width - len(ELLIPSIS)
    tail = keep // 2
    head = keep - tail
    return label[:head] + ELLIPSIS + label[len(label) - tail:]


def shorten(db_label: str, coll_label: str, max_total_width: int) -> Tuple[str, str]:
    """
    Fit both labels into max_total_width characters.

    Not every overflow compresses both labels. Each label is entitled to half
    the budget; a label already within its half is kept whole and the other
    label is shortened into the rest. Only when both exceed half are both
    shortened, to half each.
    """
    if max_total_width < 2 * MIN_SHORT:
        raise PromptTooNarrow(f"need at least {2 * MIN_SHORT} characters, got {max_total_width}")

    if len(db_label) + len(coll_label) <= max_total_width:
        return db_label, coll_label

    half = max_total_width // 2
    if len(db_label) <= half:
        return db_label, ellipsize(coll_label, max_total_width - len(db_label))
    if len(coll_label) <= half:
        return ellipsize(db_label, max_total_width - len(coll_label)), coll_label
    return (
        ellipsize(db_label, max_total_width - half),
        ellipsize(coll_label, half),
    )


def make_prompt(context: Context, max_prompt: int = MAX_PROMPT) -> str:
    """Prompt of the form "/db/coll> ", never longer than max_prompt."""
    database, collection = shorten(
        context.database, context.collection, max_prompt - DECORATION
    )
    if not database and not collection:
        return "/> "
    if not collection:
        return f"/{database}> "
    return f"/{database}/{collection}> "
