"""Split an event's content into its reasoning block and the text shown to users.

The backend may wrap intermediate model reasoning in a single
``<think>...</think>`` block. The timeline hides it by default, so decoding
keeps it apart from the displayed content.
"""
import re
from typing import NamedTuple

_THINK_PATTERN = re.compile(r"<think>([\s\S]*?)</think>")


class ThinkingSplit(NamedTuple):
    reasoning: str
    content: str
    found: bool


def split_thinking(content: str) -> ThinkingSplit:
    """Return the first thinking block's inner text and the content without it.

    Without a block, content is returned unchanged and reasoning is empty.
    """
    match = _THINK_PATTERN.search(content)
    if match is None:
        return ThinkingSplit(reasoning="", content=content, found=False)
    reasoning = match.group(1).strip()
    remaining = (content[:match.start()] + content[match.end():]).strip()
    return ThinkingSplit(reasoning=reasoning, content=remaining, found=True)
