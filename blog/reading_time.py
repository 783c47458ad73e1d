"""
blog/reading_time.py -- Estimated reading time for editor JSON content.

The editor stores a post as a tree of nodes. Leaf nodes carry "text"; block
nodes carry "children". Anything else is ignored.
"""

import math
from typing import Any

WORDS_PER_MINUTE = 200


def extract_text(node: Any) -> str:
    """Flatten a node, a list of nodes, or a bare string into space-joined text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return " ".join(extract_text(child) for child in node)
    if isinstance(node, dict):
        # A leaf's text wins; its children (if any) are not visited.
        text = node.get("text")
        if isinstance(text, str) and text:
            return text
        children = node.get("children")
        if isinstance(children, list):
            return extract_text(children)
    return ""


def calculate_reading_time(content: Any) -> int:
    """Minutes to read content at WORDS_PER_MINUTE, rounded up, never less than 1."""
    words = len(extract_text(content).split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def format_reading_time(minutes: int) -> str:
    return f"{minutes} min read"
