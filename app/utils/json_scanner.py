"""Finite-state scanner for JSON-like generator output.

The scanner walks text one character at a time and tracks only what is
needed to find safe truncation points: whether it is inside a string
literal, whether the previous character was an escape, the stack of open
brackets, and whether it is still inside the outermost array. It is not a
JSON parser; ``json.loads`` (or ``json_repair`` on a retry) does the actual
parsing once the text has been normalized and balanced.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

OPENERS = {"[": "]", "{": "}"}
CLOSERS = {"]": "[", "}": "{"}
WHITESPACE = " \t\r\n"


@dataclass
class ScanState:
    """Running state of a scan over text that starts at the outer array."""

    in_string: bool = False
    escaped: bool = False
    stack: List[str] = field(default_factory=list)
    in_outer_array: bool = False
    outer_closed_at: Optional[int] = None
    last_complete_object_end: Optional[int] = None
    last_element_end: Optional[int] = None

    @property
    def depth(self) -> int:
        return len(self.stack)

    @property
    def truncated(self) -> bool:
        """True when input ended inside a string, object or array."""
        return self.outer_closed_at is None and (self.in_string or bool(self.stack))

    def closing_sequence(self) -> str:
        """Closers needed to balance every bracket still open."""
        return "".join(OPENERS[opener] for opener in reversed(self.stack))


def step(state: ScanState, index: int, char: str) -> None:
    """Advance the scan state by one character."""
    if state.outer_closed_at is not None:
        return

    if state.in_string:
        if state.escaped:
            state.escaped = False
        elif char == "\\":
            state.escaped = True
        elif char == '"':
            state.in_string = False
        return

    if char == '"':
        state.in_string = True
    elif char in OPENERS:
        state.stack.append(char)
        if char == "[" and len(state.stack) == 1:
            state.in_outer_array = True
    elif char in CLOSERS:
        if not state.stack or state.stack[-1] != CLOSERS[char]:
            # Mismatched closer; leave it for the parser to reject.
            return
        state.stack.pop()
        if char == "}" and state.in_outer_array and state.stack == ["["]:
            state.last_complete_object_end = index
        elif char == "]" and not state.stack and state.in_outer_array:
            state.in_outer_array = False
            state.outer_closed_at = index
    elif char == "," and state.in_outer_array and state.stack == ["["]:
        state.last_element_end = index


def scan(text: str) -> ScanState:
    """Scan ``text`` from the beginning and return the final state."""
    state = ScanState()
    for index, char in enumerate(text):
        step(state, index, char)
        if state.outer_closed_at is not None:
            break
    return state


def locate_array_start(text: str) -> Optional[int]:
    """
    Find where the question array begins.

    Prefers a ``[`` whose next non-space character opens an object or closes
    the array, so bracketed prose such as "[25 questions]" ahead of the data
    is skipped. Falls back to the first ``[``.
    """
    first = text.find("[")
    if first == -1:
        return None

    index = first
    while index != -1:
        rest = text[index + 1 :].lstrip(WHITESPACE)
        if rest[:1] in ("{", "]"):
            return index
        index = text.find("[", index + 1)
    return first


def repair_truncation(fragment: str) -> Optional[Tuple[str, bool]]:
    """
    Cut ``fragment`` down to its outer array, balancing it when truncated.

    Args:
        fragment: Text starting at the outer ``[``

    Returns:
        ``(text, truncated)`` where ``text`` is balanced, or None if the
        input was truncated before any complete array element.
    """
    state = scan(fragment)
    if state.outer_closed_at is not None:
        return fragment[: state.outer_closed_at + 1], False

    if state.last_complete_object_end is not None:
        cut = state.last_complete_object_end + 1
    elif state.last_element_end is not None:
        cut = state.last_element_end
    else:
        return None

    head = fragment[:cut].rstrip(WHITESPACE).rstrip(",").rstrip(WHITESPACE)
    return head + scan(head).closing_sequence(), True


def _next_significant(text: str, start: int) -> str:
    index = start
    while index < len(text) and text[index] in WHITESPACE:
        index += 1
    return text[index] if index < len(text) else ""


def _last_significant(out: List[str]) -> str:
    for chunk in reversed(out):
        stripped = chunk.rstrip(WHITESPACE)
        if stripped:
            return stripped[-1]
    return ""


def normalize(text: str) -> str:
    """
    Rewrite separator mistakes outside of string literals.

    Drops trailing separators before ``]``/``}`` and collapses doubled
    separators. Well-formed JSON is returned unchanged.
    """
    out: List[str] = []
    in_string = False
    escaped = False

    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            out.append(char)
            continue

        if char == '"':
            in_string = True
        elif char == ",":
            following = _next_significant(text, index + 1)
            previous = _last_significant(out)
            if following in ("]", "}", ",") or previous in ("[", "{", ","):
                continue
        out.append(char)

    return "".join(out)
