# src/semantics/errors.py
from typing import Optional


class ParadiseError(Exception):
    """Base class for all errors raised by the semantic engine."""


class MalformedFragmentError(ParadiseError):
    """
    Raised while indexing a structural fragment that is not a proper tree
    (cycles, shared nodes, non-element roots).
    The resolution engine catches it and skips the fragment.
    """

    def __init__(self, source: str, reason: str):
        super().__init__(f"Malformed fragment '{source}': {reason}")
        self.source = source
        self.reason = reason


class SelectorSyntaxError(ParadiseError):
    """Raised by the selector parser for input it cannot tokenize."""

    def __init__(self, selector: str, reason: str, position: Optional[int] = None):
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid selector '{selector}'{where}: {reason}")
        self.selector = selector
        self.reason = reason
        self.position = position
