# src/semantics/builder.py
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag, NavigableString, Comment, Doctype, CData, ProcessingInstruction, Declaration

from .core import Element, TextNode, CommentNode, SourceLocation
from .structure import StructuralFragment

logger = logging.getLogger(__name__)

SKIPPED_TAGS = frozenset({"script", "style"})
SYNTHETIC_ROOT = "fragment"


class FragmentBuilder:
    """
    Builder turning an HTML/template string into a Structural Model fragment.

    This is a thin reference adapter for fixtures and examples: it keeps
    elements, attributes, text and comments with their source positions, and
    ignores script and style content. Markup with several top-level elements
    is wrapped in a synthetic <fragment> root.
    """

    def __init__(self, parser: str = "html.parser"):
        self.parser = parser

    def build(self, markup: str, source: str = "") -> StructuralFragment:
        """
        Parses markup into an indexed StructuralFragment.

        Args:
            markup (str): The raw HTML or template string.
            source (str): Source identifier (usually a file path) used in locations.

        Returns:
            StructuralFragment: The indexed fragment.
        """
        return StructuralFragment(self.build_root(markup, source), source or "<markup>")

    def build_root(self, markup: str, source: str = "") -> Element:
        """Parses markup and returns only the root Element."""
        clean = (markup or "").replace('\ufeff', '').strip()
        # Duplicate attributes keep their first occurrence, like browsers do.
        soup = BeautifulSoup(clean, self.parser, on_duplicate_attribute='ignore')

        top_level = [c for c in soup.contents if isinstance(c, Tag) and c.name not in SKIPPED_TAGS]
        if len(top_level) == 1:
            return self._build_tree(top_level[0], source)

        logger.debug(f"Wrapping {len(top_level)} top-level elements of '{source}' in a synthetic root")
        children = self._build_children(soup, source)
        return Element(tag=SYNTHETIC_ROOT, children=children, location=SourceLocation(file=source, line=1, column=1))

    def _build_tree(self, tag: Tag, source: str) -> Element:
        """Recursively builds an Element from a BeautifulSoup Tag."""
        return Element(
            tag=tag.name,
            attributes=dict(tag.attrs),
            children=self._build_children(tag, source),
            location=self._location(tag, source),
        )

    def _build_children(self, tag: Tag, source: str) -> List:
        children = []
        for child in tag.children:
            if isinstance(child, Tag):
                if child.name in SKIPPED_TAGS:
                    continue
                children.append(self._build_tree(child, source))
            elif isinstance(child, Comment):
                children.append(CommentNode(text=str(child)))
            elif isinstance(child, (Doctype, CData, ProcessingInstruction, Declaration)):
                continue
            elif isinstance(child, NavigableString) and str(child).strip():
                children.append(TextNode(text=str(child)))
        return children

    @staticmethod
    def _location(tag: Tag, source: str) -> Optional[SourceLocation]:
        line = getattr(tag, "sourceline", None)
        if line is None:
            return SourceLocation(file=source) if source else None
        column = (getattr(tag, "sourcepos", None) or 0) + 1
        return SourceLocation(file=source, line=line, column=column)
