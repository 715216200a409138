# src/semantics/core.py
from typing import Dict, Any, List, Optional, Union, Iterator, Literal, Annotated
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceLocation(BaseModel):
    """Position of a model node in its originating source file."""
    model_config = ConfigDict(frozen=True)

    file: str = ""
    line: int = 0
    column: int = 0
    end_line: Optional[int] = None
    end_column: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


class TextNode(BaseModel):
    """A run of character data inside an element."""
    model_config = ConfigDict(frozen=True)

    node_type: Literal["text"] = "text"
    text: str = ""
    location: Optional[SourceLocation] = None


class CommentNode(BaseModel):
    """A markup comment. Kept for fidelity, ignored by analysis."""
    model_config = ConfigDict(frozen=True)

    node_type: Literal["comment"] = "comment"
    text: str = ""
    location: Optional[SourceLocation] = None


class Element(BaseModel):
    """
    Structural Model unit: one element of a markup-equivalent tree.

    Elements are immutable once parsed. Everything the resolution engine
    learns about an element (attached actions, matched style rules) lives in
    the annotation table of the MergedDocument, and parent links are index
    lookups on the owning StructuralFragment.
    """
    model_config = ConfigDict(frozen=True)

    node_type: Literal["element"] = "element"
    tag: str
    attributes: Dict[str, str] = Field(default_factory=dict)
    children: List["Node"] = Field(default_factory=list)
    location: Optional[SourceLocation] = None
    uid: Optional[str] = None

    @field_validator('tag', mode='before')
    @classmethod
    def normalize_tag(cls, v: Any) -> str:
        """Tag names compare case-insensitively."""
        return str(v).strip().lower()

    @field_validator('attributes', mode='before')
    @classmethod
    def normalize_attributes(cls, v: Any) -> Dict[str, str]:
        """
        Accepts a mapping or a sequence of (name, value) pairs.
        Names are lower-cased; list values (as produced by some HTML parsers
        for 'class') are joined with spaces. Duplicate names are rejected.
        """
        if v is None:
            return {}
        pairs = v.items() if isinstance(v, dict) else v
        result: Dict[str, str] = {}
        for name, value in pairs:
            key = str(name).strip().lower()
            if key in result:
                raise ValueError(f"duplicate attribute '{key}'")
            if isinstance(value, (list, tuple)):
                value = " ".join(str(item) for item in value)
            result[key] = "" if value is None else str(value)
        return result

    # --- Attribute helpers ---

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.attributes

    @property
    def id(self) -> Optional[str]:
        value = self.attributes.get('id', '').strip()
        return value or None

    @property
    def classes(self) -> List[str]:
        return [c for c in self.attributes.get('class', '').split() if c]

    @property
    def explicit_role(self) -> Optional[str]:
        """First token of the role attribute (fallback roles are ignored)."""
        tokens = self.attributes.get('role', '').split()
        return tokens[0].lower() if tokens else None

    @property
    def aria_attributes(self) -> Dict[str, str]:
        return {k: v for k, v in self.attributes.items() if k.startswith('aria-')}

    # --- Children helpers ---

    @property
    def element_children(self) -> List["Element"]:
        return [c for c in self.children if isinstance(c, Element)]

    def iter_text(self) -> Iterator[str]:
        """Yields the text of all descendant text nodes in document order."""
        for child in self.children:
            if isinstance(child, TextNode):
                yield child.text
            elif isinstance(child, Element):
                yield from child.iter_text()

    @property
    def text_content(self) -> str:
        return " ".join(t.strip() for t in self.iter_text() if t.strip())

    def describe(self) -> str:
        """Short human-readable descriptor used in issue messages."""
        if self.id:
            return f'<{self.tag}> element with id="{self.id}"'
        if self.classes:
            return f'<{self.tag} class="{" ".join(self.classes)}"> element'
        return f"<{self.tag}> element"


Node = Annotated[Union[Element, TextNode, CommentNode], Field(discriminator="node_type")]

Element.model_rebuild()
