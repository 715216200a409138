# src/semantics/document.py
import logging
import re
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple, Iterator, Literal, FrozenSet, Mapping
from pydantic import BaseModel, ConfigDict, Field

from .core import Element, SourceLocation
from .behavior import Action, EventHandlerAction, StateMutationAction, OrphanAction
from .style import StyleMatch, OrphanRule, cascade
from .structure import StructuralFragment
from .roles import effective_role, is_natively_focusable, parse_tabindex, parse_int, WIDGET_ROLES

logger = logging.getLogger(__name__)

# (fragment index, document order)
ElementKey = Tuple[int, int]

AnalysisScope = Literal["file", "workspace", "page"]

REFERENCE_ATTRIBUTES = (
    "aria-labelledby", "aria-describedby", "aria-controls", "aria-owns", "aria-activedescendant",
)

_CLIP_RECT_ZERO = re.compile(r"^rect\(\s*0(?:px)?[\s,)]")
_CLIP_PATH_HIDDEN = re.compile(r"^(?:inset\(\s*50%|circle\(\s*0(?:px|%)?\s*[)\s])")
_ZERO_LENGTH = re.compile(r"^0(?:\.0+)?(?:px|em|rem|%)?$")
_OFFSET_PX = re.compile(r"^(-?\d+(?:\.\d+)?)(?:px)?$")

# Offsets at least this far past the top or left edge put an element off-screen.
OFFSCREEN_OFFSET_PX = 1000


class ReferenceResolution(BaseModel):
    """One id token of a reference attribute, resolved across all fragments."""
    model_config = ConfigDict(frozen=True)

    source_key: ElementKey
    attribute: str
    target_id: str
    target_key: Optional[ElementKey] = None
    cross_fragment: bool = False

    @property
    def resolved(self) -> bool:
        return self.target_key is not None


class MergeDiagnostic(BaseModel):
    """A recovered merge problem, e.g. a skipped malformed fragment."""
    model_config = ConfigDict(frozen=True)

    kind: str = "malformed-fragment"
    source: str
    reason: str
    confidence: Literal["HIGH", "MEDIUM", "LOW"] = "LOW"


class Annotation(BaseModel):
    """What the resolution engine attached to one element."""
    model_config = ConfigDict(frozen=True)

    actions: List[Action] = Field(default_factory=list)
    style_matches: List[StyleMatch] = Field(default_factory=list)


class ElementContext(BaseModel):
    """Read-only projection of one element merged with its behavior and style."""
    model_config = ConfigDict(frozen=True)

    key: ElementKey
    element: Element
    source: str
    actions: List[Action] = Field(default_factory=list)
    style_matches: List[StyleMatch] = Field(default_factory=list)
    computed_style: Dict[str, str] = Field(default_factory=dict)
    is_focusable: bool = False
    is_interactive: bool = False
    has_click_handler: bool = False
    has_keyboard_handler: bool = False
    role: Optional[str] = None
    accessible_name: str = ""
    is_hidden: bool = False
    hidden_reason: Optional[str] = None

    @property
    def event_handlers(self) -> List[EventHandlerAction]:
        return [a for a in self.actions if isinstance(a, EventHandlerAction)]


class MergedDocument:
    """
    The merged, read-only view of a fragment set.

    All per-element facts live in the annotation table keyed by ElementKey.
    ElementContexts are derived on demand and never cached.
    """

    def __init__(self,
                 fragments: List[StructuralFragment],
                 annotations: Dict[ElementKey, Annotation],
                 actions: List[Tuple[str, Action]],
                 orphan_actions: List[OrphanAction],
                 orphan_rules: List[OrphanRule],
                 references: List[ReferenceResolution],
                 duplicate_ids: Dict[str, List[ElementKey]],
                 diagnostics: List[MergeDiagnostic],
                 completeness: float,
                 scope: AnalysisScope = "workspace",
                 opacity_threshold: float = 0.05):
        self.fragments = list(fragments)
        self.annotations: Mapping[ElementKey, Annotation] = MappingProxyType(dict(annotations))
        self.actions = list(actions)
        self.orphan_actions = list(orphan_actions)
        self.orphan_rules = list(orphan_rules)
        self.references = list(references)
        self.duplicate_ids = dict(duplicate_ids)
        self.diagnostics = list(diagnostics)
        self.completeness = completeness
        self.scope = scope
        self.opacity_threshold = opacity_threshold

        self._ids: Dict[str, ElementKey] = {}
        for key in self.keys():
            element_id = self.element(key).id
            if element_id and element_id not in self._ids:
                self._ids[element_id] = key

    # --- Structure ---

    @property
    def has_structure(self) -> bool:
        return bool(self.fragments)

    @property
    def skipped_fragments(self) -> int:
        return sum(1 for d in self.diagnostics if d.kind == "malformed-fragment")

    def keys(self) -> Iterator[ElementKey]:
        """All element keys in global document order."""
        for f_index, fragment in enumerate(self.fragments):
            for order in range(len(fragment)):
                yield (f_index, order)

    def element(self, key: ElementKey) -> Element:
        return self.fragments[key[0]].element_at(key[1])

    def source_of(self, key: ElementKey) -> str:
        return self.fragments[key[0]].source

    def location_of(self, key: ElementKey) -> SourceLocation:
        element = self.element(key)
        if element.location is not None:
            if element.location.file:
                return element.location
            return element.location.model_copy(update={"file": self.source_of(key)})
        return SourceLocation(file=self.source_of(key))

    def parent_key(self, key: ElementKey) -> Optional[ElementKey]:
        parent = self.fragments[key[0]].parent_order(key[1])
        return None if parent is None else (key[0], parent)

    def ancestor_keys(self, key: ElementKey) -> Iterator[ElementKey]:
        for order in self.fragments[key[0]].ancestor_orders(key[1]):
            yield (key[0], order)

    def descendant_keys(self, key: ElementKey) -> Iterator[ElementKey]:
        for order in self.fragments[key[0]].descendant_orders(key[1]):
            yield (key[0], order)

    def element_by_id(self, element_id: str) -> Optional[ElementKey]:
        """First element with this id, in document order across fragments."""
        return self._ids.get(element_id)

    def all_ids(self) -> List[str]:
        return sorted(self._ids)

    def role_of(self, key: ElementKey) -> Optional[str]:
        return effective_role(self.element(key))

    def keys_with_role(self, role: str) -> List[ElementKey]:
        return [k for k in self.keys() if self.role_of(k) == role]

    def owned_keys(self, key: ElementKey) -> List[ElementKey]:
        """Descendants plus aria-owns targets (and their descendants)."""
        owned = list(self.descendant_keys(key))
        for token in (self.element(key).get("aria-owns") or "").split():
            target = self.element_by_id(token)
            if target is not None and target not in owned:
                owned.append(target)
                owned.extend(k for k in self.descendant_keys(target) if k not in owned)
        return owned

    # --- Annotations ---

    def actions_for(self, key: ElementKey) -> List[Action]:
        annotation = self.annotations.get(key)
        return list(annotation.actions) if annotation else []

    def style_matches_for(self, key: ElementKey) -> List[StyleMatch]:
        annotation = self.annotations.get(key)
        return list(annotation.style_matches) if annotation else []

    def mutations_for(self, key: ElementKey, attribute: Optional[str] = None) -> List[StateMutationAction]:
        return [a for a in self.actions_for(key)
                if isinstance(a, StateMutationAction) and (attribute is None or a.attribute == attribute)]

    def action_source(self, action: Action) -> str:
        """The behavior source an action was read from, or "" if unknown."""
        for source, candidate in self.actions:
            if candidate == action:
                return source
        return ""

    def references_from(self, key: ElementKey, attribute: Optional[str] = None) -> List[ReferenceResolution]:
        return [r for r in self.references
                if r.source_key == key and (attribute is None or r.attribute == attribute)]

    def computed_style(self, key: ElementKey, states: FrozenSet[str] = frozenset()) -> Dict[str, str]:
        return cascade(self.style_matches_for(key), states)

    # --- Derived facts ---

    def is_focusable(self, key: ElementKey) -> bool:
        element = self.element(key)
        for mutation in self.mutations_for(key, "tabindex"):
            value = parse_int(mutation.value)
            if value is not None and value >= 0:
                return True
        tabindex = parse_tabindex(element)
        if tabindex is not None:
            return tabindex >= 0
        return is_natively_focusable(element)

    def is_aria_hidden(self, key: ElementKey) -> bool:
        for k in [key, *self.ancestor_keys(key)]:
            if (self.element(k).get("aria-hidden") or "").strip().lower() == "true":
                return True
        return False

    def hidden_reason(self, key: ElementKey, states: FrozenSet[str] = frozenset()) -> Optional[str]:
        """Why resolved style hides the element in `states`, or None."""
        chain = [key, *self.ancestor_keys(key)]
        visibility_decided = False
        for k in chain:
            style = self.computed_style(k, states)
            where = "" if k == key else f" on ancestor {self.element(k).describe()}"
            if style.get("display", "").lower() == "none":
                return f"display:none{where}"
            opacity = _parse_opacity(style.get("opacity"))
            if opacity is not None and opacity <= self.opacity_threshold:
                return f"opacity:{style['opacity']}{where}"
            offscreen = _offscreen_offset(style)
            if offscreen:
                return f"position:{style['position']} with {offscreen}{where}"
            if not visibility_decided and "visibility" in style:
                visibility_decided = True
                value = style["visibility"].lower()
                if value in ("hidden", "collapse"):
                    return f"visibility:{value}{where}"

        own = self.computed_style(key, states)
        clip = own.get("clip", "").lower()
        if _CLIP_RECT_ZERO.match(clip):
            return f"clip:{own['clip']}"
        clip_path = own.get("clip-path", "").lower()
        if _CLIP_PATH_HIDDEN.match(clip_path):
            return f"clip-path:{own['clip-path']}"
        if own.get("overflow", "").lower() == "hidden":
            for dimension in ("width", "height"):
                if _ZERO_LENGTH.match(own.get(dimension, "").strip().lower()):
                    return f"{dimension}:{own[dimension]} with overflow:hidden"
        return None

    def accessible_name(self, key: ElementKey) -> str:
        element = self.element(key)
        labelledby = (element.get("aria-labelledby") or "").split()
        if labelledby:
            parts = []
            for token in labelledby:
                target = self.element_by_id(token)
                if target is None:
                    continue
                label = self.element(target)
                text = (label.get("aria-label") or "").strip() or label.text_content
                if text:
                    parts.append(text)
            if parts:
                return " ".join(parts)

        for source in (element.get("aria-label"), element.text_content, element.get("alt"),
                       element.get("value"), element.get("placeholder"), element.get("title")):
            if source and source.strip():
                return source.strip()
        return ""

    def element_context(self, key: ElementKey) -> ElementContext:
        """Recomputed on every call."""
        element = self.element(key)
        actions = self.actions_for(key)
        handlers = [a for a in actions if isinstance(a, EventHandlerAction)]
        focusable = self.is_focusable(key)
        role = self.role_of(key)
        hidden_reason = self.hidden_reason(key)
        return ElementContext(
            key=key,
            element=element,
            source=self.source_of(key),
            actions=actions,
            style_matches=self.style_matches_for(key),
            computed_style=self.computed_style(key),
            is_focusable=focusable,
            is_interactive=bool(handlers) or focusable or role in WIDGET_ROLES,
            has_click_handler=any(h.is_click for h in handlers),
            has_keyboard_handler=any(h.is_keyboard for h in handlers),
            role=role,
            accessible_name=self.accessible_name(key),
            is_hidden=hidden_reason is not None,
            hidden_reason=hidden_reason,
        )

    def contexts(self) -> Iterator[ElementContext]:
        for key in self.keys():
            yield self.element_context(key)


def _parse_opacity(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    text = value.strip()
    try:
        if text.endswith("%"):
            return float(text[:-1]) / 100.0
        return float(text)
    except ValueError:
        return None


def _offscreen_offset(style: Mapping[str, str]) -> Optional[str]:
    """The 'left:-9999px' style declaration that moves a positioned element off-screen, if any."""
    if style.get("position", "").strip().lower() not in ("absolute", "fixed"):
        return None
    for side in ("left", "top"):
        match = _OFFSET_PX.match(style.get(side, "").strip().lower())
        if match and float(match.group(1)) <= -OFFSCREEN_OFFSET_PX:
            return f"{side}:{style[side].strip()}"
    return None
