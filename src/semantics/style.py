# src/semantics/style.py
import re
from typing import Dict, Any, List, Optional, Tuple, FrozenSet, Iterator, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .core import SourceLocation
from .selectors import Specificity, compute_specificity, INLINE_SPECIFICITY

STATE_PSEUDO_CLASSES = ("focus-visible", "focus-within", "focus", "hover", "active", "disabled", "checked")
FOCUS_STATES = frozenset({"focus", "focus-visible", "focus-within"})

FOCUS_PROPERTIES = frozenset({"outline", "outline-style", "outline-width", "outline-color",
                              "outline-offset", "box-shadow"})
VISIBILITY_PROPERTIES = frozenset({"display", "visibility", "opacity", "clip", "clip-path",
                                   "content-visibility", "width", "height", "overflow"})
CONTRAST_PROPERTIES = frozenset({"color", "background", "background-color", "opacity", "filter",
                                 "mix-blend-mode"})
INTERACTION_PROPERTIES = frozenset({"pointer-events", "cursor", "user-select", "touch-action"})

_STATE_PATTERN = re.compile(r"(?<!:):(" + "|".join(STATE_PSEUDO_CLASSES) + r")(?![\w-])")
_IMPORTANT = re.compile(r"\s*!\s*important\s*$", re.IGNORECASE)


def parse_declarations(text: str) -> Tuple[Dict[str, str], List[str]]:
    """
    Parses 'a: b; c: d !important' into a property map and the list of
    important property names. Later declarations of a property win, unless
    only the earlier one is !important.
    """
    properties: Dict[str, str] = {}
    important: List[str] = []
    for declaration in (text or "").split(";"):
        if ":" not in declaration:
            continue
        name, value = declaration.split(":", 1)
        name = name.strip().lower()
        if not name:
            continue
        value, flagged = _strip_important(value)
        if name in important and not flagged:
            continue
        properties[name] = value
        if flagged and name not in important:
            important.append(name)
    return properties, important


def _strip_important(value: Any) -> Tuple[str, bool]:
    text = str(value).strip()
    if _IMPORTANT.search(text):
        return _IMPORTANT.sub("", text).strip(), True
    return text, False


class StyleRule(BaseModel):
    """
    One CSS-like rule. Flags and specificity are derived once, when the rule
    is built, from the selector and the declared properties. A specificity
    vector supplied by the caller is kept and takes part in the cascade as is.
    """
    model_config = ConfigDict(frozen=True)

    selector: str
    properties: Dict[str, str] = Field(default_factory=dict)
    specificity: Specificity = (0, 0, 0, 0)
    # True when the vector came from the caller (an external CSS parser).
    declared_specificity: bool = False
    important: FrozenSet[str] = frozenset()
    affects_focus: bool = False
    affects_visibility: bool = False
    affects_contrast: bool = False
    affects_interaction: bool = False
    pseudo_class: Optional[str] = None
    media_query: Optional[str] = None
    location: Optional[SourceLocation] = None

    @model_validator(mode='before')
    @classmethod
    def derive_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        selector = str(data.get("selector", "")).strip()
        data["selector"] = selector

        properties: Dict[str, str] = {}
        important = set(data.get("important") or ())
        for name, value in (data.get("properties") or {}).items():
            key = str(name).strip().lower()
            value, flagged = _strip_important(value)
            properties[key] = value
            if flagged:
                important.add(key)
        data["properties"] = properties
        data["important"] = frozenset(important)

        declared = data.get("specificity") is not None
        data.setdefault("declared_specificity", declared)
        if not declared:
            data["specificity"] = compute_specificity(selector)

        state = _STATE_PATTERN.search(selector)
        pseudo_class = state.group(1) if state else None
        data["pseudo_class"] = pseudo_class

        names = set(properties)
        data["affects_focus"] = bool(names & FOCUS_PROPERTIES) or pseudo_class in FOCUS_STATES
        data["affects_visibility"] = bool(names & VISIBILITY_PROPERTIES)
        data["affects_contrast"] = bool(names & CONTRAST_PROPERTIES)
        data["affects_interaction"] = bool(names & INTERACTION_PROPERTIES)
        return data

    @classmethod
    def from_text(cls, selector: str, declarations: str, **kwargs) -> "StyleRule":
        properties, important = parse_declarations(declarations)
        return cls(selector=selector, properties=properties, important=frozenset(important), **kwargs)

    @classmethod
    def inline(cls, declarations: str, location: Optional[SourceLocation] = None) -> "StyleRule":
        """A synthetic rule for a style="..." attribute."""
        properties, important = parse_declarations(declarations)
        return cls(selector="[style]", properties=properties, important=frozenset(important),
                   specificity=INLINE_SPECIFICITY, location=location)


class StyleModel(BaseModel):
    """All StyleRules extracted from one stylesheet or style block."""
    model_config = ConfigDict(frozen=True)

    source: str = ""
    rules: List[StyleRule] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rules)


class StyleMatch(BaseModel):
    """
    A rule attached to one element. Specificity is the rule's own vector, or
    the matching branch's for a derived selector list.
    """
    model_config = ConfigDict(frozen=True)

    rule: StyleRule
    specificity: Specificity
    order: int
    states: FrozenSet[str] = frozenset()
    pseudo_element: Optional[str] = None
    inline: bool = False

    def applies(self, states: FrozenSet[str] = frozenset()) -> bool:
        """Whether the rule styles the element itself in the given runtime state."""
        return (self.pseudo_element is None
                and self.rule.media_query is None
                and self.states <= states)

    def cascade_key(self, prop: str) -> Tuple[bool, Specificity, int]:
        return (prop in self.rule.important, self.specificity, self.order)


class OrphanRule(BaseModel):
    """A StyleRule that matched no element in any fragment."""
    model_config = ConfigDict(frozen=True)

    rule: StyleRule
    source: str = ""
    reason: str


def cascade(matches: List[StyleMatch], states: FrozenSet[str] = frozenset()) -> Dict[str, str]:
    """Winning value per property among the matches that apply in `states`."""
    winners: Dict[str, Tuple[Tuple[bool, Specificity, int], str]] = {}
    for match in matches:
        if not match.applies(states):
            continue
        for prop, value in match.rule.properties.items():
            key = match.cascade_key(prop)
            current = winners.get(prop)
            if current is None or key > current[0]:
                winners[prop] = (key, value)
    return {prop: value for prop, (_, value) in sorted(winners.items())}


def iter_rules(styles: List[Union[StyleModel, List[StyleRule]]]) -> Iterator[Tuple[str, StyleRule]]:
    """Yields (source, rule) for StyleModels and bare rule lists, in declaration order."""
    for index, item in enumerate(styles or []):
        if isinstance(item, StyleModel):
            for rule in item.rules:
                yield item.source or f"style-{index}", rule
        else:
            for rule in item:
                yield f"style-{index}", rule
