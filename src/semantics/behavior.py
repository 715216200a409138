# src/semantics/behavior.py
import re
from typing import Dict, Any, List, Optional, Union, Literal, Annotated, Set, Iterator
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core import SourceLocation

# Keyboard key names recognised in handler bodies.
KNOWN_KEYS = (
    "Enter", "Escape", "Tab", "Home", "End", "PageUp", "PageDown",
    "ArrowUp", "ArrowDown", "ArrowLeft", "ArrowRight",
)
SPACE = " "

CLICK_EVENTS = frozenset({"click", "dblclick", "mousedown", "mouseup", "pointerdown", "pointerup"})
KEYBOARD_EVENTS = frozenset({"keydown", "keypress", "keyup"})

_KEY_PATTERN = re.compile(r"\b(" + "|".join(KNOWN_KEYS) + r")\b")
_SPACE_PATTERN = re.compile(r"""(['"]) \1|\bSpace(?:bar)?\b""")
# keyCode literals still common in older handlers
_KEYCODE_PATTERN = re.compile(r"\b(?:keyCode|which)\s*===?\s*(\d+)")
_KEYCODES = {
    "13": "Enter", "27": "Escape", "9": "Tab", "32": SPACE, "36": "Home", "35": "End",
    "33": "PageUp", "34": "PageDown", "37": "ArrowLeft", "38": "ArrowUp",
    "39": "ArrowRight", "40": "ArrowDown",
}


def normalize_key(name: str) -> str:
    """Maps the accepted spellings of a key onto its canonical name."""
    if name in (" ", "Space", "Spacebar"):
        return SPACE
    legacy = {"Esc": "Escape", "Up": "ArrowUp", "Down": "ArrowDown",
              "Left": "ArrowLeft", "Right": "ArrowRight"}
    return legacy.get(name, name)


def scan_keys(source: str) -> Set[str]:
    """Returns every known key referenced in a handler body."""
    if not source:
        return set()
    keys = set(_KEY_PATTERN.findall(source))
    if _SPACE_PATTERN.search(source):
        keys.add(SPACE)
    for code in _KEYCODE_PATTERN.findall(source):
        if code in _KEYCODES:
            keys.add(_KEYCODES[code])
    return keys


class ElementReference(BaseModel):
    """How an Action refers to its target element."""
    model_config = ConfigDict(frozen=True)

    selector: Optional[str] = None
    binding: Optional[str] = None
    id: Optional[str] = None

    @property
    def effective_selector(self) -> str:
        if self.selector and self.selector.strip():
            return self.selector.strip()
        if self.id and self.id.strip():
            return f"#{self.id.strip()}"
        return ""


class ActionBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    element: ElementReference = Field(default_factory=ElementReference)
    timing: Literal["immediate", "delayed", "conditional", "deferred"] = "immediate"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    location: Optional[SourceLocation] = None

    @property
    def selector(self) -> str:
        return self.element.effective_selector


class EventHandlerAction(ActionBase):
    kind: Literal["event-handler"] = "event-handler"
    event: str
    handler_body: Optional[str] = None

    @field_validator('event', mode='before')
    @classmethod
    def normalize_event(cls, v: Any) -> str:
        """'onClick' and 'click' denote the same event."""
        name = str(v).strip().lower()
        return name[2:] if name.startswith("on") and len(name) > 2 else name

    @property
    def is_click(self) -> bool:
        return self.event in CLICK_EVENTS

    @property
    def is_keyboard(self) -> bool:
        return self.event in KEYBOARD_EVENTS

    def handled_keys(self) -> Set[str]:
        keys = {normalize_key(str(k)) for k in self.metadata.get("keys", []) or []}
        keys |= scan_keys(self.handler_body or "")
        keys |= scan_keys(str(self.metadata.get("handler_body", "") or ""))
        return keys


class FocusChangeAction(ActionBase):
    kind: Literal["focus-change"] = "focus-change"
    method: Literal["focus", "blur"] = "focus"


class StateMutationAction(ActionBase):
    kind: Literal["state-mutation"] = "state-mutation"
    attribute: str
    value: Optional[str] = None

    @field_validator('attribute', mode='before')
    @classmethod
    def normalize_attribute(cls, v: Any) -> str:
        return str(v).strip().lower()


class NavigationAction(ActionBase):
    kind: Literal["navigation"] = "navigation"
    target: str = ""


Action = Annotated[
    Union[EventHandlerAction, FocusChangeAction, StateMutationAction, NavigationAction],
    Field(discriminator="kind"),
]


class BehaviorModel(BaseModel):
    """All Actions extracted from one behavior source (a script or component)."""
    model_config = ConfigDict(frozen=True)

    source: str = ""
    actions: List[Action] = Field(default_factory=list)

    def __iter__(self) -> Iterator[Action]:  # type: ignore[override]
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)


class OrphanAction(BaseModel):
    """An Action whose reference resolved to no element."""
    model_config = ConfigDict(frozen=True)

    action: Action
    source: str = ""
    reason: str


def iter_actions(behaviors: List[Union[BehaviorModel, List[Any]]]) -> Iterator[tuple]:
    """Yields (source, action) for BehaviorModels and bare action lists."""
    for index, item in enumerate(behaviors or []):
        if isinstance(item, BehaviorModel):
            for action in item.actions:
                yield item.source or f"behavior-{index}", action
        else:
            for action in item:
                yield f"behavior-{index}", action
