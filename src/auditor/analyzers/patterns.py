# src/auditor/analyzers/patterns.py
"""
Declarative table of the widget patterns the completeness validator knows.

Each WidgetPattern lists what a complete implementation needs, split into
the four facets the validator checks: structure, relations, keyboard and
state.
"""
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

ARROWS_HORIZONTAL = (frozenset({"ArrowRight"}), frozenset({"ArrowLeft"}))
ACTIVATION = frozenset({"Enter", " "})


class RelationRule:
    """
    A reference attribute a widget (holder_role None) or one of its parts
    must carry, resolving to an element with one of `target_roles`
    (any role when empty).
    """

    def __init__(self, holder_role: Optional[str], attribute: str, target_roles: Sequence[str] = ()):
        self.holder_role = holder_role
        self.attribute = attribute
        self.target_roles = tuple(target_roles)


class StateRule:
    """
    A state attribute on the widget (holder_role None) or its parts.

    mutable=True: must be declared or written at runtime; declared but never
    written is reported as static. mutable=False: only needs to be present.
    """

    def __init__(self, holder_role: Optional[str], attribute: str, mutable: bool = True,
                 example_value: str = "false"):
        self.holder_role = holder_role
        self.attribute = attribute
        self.mutable = mutable
        self.example_value = example_value


class WidgetPattern:
    """
    Configuration object describing one widget pattern.
    """

    def __init__(
            self,
            name: str,
            roles: Sequence[str],
            owned_roles: Sequence[Tuple[str, ...]] = (),
            related_roles: Sequence[str] = (),
            relations: Sequence[RelationRule] = (),
            name_attributes: Sequence[str] = (),
            key_groups: Sequence[FrozenSet[str]] = (),
            modal_key_groups: Sequence[FrozenSet[str]] = (),
            states: Sequence[StateRule] = (),
            requires_focus_entry: bool = False,
            requires_focusable: bool = False,
    ):
        self.name = name
        self.roles = tuple(roles)
        self.owned_roles = [tuple(alternatives) for alternatives in owned_roles]
        self.related_roles = tuple(related_roles)
        self.relations = list(relations)
        self.name_attributes = tuple(name_attributes)
        self.key_groups = list(key_groups)
        self.modal_key_groups = list(modal_key_groups)
        self.states = list(states)
        self.requires_focus_entry = requires_focus_entry
        self.requires_focusable = requires_focusable

    def kinds(self) -> List[str]:
        return [f"incomplete-{self.name}-{facet}" for facet in FACETS]


FACETS = ("structure", "relations", "keyboard", "state")

PATTERNS: List[WidgetPattern] = [
    WidgetPattern(
        "tablist", roles=("tablist",),
        owned_roles=[("tab",)],
        related_roles=("tabpanel",),
        relations=[RelationRule("tab", "aria-controls", ("tabpanel",)),
                   RelationRule("tabpanel", "aria-labelledby", ("tab",))],
        key_groups=[frozenset({"ArrowRight", "ArrowDown"}), frozenset({"ArrowLeft", "ArrowUp"})],
        states=[StateRule("tab", "aria-selected", example_value="true")],
    ),
    WidgetPattern(
        "dialog", roles=("dialog", "alertdialog"),
        name_attributes=("aria-labelledby", "aria-label"),
        key_groups=[frozenset({"Escape"})],
        modal_key_groups=[frozenset({"Tab"})],
        states=[StateRule(None, "aria-modal", mutable=False, example_value="true")],
        requires_focus_entry=True,
    ),
    WidgetPattern(
        "combobox", roles=("combobox",),
        relations=[RelationRule(None, "aria-controls", ("listbox", "tree", "grid", "dialog"))],
        key_groups=[frozenset({"ArrowDown", "ArrowUp"}), frozenset({"Escape"})],
        states=[StateRule(None, "aria-expanded")],
        requires_focusable=True,
    ),
    WidgetPattern(
        "listbox", roles=("listbox",),
        owned_roles=[("option",)],
        key_groups=[frozenset({"ArrowDown", "ArrowRight"}), frozenset({"ArrowUp", "ArrowLeft"})],
        states=[StateRule("option", "aria-selected")],
    ),
    WidgetPattern(
        "menu", roles=("menu",),
        owned_roles=[("menuitem", "menuitemcheckbox", "menuitemradio")],
        key_groups=[frozenset({"ArrowDown"}), frozenset({"ArrowUp"}), frozenset({"Escape"})],
    ),
    WidgetPattern(
        "menubar", roles=("menubar",),
        owned_roles=[("menuitem", "menuitemcheckbox", "menuitemradio")],
        key_groups=list(ARROWS_HORIZONTAL),
    ),
    WidgetPattern(
        "tree", roles=("tree",),
        owned_roles=[("treeitem",)],
        key_groups=[frozenset({"ArrowDown"}), frozenset({"ArrowUp"}),
                    frozenset({"ArrowRight"}), frozenset({"ArrowLeft"})],
    ),
    WidgetPattern(
        "radiogroup", roles=("radiogroup",),
        owned_roles=[("radio",)],
        key_groups=[frozenset({"ArrowDown", "ArrowRight"}), frozenset({"ArrowUp", "ArrowLeft"})],
        states=[StateRule("radio", "aria-checked")],
    ),
    WidgetPattern(
        "grid", roles=("grid", "treegrid"),
        owned_roles=[("row",)],
        key_groups=[frozenset({"ArrowRight"}), frozenset({"ArrowLeft"}),
                    frozenset({"ArrowDown"}), frozenset({"ArrowUp"})],
    ),
    WidgetPattern(
        "toolbar", roles=("toolbar",),
        key_groups=[frozenset({"ArrowRight", "ArrowDown"}), frozenset({"ArrowLeft", "ArrowUp"})],
    ),
    WidgetPattern(
        "slider", roles=("slider",),
        key_groups=[frozenset({"ArrowRight", "ArrowUp"}), frozenset({"ArrowLeft", "ArrowDown"})],
        states=[StateRule(None, "aria-valuenow", example_value="0"),
                StateRule(None, "aria-valuemin", mutable=False, example_value="0"),
                StateRule(None, "aria-valuemax", mutable=False, example_value="100")],
        requires_focusable=True,
    ),
    WidgetPattern(
        "spinbutton", roles=("spinbutton",),
        key_groups=[frozenset({"ArrowUp"}), frozenset({"ArrowDown"})],
        states=[StateRule(None, "aria-valuenow", example_value="0")],
        requires_focusable=True,
    ),
    WidgetPattern(
        "switch", roles=("switch",),
        key_groups=[ACTIVATION],
        states=[StateRule(None, "aria-checked")],
        requires_focusable=True,
    ),
    WidgetPattern(
        "checkbox", roles=("checkbox",),
        key_groups=[frozenset({" "})],
        states=[StateRule(None, "aria-checked")],
        requires_focusable=True,
    ),
    WidgetPattern(
        "button", roles=("button",),
        key_groups=[ACTIVATION],
        requires_focusable=True,
    ),
    WidgetPattern(
        "link", roles=("link",),
        key_groups=[frozenset({"Enter"})],
        requires_focusable=True,
    ),
    WidgetPattern(
        "disclosure", roles=(),
        relations=[RelationRule(None, "aria-controls")],
        key_groups=[ACTIVATION],
        states=[StateRule(None, "aria-expanded")],
    ),
]

PATTERNS_BY_ROLE: Dict[str, WidgetPattern] = {
    role: pattern for pattern in PATTERNS for role in pattern.roles
}
DISCLOSURE = next(p for p in PATTERNS if p.name == "disclosure")

# Roles that are only meaningful inside one of their container roles.
CONTEXT_ROLES: Dict[str, Tuple[str, ...]] = {
    "tab": ("tablist",),
    "option": ("listbox", "combobox", "group"),
    "menuitem": ("menu", "menubar", "group"),
    "menuitemcheckbox": ("menu", "menubar", "group"),
    "menuitemradio": ("menu", "menubar", "group"),
    "treeitem": ("tree", "group"),
    "radio": ("radiogroup",),
    "row": ("grid", "treegrid", "table", "rowgroup"),
    "gridcell": ("row",),
}

ALL_KINDS: List[str] = sorted(
    [kind for pattern in PATTERNS for kind in pattern.kinds()]
    + [f"misplaced-{role}" for role in CONTEXT_ROLES]
)


def key_name(key: str) -> str:
    return "Space" if key == " " else key


def describe_group(group: FrozenSet[str]) -> str:
    return "/".join(key_name(k) for k in sorted(group, key=lambda k: (k == " ", k)))
