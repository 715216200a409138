# src/auditor/analyzers/widget_pattern.py
import logging
from typing import List, Optional, Set

from semantics.behavior import Action, EventHandlerAction, FocusChangeAction, StateMutationAction
from semantics.document import MergedDocument, ElementKey
from semantics.roles import is_native_activation_control, input_type

from ..core import AnalyzerBase, AnalysisContext, audit_spec
from ..model import Issue, IssueFix
from .patterns import (WidgetPattern, RelationRule, PATTERNS_BY_ROLE, DISCLOSURE, CONTEXT_ROLES,
                       ALL_KINDS, ACTIVATION, describe_group)

logger = logging.getLogger(__name__)


def _is_native_for_role(doc: MergedDocument, key: ElementKey, role: str) -> bool:
    element = doc.element(key)
    if role == "button":
        return element.tag == "button" or (element.tag == "input" and input_type(element) in
                                           ("button", "submit", "reset", "image"))
    if role == "link":
        return element.tag in ("a", "area") and element.has("href")
    return False


def _join(items: List[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


class WidgetPatternAnalyzer(AnalyzerBase):
    """
    Checks every widget instance against its pattern: owned parts, reference
    relations, keyboard support and state attributes. Each missing facet is
    one issue naming all the pieces that facet lacks.
    """
    name = "widget-pattern"
    description = "Widget-pattern completeness (structure, relations, keyboard, state)"

    def analyze(self, doc: MergedDocument, context: AnalysisContext) -> List[Issue]:
        issues: List[Issue] = []
        for key in doc.keys():
            pattern = self.pattern_for(doc, key)
            if pattern is not None:
                issues.extend(self.check_widget(doc, context, key, pattern))
            role = doc.element(key).explicit_role
            if role in CONTEXT_ROLES:
                issues.extend(self.check_context(doc, context, key, role))
        return issues

    @staticmethod
    def pattern_for(doc: MergedDocument, key: ElementKey) -> Optional[WidgetPattern]:
        element = doc.element(key)
        role = element.explicit_role
        if element.has("aria-expanded") and (role is None or role == "button") and doc.role_of(key) == "button":
            return DISCLOSURE
        if role is None or role not in PATTERNS_BY_ROLE:
            return None
        if _is_native_for_role(doc, key, role):
            return None
        return PATTERNS_BY_ROLE[role]

    def check_widget(self, doc: MergedDocument, context: AnalysisContext,
                     key: ElementKey, pattern: WidgetPattern) -> List[Issue]:
        parts = doc.owned_keys(key)
        issues = [
            self.check_structure(doc, context, key, pattern, parts),
            self.check_relations(doc, context, key, pattern, parts),
            self.check_keyboard(doc, context, key, pattern, parts),
            self.check_state(doc, context, key, pattern, parts),
        ]
        return [issue for issue in issues if issue is not None]

    # --- Facets ---

    @audit_spec(codes=[k for k in ALL_KINDS if k.endswith("-structure")])
    def check_structure(self, doc, context, key, pattern: WidgetPattern, parts: List[ElementKey]) -> Optional[Issue]:
        missing = []
        for alternatives in pattern.owned_roles:
            if not any(doc.role_of(k) in alternatives for k in parts):
                missing.append(f'an owned element with role "{" or ".join(alternatives)}"')
        for related in pattern.related_roles:
            if not doc.keys_with_role(related):
                missing.append(f'a related element with role "{related}"')
        if not missing:
            return None
        return self.create_issue(
            context,
            kind=f"incomplete-{pattern.name}-structure",
            message=f"{pattern.name} widget {doc.element(key).describe()} is missing {_join(missing)}",
            wcag_criteria=["1.3.1"],
            location=self.element_location(doc, key),
        )

    @audit_spec(codes=[k for k in ALL_KINDS if k.endswith("-relations")])
    def check_relations(self, doc, context, key, pattern: WidgetPattern, parts: List[ElementKey]) -> Optional[Issue]:
        element = doc.element(key)
        missing = []
        fix = None

        if pattern.name_attributes:
            has_label = bool((element.get("aria-label") or "").strip())
            has_labelledby = bool((element.get("aria-labelledby") or "").split())
            if not (has_label or has_labelledby):
                missing.append(f"an accessible name ({' or '.join(pattern.name_attributes)})")
                fix = IssueFix(description="Label the widget", attribute="aria-labelledby")

        for rule in pattern.relations:
            for holder in self._holders(doc, key, parts, rule):
                problem = self._check_relation(doc, holder, rule)
                if problem:
                    missing.append(problem)
                    if fix is None:
                        fix = IssueFix(description=f"Add {rule.attribute}", attribute=rule.attribute,
                                       selector=_selector_for(doc, holder))

        if not missing:
            return None
        return self.create_issue(
            context,
            kind=f"incomplete-{pattern.name}-relations",
            message=f"{pattern.name} widget {element.describe()} is missing {_join(missing)}",
            wcag_criteria=["1.3.1", "4.1.2"],
            location=self.element_location(doc, key),
            fix=fix,
        )

    @audit_spec(codes=[k for k in ALL_KINDS if k.endswith("-keyboard")])
    def check_keyboard(self, doc, context, key, pattern: WidgetPattern, parts: List[ElementKey]) -> Optional[Issue]:
        element = doc.element(key)
        members = [key] + parts
        keys = self._handled_keys(doc, members)

        groups = list(pattern.key_groups)
        if pattern.modal_key_groups and self._is_modal(doc, key):
            groups.extend(pattern.modal_key_groups)

        missing = [f"{describe_group(g)} key handling" for g in groups if not (g & keys)]
        criteria = ["2.1.1"]
        if any("Tab" in g for g in groups if not (g & keys)):
            criteria.append("2.1.2")
        if pattern.requires_focusable and not doc.is_focusable(key):
            missing.append('keyboard focus (tabindex="0")')
        if pattern.requires_focus_entry and not self._has_focus_entry(doc, key):
            missing.append("a focus change moving focus into the dialog")
            criteria.append("2.4.3")

        if not missing:
            return None
        return self.create_issue(
            context,
            kind=f"incomplete-{pattern.name}-keyboard",
            message=f"{pattern.name} widget {element.describe()} is missing {_join(missing)}",
            wcag_criteria=criteria,
            location=self.element_location(doc, key),
        )

    @audit_spec(codes=[k for k in ALL_KINDS if k.endswith("-state")])
    def check_state(self, doc, context, key, pattern: WidgetPattern, parts: List[ElementKey]) -> Optional[Issue]:
        missing = []
        fix = None
        for rule in pattern.states:
            if rule.holder_role is None:
                holders = [key]
            else:
                # Native parts carry their state implicitly.
                holders = [k for k in parts if doc.element(k).explicit_role == rule.holder_role]
            for holder in holders:
                described = doc.element(holder).describe()
                declared = doc.element(holder).has(rule.attribute)
                written = bool(doc.mutations_for(holder, rule.attribute))
                if not declared and not written:
                    missing.append(f"{rule.attribute} on {described}")
                elif rule.mutable and declared and not written:
                    missing.append(f"runtime updates of {rule.attribute} on {described} (declared but static)")
                else:
                    continue
                if fix is None:
                    fix = IssueFix(description=f"Declare and update {rule.attribute}", attribute=rule.attribute,
                                   value=rule.example_value, selector=_selector_for(doc, holder))
        if not missing:
            return None
        return self.create_issue(
            context,
            kind=f"incomplete-{pattern.name}-state",
            message=f"{pattern.name} widget {doc.element(key).describe()} is missing {_join(missing)}",
            wcag_criteria=["4.1.2"],
            location=self.element_location(doc, key),
            fix=fix,
        )

    @audit_spec(codes=[k for k in ALL_KINDS if k.startswith("misplaced-")])
    def check_context(self, doc: MergedDocument, context: AnalysisContext, key: ElementKey, role: str) -> List[Issue]:
        containers = CONTEXT_ROLES[role]
        if any(doc.role_of(a) in containers for a in doc.ancestor_keys(key)):
            return []
        element_id = doc.element(key).id
        if element_id:
            for other in doc.keys():
                owner = doc.element(other)
                if doc.role_of(other) in containers and element_id in (owner.get("aria-owns") or "").split():
                    return []
        return [self.create_issue(
            context,
            kind=f"misplaced-{role}",
            message=(f'{doc.element(key).describe()} has role "{role}" but is not inside an element '
                     f'with role "{" or ".join(containers)}"'),
            wcag_criteria=["1.3.1"],
            location=self.element_location(doc, key),
        )]

    # --- File scope ---

    def analyze_file_scope(self, actions: List[Action], context: AnalysisContext) -> List[Issue]:
        issues: List[Issue] = []
        seen = set()
        for action in actions:
            if not isinstance(action, StateMutationAction) or action.attribute != "role":
                continue
            role = (action.value or "").strip().lower()
            pattern = PATTERNS_BY_ROLE.get(role)
            if pattern is None or (action.selector, role) in seen:
                continue
            seen.add((action.selector, role))

            keys: Set[str] = set()
            for other in actions:
                if isinstance(other, EventHandlerAction) and other.is_keyboard and other.selector == action.selector:
                    keys |= other.handled_keys()
            missing = [describe_group(g) for g in pattern.key_groups if not (g & keys)]
            if not missing:
                continue
            issues.append(self.create_issue(
                context,
                kind=f"incomplete-{pattern.name}-keyboard",
                message=(f'"{action.selector}" is given role "{role}" at runtime but no handler in this file '
                         f'covers {_join([m + " key handling" for m in missing])}; the handler may live in another file'),
                wcag_criteria=["2.1.1"],
                location=self.action_location(action),
                confidence="LOW",
            ))
        return issues

    # --- Helpers ---

    @staticmethod
    def _holders(doc: MergedDocument, key: ElementKey, parts: List[ElementKey], rule: RelationRule) -> List[ElementKey]:
        if rule.holder_role is None:
            return [key]
        owned = [k for k in parts if doc.role_of(k) == rule.holder_role]
        if owned:
            return owned
        # Related elements: those the widget or its parts point at.
        members = {key, *parts}
        holders = []
        for ref in doc.references:
            if (ref.source_key in members and ref.target_key is not None
                    and doc.role_of(ref.target_key) == rule.holder_role and ref.target_key not in holders):
                holders.append(ref.target_key)
        return holders

    @staticmethod
    def _check_relation(doc: MergedDocument, holder: ElementKey, rule: RelationRule) -> Optional[str]:
        element = doc.element(holder)
        tokens = (element.get(rule.attribute) or "").split()
        described = element.describe()
        if not tokens:
            return f"{rule.attribute} on {described}"
        targets = [t for t in (doc.element_by_id(tok) for tok in tokens) if t is not None]
        if not targets:
            return f"{rule.attribute} on {described} resolving to an existing element"
        if rule.target_roles and not any(doc.role_of(t) in rule.target_roles for t in targets):
            return f'{rule.attribute} on {described} pointing to an element with role "{" or ".join(rule.target_roles)}"'
        return None

    @staticmethod
    def _handled_keys(doc: MergedDocument, members: List[ElementKey]) -> Set[str]:
        keys: Set[str] = set()
        for member in members:
            handlers = [a for a in doc.actions_for(member) if isinstance(a, EventHandlerAction)]
            for handler in handlers:
                if handler.is_keyboard:
                    keys |= handler.handled_keys()
            # The platform fires click from Enter/Space on native buttons.
            if is_native_activation_control(doc.element(member)) and any(h.is_click for h in handlers):
                keys |= ACTIVATION
        return keys

    @staticmethod
    def _is_modal(doc: MergedDocument, key: ElementKey) -> bool:
        element = doc.element(key)
        if (element.get("aria-modal") or "").strip().lower() == "true":
            return True
        return any(m.value == "true" for m in doc.mutations_for(key, "aria-modal"))

    @staticmethod
    def _has_focus_entry(doc: MergedDocument, key: ElementKey) -> bool:
        for member in [key, *doc.descendant_keys(key)]:
            if doc.element(member).has("autofocus"):
                return True
            for action in doc.actions_for(member):
                if isinstance(action, FocusChangeAction) and action.method == "focus":
                    return True
        return False


def _selector_for(doc: MergedDocument, key: ElementKey) -> str:
    element = doc.element(key)
    if element.id:
        return f"#{element.id}"
    if element.explicit_role:
        return f'[role="{element.explicit_role}"]'
    return element.tag
