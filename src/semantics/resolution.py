# src/semantics/resolution.py
import logging
from typing import Dict, List, Optional, Tuple, Union, Sequence

from paradise.model import AnalysisConfig

from .core import Element
from .behavior import BehaviorModel, Action, OrphanAction, iter_actions
from .style import StyleModel, StyleRule, StyleMatch, OrphanRule, iter_rules
from .structure import StructuralFragment, as_fragment
from .selectors import (SelectorList, parse_selector, candidate_selectors,
                        INLINE_SPECIFICITY)
from .document import (MergedDocument, ElementKey, Annotation, ReferenceResolution,
                       MergeDiagnostic, AnalysisScope, REFERENCE_ATTRIBUTES)
from .errors import MalformedFragmentError, SelectorSyntaxError

logger = logging.getLogger(__name__)

FragmentInput = Union[Element, StructuralFragment]
BehaviorInput = Union[BehaviorModel, List[Action]]
StyleInput = Union[StyleModel, List[StyleRule]]


def completeness_score(fragment_count: int, cross_reference_resolved: bool,
                       config: Optional[AnalysisConfig] = None) -> float:
    """
    Confidence that the fragment set is the whole picture. Falls with every
    extra fragment down to a floor, and gains a bonus once any reference
    between two fragments resolves.
    """
    if fragment_count <= 0:
        return 0.0
    config = config or AnalysisConfig()
    base = max(config.completeness_floor, 1.0 - config.completeness_step * fragment_count)
    if cross_reference_resolved:
        return round(min(1.0, base + config.completeness_bonus), 10)
    return round(base, 10)


class ResolutionEngine:
    """
    Merges structural fragments, behavior collections and style collections
    into one MergedDocument.

    Selectors are looked up in a candidate index first and fall back to a
    full match over every element of every fragment. Nothing that fails to
    resolve is an error: it is recorded as an orphan or an unresolved
    reference on the document.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    def merge(self,
              fragments: Sequence[FragmentInput],
              behaviors: Optional[Sequence[BehaviorInput]] = None,
              styles: Optional[Sequence[StyleInput]] = None,
              scope: AnalysisScope = "workspace") -> MergedDocument:
        usable, diagnostics = self._index_fragments(fragments)
        keys = [(f, o) for f, fragment in enumerate(usable) for o in range(len(fragment))]
        candidates = self._build_candidate_index(usable, keys)

        slots: Dict[ElementKey, Tuple[List[Action], List[StyleMatch]]] = {}

        # --- Actions ---
        all_actions: List[Tuple[str, Action]] = []
        orphan_actions: List[OrphanAction] = []
        for source, action in iter_actions(list(behaviors or [])):
            all_actions.append((source, action))
            matched, reason = self._resolve(action.selector, usable, keys, candidates)
            if not matched:
                logger.debug(f"Orphaned {action.kind} action '{action.selector}' from {source}: {reason}")
                orphan_actions.append(OrphanAction(action=action, source=source, reason=reason))
                continue
            for key in matched:
                slots.setdefault(key, ([], []))[0].append(action)

        # --- Style rules ---
        orphan_rules: List[OrphanRule] = []
        order = 0
        rule_count = 0
        for source, rule in iter_rules(list(styles or [])):
            rule_count += 1
            matched_any = False
            try:
                parsed = parse_selector(rule.selector)
            except SelectorSyntaxError as e:
                orphan_rules.append(OrphanRule(rule=rule, source=source, reason=f"unparseable selector: {e.reason}"))
                order += 1
                continue
            use_rule_vector = rule.declared_specificity or len(parsed.selectors) == 1
            for key in keys:
                fragment = usable[key[0]]
                for branch in parsed.matching_branches(fragment.element_at(key[1]), fragment):
                    matched_any = True
                    slots.setdefault(key, ([], []))[1].append(StyleMatch(
                        rule=rule,
                        specificity=rule.specificity if use_rule_vector else branch.specificity,
                        order=order,
                        states=branch.dynamic_states,
                        pseudo_element=branch.pseudo_element,
                    ))
            if not matched_any:
                orphan_rules.append(OrphanRule(rule=rule, source=source, reason="no element matches selector"))
            order += 1

        # Inline style attributes cascade after every stylesheet rule.
        for key in keys:
            element = usable[key[0]].element_at(key[1])
            declarations = element.get("style")
            if declarations and declarations.strip():
                rule = StyleRule.inline(declarations, location=element.location)
                slots.setdefault(key, ([], []))[1].append(StyleMatch(
                    rule=rule, specificity=INLINE_SPECIFICITY, order=order, inline=True))
                order += 1

        annotations = {
            key: Annotation(actions=actions, style_matches=matches)
            for key, (actions, matches) in slots.items()
        }

        references, duplicate_ids = self._resolve_references(usable, keys)
        cross_resolved = any(r.resolved and r.cross_fragment for r in references)
        completeness = completeness_score(len(usable), cross_resolved, self.config)

        logger.info(
            f"Merged {len(usable)} fragment(s) ({len(diagnostics)} skipped): "
            f"{len(all_actions)} actions ({len(orphan_actions)} orphaned), "
            f"{rule_count} style rules ({len(orphan_rules)} orphaned), completeness {completeness:.2f}"
        )

        return MergedDocument(
            fragments=usable,
            annotations=annotations,
            actions=all_actions,
            orphan_actions=orphan_actions,
            orphan_rules=orphan_rules,
            references=references,
            duplicate_ids=duplicate_ids,
            diagnostics=diagnostics,
            completeness=completeness,
            scope=scope,
            opacity_threshold=self.config.opacity_threshold,
        )

    # --- Steps ---

    def _index_fragments(self, fragments: Sequence[FragmentInput]) -> Tuple[List[StructuralFragment], List[MergeDiagnostic]]:
        usable: List[StructuralFragment] = []
        diagnostics: List[MergeDiagnostic] = []
        for index, item in enumerate(fragments or []):
            try:
                usable.append(as_fragment(item, index))
            except MalformedFragmentError as e:
                logger.warning(f"Skipping fragment #{index}: {e}")
                diagnostics.append(MergeDiagnostic(source=e.source or f"fragment-{index}", reason=e.reason))
        return usable, diagnostics

    @staticmethod
    def _build_candidate_index(usable: List[StructuralFragment], keys: List[ElementKey]) -> Dict[str, List[ElementKey]]:
        index: Dict[str, List[ElementKey]] = {}
        for key in keys:
            for selector in candidate_selectors(usable[key[0]].element_at(key[1])):
                bucket = index.setdefault(selector, [])
                if not bucket or bucket[-1] != key:
                    bucket.append(key)
        return index

    @staticmethod
    def _resolve(selector: str,
                 usable: List[StructuralFragment],
                 keys: List[ElementKey],
                 candidates: Dict[str, List[ElementKey]]) -> Tuple[List[ElementKey], str]:
        """Returns the matched keys in document order, or [] and the reason."""
        if not selector:
            return [], "unresolvable binding"

        if selector in candidates:
            matched = candidates[selector]
            # Ids are unique by contract: the first element in document order wins.
            return (matched[:1] if selector.startswith("#") else list(matched)), ""

        try:
            parsed: SelectorList = parse_selector(selector)
        except SelectorSyntaxError as e:
            return [], f"unparseable selector: {e.reason}"

        pure_id = parsed.pure_id
        if pure_id is not None:
            matched = candidates.get(f"#{pure_id}", [])
            return (matched[:1], "") if matched else ([], f"no element with id '{pure_id}'")

        matched = [key for key in keys
                   if parsed.matches(usable[key[0]].element_at(key[1]), usable[key[0]])]
        if not matched:
            return [], "no element matches selector"
        return matched, ""

    @staticmethod
    def _resolve_references(usable: List[StructuralFragment],
                            keys: List[ElementKey]) -> Tuple[List[ReferenceResolution], Dict[str, List[ElementKey]]]:
        id_owners: Dict[str, List[ElementKey]] = {}
        for key in keys:
            element_id = usable[key[0]].element_at(key[1]).id
            if element_id:
                id_owners.setdefault(element_id, []).append(key)
        duplicate_ids = {i: owners for i, owners in id_owners.items() if len(owners) > 1}

        references: List[ReferenceResolution] = []
        for key in keys:
            element = usable[key[0]].element_at(key[1])
            for attribute in REFERENCE_ATTRIBUTES:
                for token in (element.get(attribute) or "").split():
                    owners = id_owners.get(token)
                    target = owners[0] if owners else None
                    references.append(ReferenceResolution(
                        source_key=key,
                        attribute=attribute,
                        target_id=token,
                        target_key=target,
                        cross_fragment=target is not None and target[0] != key[0],
                    ))
        return references, duplicate_ids
