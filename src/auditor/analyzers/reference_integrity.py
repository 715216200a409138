# src/auditor/analyzers/reference_integrity.py
import logging
import re
from typing import List, Optional

from semantics.document import MergedDocument, ElementKey, REFERENCE_ATTRIBUTES
from semantics.selectors import try_parse_selector

from ..core import AnalyzerBase, AnalysisContext, audit_spec
from ..model import Issue, IssueFix, IssueLocation
from ..utils.fuzzy import suggest

logger = logging.getLogger(__name__)

# Runtime values built from expressions cannot be checked statically.
_DYNAMIC_TOKEN = re.compile(r"[${}+`()]")


class ReferenceIntegrityAnalyzer(AnalyzerBase):
    """
    Verifies that every id referenced by an ARIA relationship attribute (or
    by a '#id' action selector) exists in at least one fragment, and offers
    the closest known ids as 'did you mean' suggestions.
    """
    name = "reference-integrity"
    description = "ARIA id references resolve across fragments"

    def analyze(self, doc: MergedDocument, context: AnalysisContext) -> List[Issue]:
        known_ids = doc.all_ids()
        issues = self.check_static_references(doc, context, known_ids)
        issues.extend(self.check_runtime_references(doc, context, known_ids))
        issues.extend(self.check_orphaned_actions(doc, context, known_ids))
        issues.extend(self.check_duplicate_ids(doc, context))
        return issues

    def _level(self, context: AnalysisContext) -> Optional[str]:
        return None if context.full_context else "LOW"

    @audit_spec(codes=["missing-aria-reference"])
    def check_static_references(self, doc: MergedDocument, context: AnalysisContext,
                                known_ids: List[str]) -> List[Issue]:
        issues = []
        for ref in doc.references:
            if ref.resolved:
                continue
            element = doc.element(ref.source_key)
            issues.append(self._missing_reference(
                doc, context, known_ids, ref.source_key, ref.attribute, ref.target_id,
                current_value=element.get(ref.attribute) or "",
                location=self.element_location(doc, ref.source_key),
                origin="",
            ))
        return issues

    @audit_spec(codes=["missing-aria-reference"])
    def check_runtime_references(self, doc: MergedDocument, context: AnalysisContext,
                                 known_ids: List[str]) -> List[Issue]:
        issues = []
        for key in doc.keys():
            for mutation in doc.mutations_for(key):
                if mutation.attribute not in REFERENCE_ATTRIBUTES:
                    continue
                for token in (mutation.value or "").split():
                    if _DYNAMIC_TOKEN.search(token) or doc.element_by_id(token) is not None:
                        continue
                    issues.append(self._missing_reference(
                        doc, context, known_ids, key, mutation.attribute, token,
                        current_value=mutation.value or "",
                        location=self.action_location(mutation, doc.action_source(mutation) or doc.source_of(key)),
                        origin=" at runtime",
                        related=[self.element_location(doc, key)],
                    ))
        return issues

    @audit_spec(codes=["orphaned-action-reference"])
    def check_orphaned_actions(self, doc: MergedDocument, context: AnalysisContext,
                               known_ids: List[str]) -> List[Issue]:
        issues = []
        for orphan in doc.orphan_actions:
            parsed = try_parse_selector(orphan.action.selector) if orphan.action.selector else None
            missing = parsed.pure_id if parsed else None
            if missing is None:
                continue
            suggestions = suggest(missing, known_ids, context.config.suggestion_threshold(missing),
                                  context.config.max_suggestions)
            message = (f'{orphan.action.kind} action targets "#{missing}", which matches no element '
                       f'in any analyzed fragment')
            fix = None
            if suggestions:
                message += f'; did you mean "#{suggestions[0]}"?'
                fix = IssueFix(description=f'Target "#{suggestions[0]}" instead',
                               selector=f"#{suggestions[0]}", value=suggestions[0])
            issues.append(self.create_issue(
                context,
                kind="orphaned-action-reference",
                message=message,
                wcag_criteria=["4.1.2"],
                location=self.action_location(orphan.action, orphan.source),
                severity="warning",
                confidence=self._level(context),
                fix=fix,
            ))
        return issues

    @audit_spec(codes=["duplicate-id"])
    def check_duplicate_ids(self, doc: MergedDocument, context: AnalysisContext) -> List[Issue]:
        issues = []
        for element_id, owners in sorted(doc.duplicate_ids.items()):
            first, *others = owners
            for key in others:
                issues.append(self.create_issue(
                    context,
                    kind="duplicate-id",
                    message=(f'id "{element_id}" on {doc.element(key).describe()} is already used by '
                             f'{doc.element(first).describe()} in {doc.source_of(first)}; references resolve '
                             f'to the first one only'),
                    wcag_criteria=["4.1.1"],
                    location=self.element_location(doc, key),
                    severity="warning",
                    related_locations=[self.element_location(doc, first)],
                ))
        return issues

    def _missing_reference(self, doc: MergedDocument, context: AnalysisContext, known_ids: List[str],
                           key: ElementKey, attribute: str, target_id: str, current_value: str,
                           location: IssueLocation, origin: str,
                           related: Optional[List[IssueLocation]] = None) -> Issue:
        suggestions = suggest(target_id, known_ids, context.config.suggestion_threshold(target_id),
                              context.config.max_suggestions)
        element = doc.element(key)
        message = (f'{attribute} on {element.describe()} references id "{target_id}"{origin}, '
                   f'which does not exist in any analyzed fragment')
        fix = None
        if suggestions:
            best = suggestions[0]
            message += f'; did you mean "{best}"?'
            corrected = " ".join(best if token == target_id else token for token in current_value.split())
            fix = IssueFix(
                description=f'Replace "{target_id}" with "{best}"',
                attribute=attribute,
                value=corrected,
                selector=f"#{element.id}" if element.id else None,
            )
        return self.create_issue(
            context,
            kind="missing-aria-reference",
            message=message,
            wcag_criteria=["1.3.1", "4.1.2"],
            location=location,
            confidence=self._level(context),
            fix=fix,
            related_locations=related,
        )
