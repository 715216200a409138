# src/auditor/core.py
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Set, Union, Iterable

from pydantic import BaseModel, ConfigDict, Field

from paradise.model import AnalysisConfig
from semantics.behavior import Action
from semantics.core import SourceLocation
from semantics.document import MergedDocument, ElementKey, AnalysisScope

from .model import Issue, IssueFix, IssueLocation, Confidence, ConfidenceLevel
from .wcag import severity_for

logger = logging.getLogger(__name__)


def audit_spec(codes: List[str]):
    """
    Decorator to declare which issue kinds a specific check method returns.
    The AnalyzerRegistry collects them into its code catalogue.
    """
    def decorator(func):
        func.defined_codes = codes
        return func
    return decorator


_DEFAULT_REASONS = {
    "HIGH": "Document-scope analysis with structure, behavior and style merged",
    "MEDIUM": "Partial document context available",
    "LOW": "File-scope analysis only - the counterpart may live in another file",
}


class AnalysisContext(BaseModel):
    """What an analyzer knows about the completeness of its input."""
    model_config = ConfigDict(frozen=True)

    scope: AnalysisScope = "workspace"
    completeness: float = Field(default=1.0, ge=0.0, le=1.0)
    has_structure: bool = True
    skipped_fragments: int = 0
    config: AnalysisConfig = Field(default_factory=AnalysisConfig)

    @property
    def full_context(self) -> bool:
        return self.scope in ("workspace", "page") and self.has_structure and self.skipped_fragments == 0

    @classmethod
    def for_document(cls, doc: MergedDocument, config: Optional[AnalysisConfig] = None) -> "AnalysisContext":
        return cls(
            scope=doc.scope,
            completeness=doc.completeness,
            has_structure=doc.has_structure,
            skipped_fragments=doc.skipped_fragments,
            config=config or AnalysisConfig(),
        )

    @classmethod
    def for_file_scope(cls, config: Optional[AnalysisConfig] = None) -> "AnalysisContext":
        return cls(scope="file", completeness=0.0, has_structure=False, config=config or AnalysisConfig())

    def confidence(self, level: Optional[ConfidenceLevel] = None, reason: Optional[str] = None) -> Confidence:
        """
        Builds the confidence of a finding. Without an explicit level it
        follows the context: HIGH with full context, MEDIUM with partial
        structure, LOW without structure.
        """
        if level is None:
            level = "HIGH" if self.full_context else ("MEDIUM" if self.has_structure else "LOW")
        if level == "HIGH":
            score = 0.9 + 0.1 * self.completeness
        elif level == "MEDIUM":
            score = 0.6 + 0.2 * self.completeness
        else:
            score = 0.4 if self.has_structure else 0.3
        return Confidence(level=level, score=round(score, 4), reason=reason or _DEFAULT_REASONS[level],
                          scope=self.scope)


class AnalyzerBase(ABC):
    """
    Contract for all analyzers.

    Analyzers are pure: they read the MergedDocument (or the bare action list
    in file scope) and return issues, without mutating anything.
    """
    name: str = ""
    description: str = ""

    @abstractmethod
    def analyze(self, doc: MergedDocument, context: AnalysisContext) -> List[Issue]:
        """Full analysis over a merged document."""

    def analyze_file_scope(self, actions: List[Action], context: AnalysisContext) -> List[Issue]:
        """Degraded analysis when no structural model exists."""
        return []

    @classmethod
    def defined_codes(cls) -> Set[str]:
        """Union of the kinds declared with @audit_spec on this class."""
        codes: Set[str] = set()
        for attr in dir(cls):
            member = getattr(cls, attr, None)
            if callable(member) and hasattr(member, "defined_codes"):
                codes.update(member.defined_codes)
        return codes

    # --- Helpers ---

    def create_issue(self,
                     context: AnalysisContext,
                     kind: str,
                     message: str,
                     wcag_criteria: Iterable[str],
                     location: Optional[IssueLocation] = None,
                     severity: Optional[str] = None,
                     confidence: Union[Confidence, ConfidenceLevel, None] = None,
                     reason: Optional[str] = None,
                     fix: Optional[IssueFix] = None,
                     related_locations: Optional[List[IssueLocation]] = None) -> Issue:
        """Fills severity (from the WCAG level) and confidence consistently."""
        criteria = list(wcag_criteria)
        if not isinstance(confidence, Confidence):
            confidence = context.confidence(confidence, reason)
        return Issue(
            kind=kind,
            severity=severity or severity_for(criteria),
            wcag_criteria=criteria,
            location=location or IssueLocation(),
            message=message,
            confidence=confidence,
            fix=fix,
            analyzer=self.name,
            related_locations=related_locations or [],
        )

    @staticmethod
    def element_location(doc: MergedDocument, key: ElementKey) -> IssueLocation:
        loc = doc.location_of(key)
        return IssueLocation(file=loc.file, line=loc.line, column=loc.column,
                             element=doc.element(key).describe())

    @staticmethod
    def action_location(action: Action, fallback_file: str = "") -> IssueLocation:
        loc: SourceLocation = action.location or SourceLocation(file=fallback_file)
        return IssueLocation(file=loc.file or fallback_file, line=loc.line, column=loc.column,
                             element=action.selector)
