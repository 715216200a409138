# src/auditor/engine.py
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Iterable, Sequence, Union

from paradise.model import AnalysisConfig
from semantics.behavior import Action, BehaviorModel, iter_actions
from semantics.document import MergedDocument

from .core import AnalyzerBase, AnalysisContext
from .model import Issue, IssueLocation, Confidence
from .registry import AnalyzerRegistry

logger = logging.getLogger(__name__)


class AuditEngine:
    """
    Dispatches the enabled analyzers over a MergedDocument.

    Every analyzer runs in isolation: an exception becomes one
    'analyzer-failure' issue and the remaining analyzers still run. Results
    are concatenated and returned in a total order, so running analyzers in a
    thread pool yields exactly the same list as running them one by one.
    """

    def __init__(self,
                 enabled: Optional[Iterable[str]] = None,
                 max_workers: Optional[int] = None,
                 config: Optional[AnalysisConfig] = None,
                 analyzers: Optional[Sequence[AnalyzerBase]] = None):
        self.config = config or AnalysisConfig()
        if enabled is None:
            enabled = self.config.enabled_analyzers
        self.analyzers: List[AnalyzerBase] = list(analyzers) if analyzers is not None else AnalyzerRegistry.create(enabled)
        self.max_workers = max_workers or self.config.max_workers

    def run(self, doc: MergedDocument) -> List[Issue]:
        """
        Runs the full analysis over a merged document. Without any structural
        fragment, it falls back to file-scope analysis of all its actions.
        """
        if not doc.has_structure:
            logger.info("No structural model available; falling back to file-scope analysis.")
            issues = self._dispatch(lambda analyzer, ctx: analyzer.analyze_file_scope(
                [action for _, action in doc.actions], ctx), AnalysisContext.for_file_scope(self.config))
            return self._ordered(issues + self._diagnostic_issues(doc))

        context = AnalysisContext.for_document(doc, self.config)
        issues = self._dispatch(lambda analyzer, ctx: analyzer.analyze(doc, ctx), context)
        issues.extend(self._diagnostic_issues(doc))
        ordered = self._ordered(issues)
        logger.info(f"Analysis finished: {len(ordered)} issue(s) from {len(self.analyzers)} analyzer(s), "
                    f"completeness {doc.completeness:.2f}")
        return ordered

    def run_file_scope(self, behaviors: Sequence[Union[BehaviorModel, List[Action]]]) -> List[Issue]:
        """Explicit JS-only entry point: no structure, no style."""
        actions = [action for _, action in iter_actions(list(behaviors))]
        context = AnalysisContext.for_file_scope(self.config)
        return self._ordered(self._dispatch(lambda analyzer, ctx: analyzer.analyze_file_scope(actions, ctx), context))

    # --- Internals ---

    def _dispatch(self, call, context: AnalysisContext) -> List[Issue]:
        def guarded(analyzer: AnalyzerBase) -> List[Issue]:
            try:
                return list(call(analyzer, context))
            except Exception as e:
                logger.error(f"Analyzer '{analyzer.name}' failed: {e}", exc_info=True)
                return [self._failure_issue(analyzer, e, context)]

        if self.max_workers > 1 and len(self.analyzers) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(executor.map(guarded, self.analyzers))
        else:
            results = [guarded(analyzer) for analyzer in self.analyzers]

        issues: List[Issue] = []
        for result in results:
            issues.extend(result)
        return issues

    @staticmethod
    def _failure_issue(analyzer: AnalyzerBase, error: Exception, context: AnalysisContext) -> Issue:
        return Issue(
            kind="analyzer-failure",
            severity="info",
            message=f"Analyzer '{analyzer.name}' failed and was skipped: {type(error).__name__}: {error}",
            confidence=Confidence(level="LOW", score=0.0, reason="Analyzer raised an exception",
                                  scope=context.scope),
            analyzer=analyzer.name,
        )

    @staticmethod
    def _diagnostic_issues(doc: MergedDocument) -> List[Issue]:
        return [
            Issue(
                kind=diagnostic.kind,
                severity="info",
                message=f"Fragment '{diagnostic.source}' was skipped: {diagnostic.reason}",
                location=IssueLocation(file=diagnostic.source),
                confidence=Confidence(level=diagnostic.confidence, score=0.3,
                                      reason="Malformed input fragment excluded from the merge",
                                      scope=doc.scope),
                analyzer="resolution",
            )
            for diagnostic in doc.diagnostics
        ]

    @staticmethod
    def _ordered(issues: List[Issue]) -> List[Issue]:
        return sorted(issues, key=lambda issue: issue.sort_key)
