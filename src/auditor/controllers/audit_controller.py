import logging
from collections import Counter
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from typing import List, Dict, Any, Optional, Union, Iterable

from pydantic import BaseModel, Field
from tqdm import tqdm

from paradise.core.managers.config_manager import config_manager
from paradise.core.utils.configure_logging import configure_from_settings
from paradise.model import AnalysisConfig
from semantics.behavior import BehaviorModel
from semantics.builder import FragmentBuilder
from semantics.core import Element
from semantics.document import AnalysisScope
from semantics.resolution import ResolutionEngine
from semantics.style import StyleModel
from auditor.engine import AuditEngine
from auditor.model import Issue

logger = logging.getLogger(__name__)


class AnalysisJob(BaseModel):
    """
    One independent analysis run: a fragment set with its behavior and
    style collections. Fragments are root Elements or raw markup strings
    (parsed in the worker with FragmentBuilder).
    """
    name: str
    fragments: List[Union[Element, str]] = Field(default_factory=list)
    behaviors: List[BehaviorModel] = Field(default_factory=list)
    styles: List[StyleModel] = Field(default_factory=list)
    scope: AnalysisScope = "workspace"


class AnalysisResult(BaseModel):
    name: str
    issues: List[Issue] = Field(default_factory=list)
    completeness: float = 0.0
    fragments: int = 0
    skipped_fragments: int = 0
    orphan_actions: int = 0
    orphan_rules: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def analyze_job(job: AnalysisJob, config: Optional[AnalysisConfig] = None) -> AnalysisResult:
    """Merges and analyzes one job in the current process."""
    config = config or AnalysisConfig()
    builder = FragmentBuilder()
    roots = [
        builder.build_root(item, source=f"{job.name}#{i}") if isinstance(item, str) else item
        for i, item in enumerate(job.fragments)
    ]
    doc = ResolutionEngine(config).merge(roots, job.behaviors, job.styles, scope=job.scope)
    # Analyzers run sequentially inside batch workers; the batch itself is parallel.
    issues = AuditEngine(config=config, max_workers=1).run(doc)
    return AnalysisResult(
        name=job.name,
        issues=issues,
        completeness=doc.completeness,
        fragments=len(doc.fragments),
        skipped_fragments=doc.skipped_fragments,
        orphan_actions=len(doc.orphan_actions),
        orphan_rules=len(doc.orphan_rules),
    )


def _worker_analyze_job(job_json: str, config_json: str) -> str:
    """
    Worker function running one AnalysisJob in a separate process.
    Jobs and results cross the process boundary as JSON.
    """
    job = AnalysisJob.model_validate_json(job_json)
    try:
        result = analyze_job(job, AnalysisConfig.model_validate_json(config_json))
    except Exception as e:
        logger.error(f"Worker failed on job '{job.name}': {e}", exc_info=True)
        result = AnalysisResult(name=job.name, error=f"{type(e).__name__}: {e}")
    return result.model_dump_json()


class AuditController:
    """
    Orchestrates batch analysis: many independent jobs in a process pool,
    collected in job order, with a tqdm progress bar.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None, setup_logging: bool = False):
        if setup_logging:
            configure_from_settings()
        self.config = config or AnalysisConfig.from_settings()
        self.results: List[AnalysisResult] = []

    def run(self, job: AnalysisJob) -> AnalysisResult:
        return AnalysisResult.model_validate_json(
            _worker_analyze_job(job.model_dump_json(), self.config.model_dump_json()))

    def run_batch(self, jobs: Iterable[AnalysisJob], workers: Optional[int] = None,
                  show_progress: bool = True) -> List[AnalysisResult]:
        """Runs all jobs and returns their results in job order."""
        jobs = list(jobs)
        if workers is None:
            workers = int(config_manager.get_nested("batch.workers", 4))

        payloads = [job.model_dump_json() for job in jobs]
        func = partial(_worker_analyze_job, config_json=self.config.model_dump_json())

        self.results = []
        with tqdm(total=len(jobs), desc="Analyzing", unit="job", disable=not show_progress) as bar:
            if workers <= 1:
                outputs = map(func, payloads)
                for output in outputs:
                    self.results.append(AnalysisResult.model_validate_json(output))
                    bar.update(1)
            else:
                with ProcessPoolExecutor(max_workers=workers) as executor:
                    # map() yields in submission order, whatever the completion order.
                    for output in executor.map(func, payloads):
                        self.results.append(AnalysisResult.model_validate_json(output))
                        bar.update(1)

        failed = sum(1 for r in self.results if not r.ok)
        logger.info(f"Batch finished: {len(self.results)} job(s), {failed} failed, "
                    f"{sum(len(r.issues) for r in self.results)} issue(s)")
        return self.results

    def summary(self, results: Optional[List[AnalysisResult]] = None) -> Dict[str, Any]:
        """Batch totals plus the per-kind breakdown."""
        results = self.results if results is None else results
        kinds = Counter(issue.kind for r in results for issue in r.issues)
        return {
            "jobs": len(results),
            "failed_jobs": sum(1 for r in results if not r.ok),
            "jobs_with_issues": sum(1 for r in results if r.issues),
            "total_issues": sum(len(r.issues) for r in results),
            "breakdown": [{"kind": kind, "count": count} for kind, count in sorted(kinds.items())],
        }
