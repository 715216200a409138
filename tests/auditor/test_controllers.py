# tests/auditor/test_controllers.py
import json

import pandas as pd
import pytest
from openpyxl import load_workbook

from paradise.core.utils.path_utils import PathUtils
from paradise.model import AnalysisConfig
from semantics.behavior import BehaviorModel, ElementReference, EventHandlerAction
from auditor.controllers import audit_controller
from auditor.controllers.audit_controller import AuditController, AnalysisJob, AnalysisResult
from auditor.controllers.report_controller import ReportController, COLUMNS
from auditor.model import Issue, IssueLocation, IssueFix, Confidence


def card_job(name, handlers=("click",)):
    actions = [EventHandlerAction(element=ElementReference(selector=".card"), event=event) for event in handlers]
    return AnalysisJob(
        name=name,
        fragments=['<div class="card">Card</div>'],
        behaviors=[BehaviorModel(source=f"{name}.js", actions=actions)],
    )


@pytest.fixture
def controller():
    return AuditController(config=AnalysisConfig())


# --- AuditController ---

def test_single_job(controller):
    """Test one job parsed from markup and analyzed in process."""
    result = controller.run(card_job("page"))
    assert result.ok
    assert result.fragments == 1
    assert result.completeness == pytest.approx(0.9)
    (issue,) = result.issues
    assert issue.kind == "mouse-only-click"
    assert issue.location.file == "page#0"


def test_batch_keeps_job_order(controller):
    """Test that results come back in submission order."""
    jobs = [card_job("a"), card_job("b", ("click", "keydown")), card_job("c")]
    results = controller.run_batch(jobs, workers=1, show_progress=False)
    assert [r.name for r in results] == ["a", "b", "c"]
    assert [len(r.issues) for r in results] == [1, 0, 1]


def test_batch_in_process_pool(controller):
    """Test the process pool path: same results, same order."""
    jobs = [card_job(f"job-{i}", ("click",) if i % 2 else ("click", "keyup")) for i in range(5)]
    parallel = controller.run_batch(jobs, workers=2, show_progress=False)
    sequential = controller.run_batch(jobs, workers=1, show_progress=False)
    assert [r.name for r in parallel] == [f"job-{i}" for i in range(5)]
    assert parallel == sequential


def test_failing_job_does_not_stop_the_batch(controller, monkeypatch):
    """Test that an exception in one job becomes an error result."""
    real = audit_controller.analyze_job

    def flaky(job, config=None):
        if job.name == "bad":
            raise ValueError("corrupt input")
        return real(job, config)

    monkeypatch.setattr(audit_controller, "analyze_job", flaky)
    results = controller.run_batch([card_job("good"), card_job("bad")], workers=1, show_progress=False)
    assert results[0].ok
    assert not results[1].ok
    assert results[1].error == "ValueError: corrupt input"
    assert results[1].issues == []


def test_batch_summary(controller):
    """Test the totals and per-kind breakdown."""
    controller.run_batch([card_job("a"), card_job("b", ("click", "keydown")), card_job("c")],
                         workers=1, show_progress=False)
    summary = controller.summary()
    assert summary == {
        "jobs": 3,
        "failed_jobs": 0,
        "jobs_with_issues": 2,
        "total_issues": 2,
        "breakdown": [{"kind": "mouse-only-click", "count": 2}],
    }


# --- ReportController ---

def make_issue(kind, severity, criteria, file="page.html", line=1, fix=None):
    return Issue(
        kind=kind,
        severity=severity,
        wcag_criteria=criteria,
        location=IssueLocation(file=file, line=line, element="<div>"),
        message=f"{kind} found",
        confidence=Confidence(level="HIGH", score=1.0),
        fix=fix,
        analyzer="test",
    )


@pytest.fixture
def report():
    issues = [
        make_issue("focusable-hidden", "warning", ["2.4.3", "2.4.7"], line=9),
        make_issue("mouse-only-click", "error", ["2.1.1"], line=5),
        make_issue("mouse-only-click", "error", ["2.1.1"], line=2,
                   fix=IssueFix(description="Handle Enter and Space")),
        make_issue("malformed-fragment", "info", [], file="fragment-0", line=0),
    ]
    return ReportController(issues, job="site")


def test_dataframe_is_sorted_by_severity_then_location(report):
    """Test the issue table."""
    df = report.to_dataframe()
    assert list(df.columns) == COLUMNS
    assert list(df['severity']) == ["error", "error", "warning", "info"]
    assert list(df['line'][:2]) == [2, 5]
    assert df['fix'][0] == "Handle Enter and Space"
    assert set(df['job']) == {"site"}


def test_summaries(report):
    """Test the severity, kind and criterion views."""
    assert report.severity_summary() == {"error": 2, "warning": 1, "info": 1, "total": 4}

    kinds = report.kind_summary()
    assert list(kinds['kind']) == ["mouse-only-click", "focusable-hidden", "malformed-fragment"]
    assert list(kinds['count']) == [2, 1, 1]

    criteria = report.criterion_summary()
    assert list(criteria['criterion']) == ["2.1.1", "2.4.3", "2.4.7"]
    assert list(criteria['level']) == ["A", "A", "AA"]
    assert list(criteria['count']) == [2, 1, 1]


def test_empty_report():
    """Test views over no issues."""
    report = ReportController()
    assert report.to_dataframe().empty
    assert report.kind_summary().empty
    assert report.criterion_summary().empty
    assert report.severity_summary()["total"] == 0


def test_report_from_results_skips_failed_jobs():
    """Test that failed jobs are left out of the report."""
    results = [
        AnalysisResult(name="ok", issues=[make_issue("duplicate-id", "warning", ["4.1.1"])]),
        AnalysisResult(name="broken", error="ValueError: boom"),
    ]
    df = ReportController.from_results(results).to_dataframe()
    assert list(df['job']) == ["ok"]


def test_exports(report, tmp_path):
    """Test the CSV, JSON and Excel exports."""
    csv_path = report.export_csv(tmp_path / "out" / "report.csv")
    frame = pd.read_csv(csv_path)
    assert len(frame) == 4
    assert frame['wcag'][2] == "2.4.3, 2.4.7"

    json_path = report.export_json(tmp_path / "report.json")
    records = json.loads(json_path.read_text(encoding="utf-8"))
    assert records[0]['kind'] == "mouse-only-click"
    assert records[0]['wcag'] == ["2.1.1"]

    xlsx_path = report.export_excel(tmp_path / "report.xlsx")
    workbook = load_workbook(xlsx_path)
    assert workbook.sheetnames == ["Summary", "Action List", "WCAG Criteria"]
    assert workbook["Action List"].max_row == 5


def test_default_export_location(report, tmp_path, monkeypatch):
    """Test that exports without a path land in the project's report directory."""
    monkeypatch.setattr(PathUtils, "get_project_root", lambda: tmp_path)
    target = report.export_csv()
    assert target.parent == tmp_path / ".paradise_reports"
    assert target.name.startswith("paradise_report_")
    assert target.suffix == ".csv"
    assert target.exists()
