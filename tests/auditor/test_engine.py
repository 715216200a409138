# tests/auditor/test_engine.py
from semantics.behavior import BehaviorModel, ElementReference, EventHandlerAction, StateMutationAction
from semantics.builder import FragmentBuilder
from semantics.core import Element
from semantics.resolution import ResolutionEngine
from semantics.style import StyleModel, StyleRule
from auditor.core import AnalyzerBase, AnalysisContext
from auditor.engine import AuditEngine
from auditor.registry import AnalyzerRegistry
from auditor.analyzers.cross_model_conflict import CrossModelConflictAnalyzer

builder = FragmentBuilder()

PAGE = (
    '<main>'
    '<div role="tablist"><button role="tab" id="t1">A</button></div>'
    '<div class="card" id="card">Card</div>'
    '<input aria-labelledby="lbel"><label id="lbl">Name</label>'
    '<div class="panel"><a href="/x">Go</a></div>'
    '</main>'
)


def click(selector):
    return EventHandlerAction(element=ElementReference(selector=selector), event="click")


def merge_page():
    return ResolutionEngine().merge(
        [builder.build_root(PAGE, source="page.html"), builder.build_root('<p id="t1">dup</p>', source="other.html")],
        [BehaviorModel(source="app.js", actions=[click(".card"), click("#sumbitButton")])],
        [StyleModel(source="app.css", rules=[StyleRule.from_text(".panel", "display: none")])],
    )


class ExplodingAnalyzer(AnalyzerBase):
    name = "exploding"

    def analyze(self, doc, context):
        raise RuntimeError("boom")


def test_every_analyzer_contributes():
    """Test a page that triggers all three analyzers."""
    issues = AuditEngine().run(merge_page())
    assert {i.analyzer for i in issues} == {"widget-pattern", "reference-integrity", "cross-model-conflict"}
    assert {"mouse-only-click", "focusable-hidden", "missing-aria-reference", "orphaned-action-reference",
            "duplicate-id", "incomplete-tablist-keyboard"} <= {i.kind for i in issues}


def test_issues_are_totally_ordered():
    """Test that results are sorted by location, then kind."""
    issues = AuditEngine().run(merge_page())
    assert [i.sort_key for i in issues] == sorted(i.sort_key for i in issues)


def test_runs_are_deterministic():
    """Test that two merge+analyze runs give byte-identical JSON."""
    first = [i.model_dump_json() for i in AuditEngine().run(merge_page())]
    second = [i.model_dump_json() for i in AuditEngine().run(merge_page())]
    assert first == second


def test_parallel_dispatch_matches_sequential():
    """Test that analyzer parallelism does not change the result."""
    doc = merge_page()
    assert AuditEngine(max_workers=4).run(doc) == AuditEngine(max_workers=1).run(doc)


def test_analyzer_failure_is_isolated():
    """Test that one failing analyzer yields one analyzer-failure issue and the others still run."""
    doc = merge_page()
    issues = AuditEngine(analyzers=[ExplodingAnalyzer(), CrossModelConflictAnalyzer()]).run(doc)
    failures = [i for i in issues if i.kind == "analyzer-failure"]
    assert len(failures) == 1
    assert failures[0].severity == "info"
    assert failures[0].confidence.level == "LOW"
    assert "boom" in failures[0].message
    assert any(i.kind == "mouse-only-click" for i in issues)


def test_malformed_fragment_becomes_an_info_issue():
    """Test the diagnostic issue for a skipped fragment."""
    shared = Element(tag="span")
    doc = ResolutionEngine().merge([Element(tag="div", children=[shared, shared]),
                                    builder.build_root('<p>ok</p>', source="ok.html")])
    issues = AuditEngine().run(doc)
    (issue,) = [i for i in issues if i.kind == "malformed-fragment"]
    assert issue.severity == "info"
    assert issue.location.file == "fragment-0"
    assert issue.analyzer == "resolution"


def test_partial_context_lowers_confidence():
    """Test MEDIUM confidence when a fragment was skipped."""
    shared = Element(tag="span")
    doc = ResolutionEngine().merge(
        [Element(tag="div", children=[shared, shared]), builder.build_root('<div class="card">x</div>')],
        [[click(".card")]],
    )
    (issue,) = [i for i in AuditEngine().run(doc) if i.kind == "mouse-only-click"]
    assert issue.confidence.level == "MEDIUM"


def test_no_structure_falls_back_to_file_scope():
    """Test the JS-only fallback."""
    doc = ResolutionEngine().merge([], [BehaviorModel(source="tabs.js", actions=[
        click(".card"),
        StateMutationAction(element=ElementReference(selector=".tabs"), attribute="role", value="tablist"),
    ])])
    issues = AuditEngine().run(doc)
    assert {i.kind for i in issues} == {"mouse-only-click", "incomplete-tablist-keyboard"}
    assert all(i.confidence.level == "LOW" and i.confidence.scope == "file" for i in issues)


def test_enabled_subset():
    """Test running a subset of analyzers by name."""
    issues = AuditEngine(enabled=["reference-integrity"]).run(merge_page())
    assert issues
    assert {i.analyzer for i in issues} == {"reference-integrity"}


def test_confidence_scores():
    """Test the confidence levels derived from the analysis context."""
    full = AnalysisContext(completeness=1.0)
    assert full.confidence().level == "HIGH"
    assert full.confidence().score == 1.0
    assert AnalysisContext(completeness=0.5, skipped_fragments=1).confidence().level == "MEDIUM"
    assert AnalysisContext.for_file_scope().confidence().score == 0.3


# --- Registry ---

def test_registry_order_and_creation():
    """Test the static analyzer enumeration."""
    assert AnalyzerRegistry.names() == ["widget-pattern", "reference-integrity", "cross-model-conflict"]
    assert [a.name for a in AnalyzerRegistry.create()] == AnalyzerRegistry.names()
    created = AnalyzerRegistry.create(["cross-model-conflict", "no-such-analyzer"])
    assert [a.name for a in created] == ["cross-model-conflict"]
    assert AnalyzerRegistry.get("no-such-analyzer") is None


def test_registry_code_catalogue():
    """Test the union of declared issue kinds."""
    codes = AnalyzerRegistry.all_codes()
    assert {"analyzer-failure", "malformed-fragment", "missing-aria-reference", "duplicate-id",
            "focusable-hidden", "mouse-only-click", "incomplete-dialog-keyboard"} <= codes
    by_analyzer = AnalyzerRegistry.codes_by_analyzer()
    assert by_analyzer["reference-integrity"] == ["duplicate-id", "missing-aria-reference",
                                                  "orphaned-action-reference"]
