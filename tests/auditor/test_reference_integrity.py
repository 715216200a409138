# tests/auditor/test_reference_integrity.py
import pytest

from semantics.behavior import BehaviorModel, ElementReference, FocusChangeAction, StateMutationAction
from semantics.builder import FragmentBuilder
from semantics.resolution import ResolutionEngine
from auditor.core import AnalysisContext
from auditor.engine import AuditEngine
from auditor.analyzers.reference_integrity import ReferenceIntegrityAnalyzer
from auditor.utils.fuzzy import levenshtein, suggest, rank_candidates

builder = FragmentBuilder()


def analyze(fragments, actions=(), scope="workspace"):
    roots = [builder.build_root(markup, source=name) for name, markup in fragments]
    doc = ResolutionEngine().merge(roots, [BehaviorModel(source="app.js", actions=list(actions))], scope=scope)
    return AuditEngine(enabled=["reference-integrity"]).run(doc)


def test_missing_reference_with_suggestion():
    """Test a misspelled aria-labelledby target."""
    (issue,) = analyze([("form.html", '<form><label id="lbl">Name</label><input aria-labelledby="lbel"></form>')])
    assert issue.kind == "missing-aria-reference"
    assert issue.wcag_criteria == ["1.3.1", "4.1.2"]
    assert issue.severity == "error"
    assert 'references id "lbel"' in issue.message
    assert 'did you mean "lbl"?' in issue.message
    assert issue.fix.attribute == "aria-labelledby"
    assert issue.fix.value == "lbl"
    assert issue.confidence.level == "HIGH"


def test_reference_resolves_across_fragments():
    """Test that a target in another fragment satisfies the reference."""
    issues = analyze([
        ("field.html", '<input aria-describedby="hint other">'),
        ("hint.html", '<p id="hint">Use 8 characters</p>'),
    ])
    (issue,) = issues
    assert 'references id "other"' in issue.message
    assert issue.location.file == "field.html"


def test_fix_keeps_the_other_tokens():
    """Test that the corrected value only replaces the missing token."""
    (issue,) = analyze([("a.html", '<div><p id="intro">x</p><p id="hint">y</p>'
                                   '<input aria-describedby="intro hnit"></div>')])
    assert issue.fix.value == "intro hint"


def test_file_scope_lowers_confidence():
    """Test LOW confidence outside workspace/page scope."""
    (issue,) = analyze([("a.html", '<input aria-controls="nothing-like-it">')], scope="file")
    assert issue.confidence.level == "LOW"
    assert issue.fix is None


def test_orphaned_action_suggests_the_closest_id():
    """Test 'sumbitButton' suggesting 'submitButton'."""
    (issue,) = analyze(
        [("form.html", '<form><button id="submitButton">Send</button><button id="cancel">No</button></form>')],
        [FocusChangeAction(element=ElementReference(selector="#sumbitButton"))],
    )
    assert issue.kind == "orphaned-action-reference"
    assert issue.severity == "warning"
    assert 'did you mean "#submitButton"?' in issue.message
    assert issue.fix.selector == "#submitButton"
    assert issue.location.file == "app.js"


def test_runtime_reference_mutations():
    """Test ids written into reference attributes at runtime."""
    issues = analyze(
        [("combo.html", '<div><input id="combo"><div id="opt-1">One</div></div>')],
        [
            StateMutationAction(element=ElementReference(selector="#combo"),
                                attribute="aria-activedescendant", value="opt-9"),
            StateMutationAction(element=ElementReference(selector="#combo"),
                                attribute="aria-activedescendant", value="opt-${index}"),
            StateMutationAction(element=ElementReference(selector="#combo"),
                                attribute="aria-activedescendant", value="opt-1"),
        ],
    )
    (issue,) = issues
    assert "at runtime" in issue.message
    assert 'did you mean "opt-1"?' in issue.message
    assert issue.related_locations[0].element == '<input> element with id="combo"'


def test_duplicate_ids():
    """Test one issue per repeated id occurrence, pointing at the first."""
    (issue,) = analyze([
        ("a.html", '<div id="main">A</div>'),
        ("b.html", '<section id="main">B</section>'),
    ])
    assert issue.kind == "duplicate-id"
    assert issue.wcag_criteria == ["4.1.1"]
    assert issue.location.file == "b.html"
    assert issue.related_locations[0].file == "a.html"


def test_file_scope_has_nothing_to_check():
    """Test that the analyzer needs a structural model."""
    context = AnalysisContext.for_file_scope()
    assert ReferenceIntegrityAnalyzer().analyze_file_scope([], context) == []


# --- Fuzzy matching ---

@pytest.mark.parametrize("a, b, distance", [
    ("", "abc", 3),
    ("kitten", "sitting", 3),
    ("sumbitButton", "submitButton", 2),
    ("same", "same", 0),
])
def test_levenshtein(a, b, distance):
    """Test the edit distance."""
    assert levenshtein(a, b) == distance
    assert levenshtein(b, a) == distance


def test_suggestions_are_ranked_and_limited():
    """Test ordering by distance, similarity and name, and the distance cut-off."""
    candidates = ["tab-1", "tab-2", "tab-10", "panel-1", "tab-1"]
    assert suggest("tab-3", candidates, max_distance=1) == ["tab-1", "tab-2"]
    assert suggest("tab-3", candidates, max_distance=2, limit=1) == ["tab-1"]
    assert suggest("zzz", candidates, max_distance=2) == []
    # Equal distance: the more similar candidate ranks first.
    assert [c for c, _, _ in rank_candidates("tab-1", candidates, 1)] == ["tab-10", "tab-2"]
