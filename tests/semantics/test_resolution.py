# tests/semantics/test_resolution.py
import pytest

from paradise.model import AnalysisConfig
from semantics.behavior import (BehaviorModel, ElementReference, EventHandlerAction, FocusChangeAction,
                                StateMutationAction, scan_keys)
from semantics.builder import FragmentBuilder
from semantics.core import Element
from semantics.resolution import ResolutionEngine, completeness_score
from semantics.style import StyleModel, StyleRule

builder = FragmentBuilder()


def on(selector, event="click", **kwargs):
    return EventHandlerAction(element=ElementReference(selector=selector), event=event, **kwargs)


@pytest.fixture
def page():
    return builder.build_root(
        '<main id="app">'
        '<button id="save" class="btn">Save</button>'
        '<button class="btn danger">Delete</button>'
        '<ul><li>One</li><li>Two</li></ul>'
        '</main>',
        source="page.html",
    )


# --- Completeness ---

def test_completeness_is_strictly_decreasing_in_the_unfloored_range():
    """Test monotonic decrease for one to six fragments."""
    scores = [completeness_score(n, False) for n in range(1, 7)]
    assert scores == sorted(scores, reverse=True)
    assert len(set(scores)) == len(scores)
    assert scores[0] == pytest.approx(0.9)
    assert scores[-1] == pytest.approx(0.4)


def test_completeness_floor_bonus_and_empty():
    """Test the floor, the cross-reference bonus cap and the empty set."""
    assert completeness_score(0, True) == 0.0
    assert completeness_score(12, False) == pytest.approx(0.3)
    assert completeness_score(5, True) == pytest.approx(0.8)
    assert completeness_score(2, True) == 1.0


def test_completeness_uses_config():
    """Test tunable completeness constants."""
    config = AnalysisConfig(completeness_step=0.2, completeness_floor=0.1, completeness_bonus=0.0)
    assert completeness_score(2, True, config) == pytest.approx(0.6)


def test_resolving_a_cross_fragment_reference_raises_completeness():
    """Test that adding the fragment holding a referenced id increases completeness."""
    form = builder.build_root('<form aria-labelledby="title"><input name="q"></form>', source="form.html")
    header = builder.build_root('<h2 id="title">Search</h2>', source="header.html")
    alone = ResolutionEngine().merge([form])
    together = ResolutionEngine().merge([form, header])
    assert together.completeness > alone.completeness
    (ref,) = together.references
    assert ref.resolved and ref.cross_fragment
    assert ref.target_key == (1, 0)


# --- Actions ---

def test_actions_resolve_through_the_candidate_index(page):
    """Test id, class and tag lookups."""
    doc = ResolutionEngine().merge([page], [BehaviorModel(source="app.js", actions=[
        on("#save"), on(".btn", "mouseover"), on("li", "focus"),
    ])])
    save = doc.element_by_id("save")
    assert [a.event for a in doc.actions_for(save)] == ["click", "mouseover"]
    buttons = [k for k in doc.keys() if doc.element(k).tag == "button"]
    assert all(any(a.event == "mouseover" for a in doc.actions_for(k)) for k in buttons)
    items = [k for k in doc.keys() if doc.element(k).tag == "li"]
    assert all(doc.actions_for(k) for k in items)
    assert doc.orphan_actions == []


def test_complex_selector_falls_back_to_full_match(page):
    """Test resolution of selectors that are not in the candidate index."""
    doc = ResolutionEngine().merge([page], [[on("ul > li:first-child"), on("button.btn.danger")]])
    matched = [doc.element(k).text_content for k in doc.keys() if doc.actions_for(k)]
    assert matched == ["Delete", "One"]


def test_id_selector_attaches_to_first_element_in_document_order():
    """Test that a duplicated id resolves to its first occurrence only."""
    first = builder.build_root('<div id="dup">A</div>', source="a.html")
    second = builder.build_root('<div id="dup">B</div>', source="b.html")
    doc = ResolutionEngine().merge([first, second], [[on("#dup"), on("#dup", "keydown"), on("div#dup", "keyup")]])
    assert [a.event for a in doc.actions_for((0, 0))] == ["click", "keydown", "keyup"]
    # A compound selector is matched in full, so it reaches every occurrence.
    assert [a.event for a in doc.actions_for((1, 0))] == ["keyup"]
    assert doc.duplicate_ids == {"dup": [(0, 0), (1, 0)]}


@pytest.mark.parametrize("action, reason", [
    (on("#nope"), "no element with id 'nope'"),
    (on(".missing"), "no element matches selector"),
    (EventHandlerAction(element=ElementReference(binding="buttonRef"), event="click"), "unresolvable binding"),
    (on("div["), "unparseable selector: expected identifier"),
])
def test_orphan_reasons(page, action, reason):
    """Test that unresolved actions are recorded with their reason."""
    doc = ResolutionEngine().merge([page], [BehaviorModel(source="app.js", actions=[action])])
    (orphan,) = doc.orphan_actions
    assert orphan.reason == reason
    assert orphan.source == "app.js"
    assert doc.actions == [("app.js", action)]


def test_element_reference_by_id(page):
    """Test that an id-only reference behaves like '#id'."""
    action = FocusChangeAction(element=ElementReference(id="save"))
    doc = ResolutionEngine().merge([page], [[action]])
    assert doc.actions_for(doc.element_by_id("save")) == [action]


def test_style_rule_orphans(page):
    """Test rules that match nothing or do not parse."""
    doc = ResolutionEngine().merge([page], styles=[StyleModel(source="app.css", rules=[
        StyleRule.from_text(".ghost", "color: red"),
        StyleRule.from_text("##bad", "color: red"),
        StyleRule.from_text(".btn", "color: blue"),
    ])])
    reasons = [o.reason for o in doc.orphan_rules]
    assert reasons[0] == "no element matches selector"
    assert reasons[1].startswith("unparseable selector")
    assert len(reasons) == 2


def test_malformed_fragment_is_skipped(page):
    """Test that a malformed fragment is skipped and recorded as a diagnostic."""
    shared = Element(tag="span")
    broken = Element(tag="div", children=[shared, shared])
    doc = ResolutionEngine().merge([broken, page])
    assert len(doc.fragments) == 1
    assert doc.skipped_fragments == 1
    (diagnostic,) = doc.diagnostics
    assert diagnostic.kind == "malformed-fragment"
    assert diagnostic.confidence == "LOW"
    assert diagnostic.source == "fragment-0"
    assert doc.completeness == pytest.approx(0.9)


def test_merge_does_not_touch_elements(page):
    """Test that merging leaves the structural model untouched."""
    before = page.model_dump()
    doc = ResolutionEngine().merge([page], [[on("#save")]])
    assert doc.element((0, 0)) is page
    assert page.model_dump() == before


def test_element_context_is_recomputed(page):
    """Test that element contexts are derived fresh on each call."""
    doc = ResolutionEngine().merge([page], [[on("#save"), on("#save", "keydown")]])
    key = doc.element_by_id("save")
    first, second = doc.element_context(key), doc.element_context(key)
    assert first is not second
    assert first == second
    assert first.has_click_handler and first.has_keyboard_handler
    assert first.is_focusable and first.role == "button"
    assert first.accessible_name == "Save"


def test_runtime_tabindex_makes_focusable(page):
    """Test that a state mutation writing tabindex counts for focusability."""
    doc = ResolutionEngine().merge([page], [[
        StateMutationAction(element=ElementReference(selector="ul"), attribute="tabIndex", value="0"),
    ]])
    ul = next(k for k in doc.keys() if doc.element(k).tag == "ul")
    assert doc.is_focusable(ul)


def test_scan_keys():
    """Test key detection in handler bodies."""
    body = "if (e.key === 'ArrowRight' || e.keyCode === 37) next(); if (e.key === ' ') toggle();"
    assert scan_keys(body) == {"ArrowRight", "ArrowLeft", " "}
    assert on("#x", "onKeyDown", metadata={"keys": ["Esc", "Spacebar"]}).handled_keys() == {"Escape", " "}
