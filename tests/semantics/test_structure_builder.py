# tests/semantics/test_structure_builder.py
import pickle

import pytest
from pydantic import ValidationError

from semantics.builder import FragmentBuilder
from semantics.core import Element, TextNode, CommentNode
from semantics.errors import MalformedFragmentError
from semantics.structure import StructuralFragment, as_fragment


@pytest.fixture
def builder():
    return FragmentBuilder()


def test_build_keeps_elements_text_and_comments(builder):
    """Test that elements, text and comments survive, and script content is dropped."""
    fragment = builder.build(
        '<div id="root"><p class="x">Hello <b>world</b></p><!-- note --><script>var a;</script></div>',
        source="page.html",
    )
    assert [e.tag for e in fragment] == ["div", "p", "b"]
    root = fragment.root
    assert any(isinstance(c, CommentNode) and c.text.strip() == "note" for c in root.children)
    assert root.text_content == "Hello world"
    assert fragment.source == "page.html"


def test_source_locations(builder):
    """Test line and 1-based column positions from the parser."""
    fragment = builder.build('<div>\n  <span id="s"></span>\n</div>', source="loc.html")
    span = fragment.element_at(fragment.first_with_id("s"))
    assert (span.location.file, span.location.line, span.location.column) == ("loc.html", 2, 3)
    assert str(span.location) == "loc.html:2:3"


def test_multiple_top_level_elements_get_a_synthetic_root(builder):
    """Test the <fragment> wrapper for multi-root markup."""
    root = builder.build_root('<h1>Title</h1><p>Body</p>', source="multi.html")
    assert root.tag == "fragment"
    assert [c.tag for c in root.element_children] == ["h1", "p"]


def test_bom_and_duplicate_attributes(builder):
    """Test that a BOM is stripped and the first duplicate attribute wins."""
    root = builder.build_root('\ufeff<div id="a" id="b" CLASS="One two">x</div>')
    assert root.id == "a"
    assert root.classes == ["One", "two"]


def test_element_normalization():
    """Test tag and attribute normalization on Element construction."""
    element = Element(tag="DIV", attributes={"Class": ["a", "b"], "Role": "Tab Button"})
    assert element.tag == "div"
    assert element.classes == ["a", "b"]
    assert element.explicit_role == "tab"

    with pytest.raises(ValidationError):
        Element(tag="div", attributes=[("id", "a"), ("ID", "b")])


def test_elements_are_immutable():
    """Test that Elements are frozen after construction."""
    element = Element(tag="div")
    with pytest.raises(ValidationError):
        element.tag = "span"


def test_fragment_index(builder):
    """Test parent, sibling, ancestor and descendant lookups."""
    fragment = builder.build('<ul id="l"><li id="a"><b id="b">x</b></li><li id="c">y</li></ul>')
    ul, li_a, b, li_c = (fragment.first_with_id(i) for i in ("l", "a", "b", "c"))
    assert (ul, li_a, b, li_c) == (0, 1, 2, 3)

    assert fragment.parent_order(b) == li_a
    assert fragment.parent_of(fragment.element_at(li_c)) is fragment.root
    assert list(fragment.ancestor_orders(b)) == [li_a, ul]
    assert list(fragment.descendant_orders(ul)) == [1, 2, 3]
    assert list(fragment.descendant_orders(li_a)) == [2]
    assert fragment.is_descendant(b, ul)
    assert not fragment.is_descendant(li_c, li_a)
    assert [e.id for e in fragment.siblings_of(fragment.element_at(li_a))] == ["a", "c"]
    assert fragment.siblings_of(fragment.root) == [fragment.root]


def test_shared_node_is_malformed():
    """Test that a node reachable twice is rejected."""
    shared = Element(tag="span")
    root = Element(tag="div", children=[shared, shared])
    with pytest.raises(MalformedFragmentError) as excinfo:
        StructuralFragment(root, "shared.html")
    assert "more than once" in excinfo.value.reason
    assert excinfo.value.source == "shared.html"


def test_non_element_root_is_malformed():
    """Test that a fragment root must be an Element."""
    with pytest.raises(MalformedFragmentError):
        as_fragment(TextNode(text="loose text"), 3)


def test_as_fragment_source_ids():
    """Test positional source ids for roots without a file location."""
    assert as_fragment(Element(tag="div"), 2).source == "fragment-2"


def test_fragment_survives_pickling(builder):
    """Test that the identity-based index is rebuilt after unpickling."""
    fragment = builder.build('<div id="a"><span id="b">x</span></div>', source="p.html")
    clone = pickle.loads(pickle.dumps(fragment))
    assert len(clone) == 2
    span = clone.element_at(clone.first_with_id("b"))
    assert clone.parent_of(span) is clone.root
    assert clone.source == "p.html"
