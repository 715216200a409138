# src/semantics/structure.py
import logging
from typing import Dict, List, Optional, Iterator, Union

from .core import Element, TextNode, CommentNode
from .errors import MalformedFragmentError

logger = logging.getLogger(__name__)


class StructuralFragment:
    """
    One parsed structural root (a file, template or component) plus an index
    over its elements.

    Elements are numbered in document (pre-)order. Parent links, sibling
    lists and id lookups are answered from that index, so the element models
    themselves never hold back-references.

    Raises:
        MalformedFragmentError: if the root is not an Element, or if any node
            is reachable twice (a cycle or a shared subtree).
    """

    def __init__(self, root: Element, source: str = ""):
        self.source = source or (root.location.file if isinstance(root, Element) and root.location else "")
        if not isinstance(root, Element):
            raise MalformedFragmentError(self.source, f"root is {type(root).__name__}, not an Element")

        self.root = root
        self.elements: List[Element] = []
        self._order: Dict[int, int] = {}
        self._parent: List[Optional[int]] = []
        self._subtree_end: List[int] = []
        self.ids: Dict[str, List[int]] = {}
        self._index()

    def _index(self):
        seen = set()
        # (node, parent order) pairs; children pushed reversed to keep pre-order.
        stack = [(self.root, None)]
        while stack:
            node, parent = stack.pop()
            if isinstance(node, (TextNode, CommentNode)):
                continue
            if not isinstance(node, Element):
                raise MalformedFragmentError(self.source, f"unexpected node type {type(node).__name__}")

            if id(node) in seen:
                if parent is not None and self._is_ancestor_or_self(node, parent):
                    raise MalformedFragmentError(self.source, f"cycle through {node.describe()}")
                raise MalformedFragmentError(self.source, f"{node.describe()} is reachable more than once")
            seen.add(id(node))

            order = len(self.elements)
            self.elements.append(node)
            self._order[id(node)] = order
            self._parent.append(parent)
            self._subtree_end.append(order + 1)
            if node.id:
                self.ids.setdefault(node.id, []).append(order)

            for child in reversed(node.children):
                stack.append((child, order))

        # Subtree extents: in pre-order a subtree is the contiguous run of
        # descendants, so extend each ancestor to cover its last descendant.
        for order in range(len(self.elements) - 1, 0, -1):
            parent = self._parent[order]
            if self._subtree_end[order] > self._subtree_end[parent]:
                self._subtree_end[parent] = self._subtree_end[order]

        logger.debug("Indexed fragment '%s': %d elements, %d ids", self.source, len(self.elements), len(self.ids))

    def _is_ancestor_or_self(self, node: Element, order: int) -> bool:
        current: Optional[int] = order
        while current is not None:
            if self.elements[current] is node:
                return True
            current = self._parent[current]
        return False

    def __reduce__(self):
        # The index is keyed by object identity; rebuild it after unpickling.
        return (StructuralFragment, (self.root, self.source))

    # --- Index lookups ---

    def __len__(self) -> int:
        return len(self.elements)

    def __iter__(self) -> Iterator[Element]:
        return iter(self.elements)

    def order_of(self, element: Element) -> Optional[int]:
        return self._order.get(id(element))

    def element_at(self, order: int) -> Element:
        return self.elements[order]

    def parent_order(self, order: int) -> Optional[int]:
        return self._parent[order]

    def parent_of(self, element: Element) -> Optional[Element]:
        order = self.order_of(element)
        if order is None:
            return None
        parent = self._parent[order]
        return None if parent is None else self.elements[parent]

    def siblings_of(self, element: Element) -> List[Element]:
        parent = self.parent_of(element)
        if parent is None:
            return [element]
        return parent.element_children

    def ancestor_orders(self, order: int) -> Iterator[int]:
        """Yields the orders of all ancestors, nearest first."""
        current = self._parent[order]
        while current is not None:
            yield current
            current = self._parent[current]

    def descendant_orders(self, order: int) -> range:
        return range(order + 1, self._subtree_end[order])

    def is_descendant(self, order: int, ancestor: int) -> bool:
        return ancestor < order < self._subtree_end[ancestor]

    def first_with_id(self, element_id: str) -> Optional[int]:
        orders = self.ids.get(element_id)
        return orders[0] if orders else None


def as_fragment(item: Union[Element, StructuralFragment], index: int) -> StructuralFragment:
    """Wraps a bare root Element into a fragment with a positional source id."""
    if isinstance(item, StructuralFragment):
        return item
    source = item.location.file if isinstance(item, Element) and item.location and item.location.file else f"fragment-{index}"
    return StructuralFragment(item, source)
