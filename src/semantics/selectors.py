# src/semantics/selectors.py
"""
Selector model shared by the Behavior and Style models.

Selector strings are parsed once into explicit tagged variants (type,
universal, id, class, attribute, pseudo-class, pseudo-element), grouped into
compound and complex selectors. Each variant carries its own pure matching
function and specificity contribution, so specificity is total for anything
that parses.
"""
import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Tuple, FrozenSet, Protocol

from .core import Element
from .errors import SelectorSyntaxError

logger = logging.getLogger(__name__)

# (inline, id, class/attribute/pseudo-class, type)
Specificity = Tuple[int, int, int, int]

ZERO_SPECIFICITY: Specificity = (0, 0, 0, 0)
INLINE_SPECIFICITY: Specificity = (1, 0, 0, 0)

# Pseudo-classes that depend on runtime interaction state.
DYNAMIC_PSEUDO_CLASSES = frozenset({
    "hover", "focus", "focus-visible", "focus-within", "active",
    "visited", "target", "link", "any-link",
})

# Legacy single-colon pseudo-elements.
LEGACY_PSEUDO_ELEMENTS = frozenset({"before", "after", "first-line", "first-letter"})

ALL_STATES: Optional[FrozenSet[str]] = None  # sentinel: assume every dynamic state holds


def add_specificity(a: Specificity, b: Specificity) -> Specificity:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2], a[3] + b[3])


class MatchContext(Protocol):
    """Tree navigation needed by combinators and structural pseudo-classes."""

    def parent_of(self, element: Element) -> Optional[Element]: ...

    def siblings_of(self, element: Element) -> List[Element]: ...


def _state_active(name: str, states: Optional[FrozenSet[str]]) -> bool:
    return states is None or name in states


# --- SIMPLE SELECTOR VARIANTS ---


@dataclass(frozen=True)
class TypeSelector:
    name: str

    @property
    def specificity(self) -> Specificity:
        return (0, 0, 0, 1)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        return element.tag == self.name

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class UniversalSelector:

    @property
    def specificity(self) -> Specificity:
        return ZERO_SPECIFICITY

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        return True

    def __str__(self) -> str:
        return "*"


@dataclass(frozen=True)
class IdSelector:
    value: str

    @property
    def specificity(self) -> Specificity:
        return (0, 1, 0, 0)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        return element.id == self.value

    def __str__(self) -> str:
        return f"#{self.value}"


@dataclass(frozen=True)
class ClassSelector:
    name: str

    @property
    def specificity(self) -> Specificity:
        return (0, 0, 1, 0)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        return self.name in element.classes

    def __str__(self) -> str:
        return f".{self.name}"


@dataclass(frozen=True)
class AttributeSelector:
    name: str
    operator: Optional[str] = None
    value: Optional[str] = None
    case_insensitive: bool = False

    @property
    def specificity(self) -> Specificity:
        return (0, 0, 1, 0)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        actual = element.get(self.name)
        if actual is None:
            return False
        if self.operator is None:
            return True
        expected = self.value or ""
        if self.case_insensitive:
            actual, expected = actual.lower(), expected.lower()
        op = self.operator
        if op == "=":
            return actual == expected
        if op == "~=":
            return expected in actual.split()
        if op == "|=":
            return actual == expected or actual.startswith(expected + "-")
        if op == "^=":
            return bool(expected) and actual.startswith(expected)
        if op == "$=":
            return bool(expected) and actual.endswith(expected)
        if op == "*=":
            return bool(expected) and expected in actual
        return False

    def __str__(self) -> str:
        if self.operator is None:
            return f"[{self.name}]"
        flag = " i" if self.case_insensitive else ""
        return f'[{self.name}{self.operator}"{self.value}"{flag}]'


@dataclass(frozen=True)
class PseudoElementSelector:
    name: str

    @property
    def specificity(self) -> Specificity:
        return (0, 0, 0, 1)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        # The originating element is matched; callers decide what to do with
        # rules that style a pseudo-element instead of the element itself.
        return True

    def __str__(self) -> str:
        return f"::{self.name}"


@dataclass(frozen=True)
class PseudoClassSelector:
    name: str
    argument: Optional["SelectorList"] = None
    nth: Optional[Tuple[int, int]] = None

    @property
    def is_dynamic(self) -> bool:
        return self.name in DYNAMIC_PSEUDO_CLASSES or self.name not in _STATIC_PSEUDO_CLASSES

    @property
    def specificity(self) -> Specificity:
        if self.name == "where":
            return ZERO_SPECIFICITY
        if self.name in ("not", "is", "matches") and self.argument is not None:
            return self.argument.specificity
        return (0, 0, 1, 0)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        name = self.name
        if name in ("is", "where", "matches"):
            return self.argument is not None and self.argument.matches(element, ctx, states)
        if name == "not":
            # State inside a negation is never assumed.
            return self.argument is not None and not self.argument.matches(element, ctx, frozenset())
        if name == "disabled":
            return element.has("disabled") or element.get("aria-disabled") == "true"
        if name == "enabled":
            return not (element.has("disabled") or element.get("aria-disabled") == "true")
        if name == "checked":
            return element.has("checked") or element.has("selected") or element.get("aria-checked") == "true"
        if name == "required":
            return element.has("required") or element.get("aria-required") == "true"
        if name == "empty":
            return not element.children
        if name == "root":
            return ctx.parent_of(element) is None
        if name in ("first-child", "last-child", "only-child", "nth-child", "nth-last-child"):
            siblings = ctx.siblings_of(element)
            position = _index_of(siblings, element)
            if name == "first-child":
                return position == 0
            if name == "last-child":
                return position == len(siblings) - 1
            if name == "only-child":
                return len(siblings) == 1
            if self.nth is None:
                return False
            index = position + 1 if name == "nth-child" else len(siblings) - position
            return _nth_matches(self.nth, index)
        # Dynamic or unknown pseudo-classes are runtime conditions.
        return _state_active(name, states)

    def __str__(self) -> str:
        if self.argument is not None:
            return f":{self.name}({self.argument})"
        if self.nth is not None:
            return f":{self.name}({self.nth[0]}n+{self.nth[1]})"
        return f":{self.name}"


_STATIC_PSEUDO_CLASSES = frozenset({
    "not", "is", "where", "matches", "disabled", "enabled", "checked", "required",
    "empty", "root", "first-child", "last-child", "only-child", "nth-child", "nth-last-child",
})


def _index_of(siblings: List[Element], element: Element) -> int:
    for i, sibling in enumerate(siblings):
        if sibling is element:
            return i
    return -1


def _nth_matches(nth: Tuple[int, int], index: int) -> bool:
    a, b = nth
    if a == 0:
        return index == b
    n, remainder = divmod(index - b, a)
    return remainder == 0 and n >= 0


# --- COMPOUND / COMPLEX / LIST ---


@dataclass(frozen=True)
class CompoundSelector:
    parts: Tuple[object, ...]

    @property
    def specificity(self) -> Specificity:
        total = ZERO_SPECIFICITY
        for part in self.parts:
            total = add_specificity(total, part.specificity)
        return total

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]]) -> bool:
        return all(part.matches(element, ctx, states) for part in self.parts)

    def __str__(self) -> str:
        return "".join(str(p) for p in self.parts)


@dataclass(frozen=True)
class ComplexSelector:
    """Compounds joined by combinators (' ', '>', '+', '~'), left to right."""
    compounds: Tuple[CompoundSelector, ...]
    combinators: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def specificity(self) -> Specificity:
        total = ZERO_SPECIFICITY
        for compound in self.compounds:
            total = add_specificity(total, compound.specificity)
        return total

    @property
    def subject(self) -> CompoundSelector:
        return self.compounds[-1]

    @property
    def pseudo_element(self) -> Optional[str]:
        for part in self.subject.parts:
            if isinstance(part, PseudoElementSelector):
                return part.name
        return None

    @property
    def dynamic_states(self) -> FrozenSet[str]:
        """Runtime states this selector requires (negations excluded)."""
        names = set()
        for compound in self.compounds:
            for part in compound.parts:
                if isinstance(part, PseudoClassSelector) and part.name != "not":
                    if part.argument is not None:
                        for inner in part.argument.selectors:
                            names.update(inner.dynamic_states)
                    elif part.is_dynamic:
                        names.add(part.name)
        return frozenset(names)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]] = ALL_STATES) -> bool:
        return self._match_from(len(self.compounds) - 1, element, ctx, states)

    def _match_from(self, index: int, element: Element, ctx: MatchContext,
                    states: Optional[FrozenSet[str]]) -> bool:
        if not self.compounds[index].matches(element, ctx, states):
            return False
        if index == 0:
            return True

        combinator = self.combinators[index - 1]
        if combinator == ">":
            parent = ctx.parent_of(element)
            return parent is not None and self._match_from(index - 1, parent, ctx, states)
        if combinator == " ":
            ancestor = ctx.parent_of(element)
            while ancestor is not None:
                if self._match_from(index - 1, ancestor, ctx, states):
                    return True
                ancestor = ctx.parent_of(ancestor)
            return False

        siblings = ctx.siblings_of(element)
        position = _index_of(siblings, element)
        if combinator == "+":
            return position > 0 and self._match_from(index - 1, siblings[position - 1], ctx, states)
        if combinator == "~":
            return any(self._match_from(index - 1, s, ctx, states) for s in siblings[:max(position, 0)])
        return False

    def __str__(self) -> str:
        out = str(self.compounds[0])
        for combinator, compound in zip(self.combinators, self.compounds[1:]):
            out += " " if combinator == " " else f" {combinator} "
            out += str(compound)
        return out


@dataclass(frozen=True)
class SelectorList:
    selectors: Tuple[ComplexSelector, ...]

    @property
    def specificity(self) -> Specificity:
        """Highest specificity among the branches."""
        return max((s.specificity for s in self.selectors), default=ZERO_SPECIFICITY)

    def matches(self, element: Element, ctx: MatchContext, states: Optional[FrozenSet[str]] = ALL_STATES) -> bool:
        return any(s.matches(element, ctx, states) for s in self.selectors)

    def matching_branches(self, element: Element, ctx: MatchContext) -> List[ComplexSelector]:
        return [s for s in self.selectors if s.matches(element, ctx, ALL_STATES)]

    @property
    def pure_id(self) -> Optional[str]:
        """The id value when the whole selector is a single '#id'."""
        if len(self.selectors) != 1 or len(self.selectors[0].compounds) != 1:
            return None
        parts = self.selectors[0].subject.parts
        if len(parts) == 1 and isinstance(parts[0], IdSelector):
            return parts[0].value
        return None

    def __str__(self) -> str:
        return ", ".join(str(s) for s in self.selectors)


# --- PARSER ---

_IDENT = re.compile(r"(?:[\w-]|\\.)+")
_WS = re.compile(r"\s*")
_ATTR_OP = re.compile(r"[~|^$*]?=")
_NTH = re.compile(r"^\s*(?:(odd)|(even)|([+-]?\d*)n\s*(?:([+-])\s*(\d+))?|([+-]?\d+))\s*$", re.IGNORECASE)


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text)


def parse_nth(expression: str) -> Tuple[int, int]:
    """Parses an+b / odd / even into (a, b)."""
    m = _NTH.match(expression)
    if not m:
        raise SelectorSyntaxError(expression, "invalid nth expression")
    if m.group(1):
        return (2, 1)
    if m.group(2):
        return (2, 0)
    if m.group(6) is not None:
        return (0, int(m.group(6)))
    coefficient = m.group(3)
    if coefficient in ("", "+"):
        a = 1
    elif coefficient == "-":
        a = -1
    else:
        a = int(coefficient)
    b = int(m.group(5)) if m.group(5) else 0
    if m.group(4) == "-":
        b = -b
    return (a, b)


class _SelectorParser:
    """Recursive-descent parser for the selector subset used by UI code."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, reason: str) -> SelectorSyntaxError:
        return SelectorSyntaxError(self.text, reason, self.pos)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_ws(self) -> bool:
        m = _WS.match(self.text, self.pos)
        moved = m.end() > self.pos
        self.pos = m.end()
        return moved

    def ident(self) -> str:
        m = _IDENT.match(self.text, self.pos)
        if not m:
            raise self.error("expected identifier")
        self.pos = m.end()
        return _unescape(m.group(0))

    def parse_list(self, closing: str = "") -> SelectorList:
        selectors = []
        while True:
            self.skip_ws()
            selectors.append(self.parse_complex(closing))
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            break
        return SelectorList(tuple(selectors))

    def parse_complex(self, closing: str) -> ComplexSelector:
        compounds = [self.parse_compound()]
        combinators = []
        while True:
            had_ws = self.skip_ws()
            ch = self.peek()
            if ch in (">", "+", "~"):
                self.pos += 1
                self.skip_ws()
                combinators.append(ch)
            elif ch == "" or ch == "," or (closing and ch == closing):
                break
            elif had_ws:
                combinators.append(" ")
            else:
                raise self.error(f"unexpected character '{ch}'")
            compounds.append(self.parse_compound())
        return ComplexSelector(tuple(compounds), tuple(combinators))

    def parse_compound(self) -> CompoundSelector:
        parts = []
        ch = self.peek()
        if ch == "*":
            self.pos += 1
            parts.append(UniversalSelector())
        elif ch and _IDENT.match(self.text, self.pos):
            parts.append(TypeSelector(self.ident().lower()))

        while True:
            ch = self.peek()
            if ch == "#":
                self.pos += 1
                parts.append(IdSelector(self.ident()))
            elif ch == ".":
                self.pos += 1
                parts.append(ClassSelector(self.ident()))
            elif ch == "[":
                parts.append(self.parse_attribute())
            elif ch == ":":
                parts.append(self.parse_pseudo())
            else:
                break

        if not parts:
            raise self.error("empty compound selector")
        return CompoundSelector(tuple(parts))

    def parse_attribute(self) -> AttributeSelector:
        self.pos += 1  # '['
        self.skip_ws()
        name = self.ident().lower()
        self.skip_ws()
        m = _ATTR_OP.match(self.text, self.pos)
        if not m:
            if self.peek() != "]":
                raise self.error("expected ']' or attribute operator")
            self.pos += 1
            return AttributeSelector(name)

        operator = m.group(0)
        self.pos = m.end()
        self.skip_ws()
        quote = self.peek()
        if quote in ("'", '"'):
            end = self.text.find(quote, self.pos + 1)
            if end == -1:
                raise self.error("unterminated string")
            value = self.text[self.pos + 1:end]
            self.pos = end + 1
        else:
            value = self.ident()
        self.skip_ws()
        case_insensitive = False
        if self.peek().lower() in ("i", "s") and self.text[self.pos + 1:self.pos + 2] in ("]", " "):
            case_insensitive = self.peek().lower() == "i"
            self.pos += 1
            self.skip_ws()
        if self.peek() != "]":
            raise self.error("expected ']'")
        self.pos += 1
        return AttributeSelector(name, operator, value, case_insensitive)

    def parse_pseudo(self):
        self.pos += 1  # ':'
        if self.peek() == ":":
            self.pos += 1
            return PseudoElementSelector(self.ident().lower())

        name = self.ident().lower()
        if name in LEGACY_PSEUDO_ELEMENTS:
            return PseudoElementSelector(name)
        if self.peek() != "(":
            return PseudoClassSelector(name)

        self.pos += 1  # '('
        if name in ("not", "is", "where", "matches"):
            argument = self.parse_list(closing=")")
            self.skip_ws()
            if self.peek() != ")":
                raise self.error("expected ')'")
            self.pos += 1
            return PseudoClassSelector(name, argument=argument)

        end = self.text.find(")", self.pos)
        if end == -1:
            raise self.error("unterminated pseudo-class argument")
        raw = self.text[self.pos:end]
        self.pos = end + 1
        if name in ("nth-child", "nth-last-child"):
            return PseudoClassSelector(name, nth=parse_nth(raw))
        # Other functional pseudo-classes (:has(), :lang(), ...) are kept as
        # opaque runtime conditions.
        return PseudoClassSelector(name)

    def parse(self) -> SelectorList:
        if not self.text.strip():
            raise self.error("empty selector")
        result = self.parse_list()
        self.skip_ws()
        if self.pos != len(self.text):
            raise self.error(f"unexpected trailing input '{self.text[self.pos:]}'")
        return result


@lru_cache(maxsize=4096)
def parse_selector(selector: str) -> SelectorList:
    """
    Parses a selector string into a SelectorList.

    Raises:
        SelectorSyntaxError: if the string is not a supported selector.
    """
    return _SelectorParser(selector.strip()).parse()


def try_parse_selector(selector: str) -> Optional[SelectorList]:
    """Like parse_selector, but returns None (and logs) on syntax errors."""
    try:
        return parse_selector(selector)
    except SelectorSyntaxError as e:
        logger.debug("Unparseable selector: %s", e)
        return None


def compute_specificity(selector: str) -> Specificity:
    """Specificity of a selector string; zero for unparseable selectors."""
    parsed = try_parse_selector(selector)
    return parsed.specificity if parsed else ZERO_SPECIFICITY


def candidate_selectors(element: Element) -> List[str]:
    """
    All simple selector strings under which behavior code can refer to an
    element: id, one per class token, tag, role, and one per aria-* attribute.
    """
    selectors = []
    if element.id:
        selectors.append(f"#{element.id}")
    selectors.extend(f".{c}" for c in element.classes)
    selectors.append(element.tag)
    if element.explicit_role:
        selectors.append(f'[role="{element.get("role")}"]')
    selectors.extend(f"[{name}]" for name in element.aria_attributes)
    return selectors
