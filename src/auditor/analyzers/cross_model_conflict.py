# src/auditor/analyzers/cross_model_conflict.py
import logging
from typing import Dict, List

from semantics.behavior import Action, EventHandlerAction, FocusChangeAction
from semantics.document import MergedDocument, ElementContext
from semantics.roles import is_natively_keyboard_activated, parse_tabindex, is_natively_focusable
from semantics.selectors import try_parse_selector, TypeSelector
from semantics.style import FOCUS_STATES

from ..core import AnalyzerBase, AnalysisContext, audit_spec
from ..model import Issue, IssueFix

logger = logging.getLogger(__name__)

KEYBOARD_NATIVE_TAGS = frozenset({"button", "select", "summary", "textarea", "input"})

KEY_HANDLER_SNIPPET = (
    "element.addEventListener('keydown', (event) => {\n"
    "  if (event.key === 'Enter' || event.key === ' ') {\n"
    "    event.preventDefault();\n"
    "    element.click();\n"
    "  }\n"
    "});"
)


class CrossModelConflictAnalyzer(AnalyzerBase):
    """
    Finds contradictions between the three models: elements that are
    focusable but hidden by style or aria-hidden, click handlers without a
    keyboard counterpart, and focus moved onto invisible elements.
    """
    name = "cross-model-conflict"
    description = "Conflicts between structure, behavior and style"

    def analyze(self, doc: MergedDocument, context: AnalysisContext) -> List[Issue]:
        issues: List[Issue] = []
        for key in doc.keys():
            ctx = doc.element_context(key)
            for check in (self.check_focusable_hidden, self.check_mouse_only,
                          self.check_aria_hidden_focusable, self.check_interactive_hidden,
                          self.check_focus_to_hidden):
                issues.extend(check(doc, context, ctx))
        return issues

    @audit_spec(codes=["focusable-hidden"])
    def check_focusable_hidden(self, doc: MergedDocument, context: AnalysisContext,
                               ctx: ElementContext) -> List[Issue]:
        if not (ctx.is_focusable and ctx.is_hidden):
            return []
        # Skip links and similar: hidden until focused.
        if doc.hidden_reason(ctx.key, FOCUS_STATES) is None:
            return []
        return [self.create_issue(
            context,
            kind="focusable-hidden",
            message=(f"{ctx.element.describe()} is focusable ({self._focus_reason(doc, ctx)}) but hidden by "
                     f"{ctx.hidden_reason}; keyboard users can tab to an invisible element"),
            wcag_criteria=["2.4.3", "2.4.7"],
            location=self.element_location(doc, ctx.key),
            fix=IssueFix(description="Remove the element from the tab order while it is hidden",
                         attribute="tabindex", value="-1"),
        )]

    @audit_spec(codes=["mouse-only-click"])
    def check_mouse_only(self, doc: MergedDocument, context: AnalysisContext,
                         ctx: ElementContext) -> List[Issue]:
        if not ctx.has_click_handler or ctx.has_keyboard_handler:
            return []
        if is_natively_keyboard_activated(ctx.element):
            return []
        clicks = [h for h in ctx.event_handlers if h.is_click]
        events = sorted({h.event for h in clicks})
        return [self.create_issue(
            context,
            kind="mouse-only-click",
            message=(f"{ctx.element.describe()} has a {'/'.join(events)} handler but no keydown, keyup or "
                     f"keypress handler in any analyzed fragment"),
            wcag_criteria=["2.1.1"],
            location=self.element_location(doc, ctx.key),
            fix=IssueFix(description="Handle Enter and Space in a keydown listener", snippet=KEY_HANDLER_SNIPPET),
            related_locations=[self.action_location(h) for h in clicks if h.location is not None],
        )]

    @audit_spec(codes=["aria-hidden-focusable"])
    def check_aria_hidden_focusable(self, doc: MergedDocument, context: AnalysisContext,
                                    ctx: ElementContext) -> List[Issue]:
        if not ctx.is_focusable or not doc.is_aria_hidden(ctx.key):
            return []
        return [self.create_issue(
            context,
            kind="aria-hidden-focusable",
            message=(f'{ctx.element.describe()} is focusable ({self._focus_reason(doc, ctx)}) but is inside '
                     f'aria-hidden="true"; screen readers cannot announce it when it receives focus'),
            wcag_criteria=["4.1.2"],
            location=self.element_location(doc, ctx.key),
            fix=IssueFix(description="Remove the element from the tab order", attribute="tabindex", value="-1"),
        )]

    @audit_spec(codes=["interactive-element-hidden"])
    def check_interactive_hidden(self, doc: MergedDocument, context: AnalysisContext,
                                 ctx: ElementContext) -> List[Issue]:
        # Focusable elements are reported as aria-hidden-focusable.
        handlers = ctx.event_handlers
        if not handlers or ctx.is_focusable or not doc.is_aria_hidden(ctx.key):
            return []
        events = sorted({h.event for h in handlers})
        return [self.create_issue(
            context,
            kind="interactive-element-hidden",
            message=(f"{ctx.element.describe()} has {'/'.join(events)} handler(s) but is inside "
                     f'aria-hidden="true"; assistive technology hides an element users can still operate'),
            wcag_criteria=["4.1.2"],
            location=self.element_location(doc, ctx.key),
            fix=IssueFix(description="Remove aria-hidden from the element and its ancestors, or remove the handlers",
                         attribute="aria-hidden"),
            related_locations=[self.action_location(h, doc.action_source(h)) for h in handlers],
        )]

    @audit_spec(codes=["focus-to-hidden"])
    def check_focus_to_hidden(self, doc: MergedDocument, context: AnalysisContext,
                              ctx: ElementContext) -> List[Issue]:
        focus_moves = [a for a in ctx.actions if isinstance(a, FocusChangeAction) and a.method == "focus"]
        if not focus_moves or not ctx.is_hidden:
            return []
        if doc.hidden_reason(ctx.key, FOCUS_STATES) is None:
            return []
        return [self.create_issue(
            context,
            kind="focus-to-hidden",
            message=(f'focus() moves focus to {ctx.element.describe()} ("{action.selector}"), '
                     f"which is hidden by {ctx.hidden_reason}"),
            wcag_criteria=["2.4.3", "2.4.7"],
            location=self.action_location(action, doc.action_source(action) or ctx.source),
            related_locations=[self.element_location(doc, ctx.key)],
        ) for action in focus_moves]

    # --- File scope ---

    def analyze_file_scope(self, actions: List[Action], context: AnalysisContext) -> List[Issue]:
        by_selector: Dict[str, List[EventHandlerAction]] = {}
        for action in actions:
            if isinstance(action, EventHandlerAction) and action.selector:
                by_selector.setdefault(action.selector, []).append(action)

        issues = []
        for selector, handlers in by_selector.items():
            clicks = [h for h in handlers if h.is_click]
            if not clicks or any(h.is_keyboard for h in handlers):
                continue
            if self._selects_native_control(selector):
                continue
            issues.append(self.create_issue(
                context,
                kind="mouse-only-click",
                message=(f'"{selector}" has a {clicks[0].event} handler but no keyboard handler in this file; '
                         f"the keyboard handler may live in another file"),
                wcag_criteria=["2.1.1"],
                location=self.action_location(clicks[0]),
                severity="warning",
                confidence="LOW",
            ))
        return issues

    # --- Helpers ---

    @staticmethod
    def _focus_reason(doc: MergedDocument, ctx: ElementContext) -> str:
        tabindex = parse_tabindex(ctx.element)
        if tabindex is not None and tabindex >= 0:
            return f'tabindex="{tabindex}"'
        if is_natively_focusable(ctx.element) and (tabindex is None or tabindex >= 0):
            return f"native <{ctx.element.tag}>"
        return "tabindex set at runtime"

    @staticmethod
    def _selects_native_control(selector: str) -> bool:
        parsed = try_parse_selector(selector)
        if parsed is None:
            return False
        return all(
            any(isinstance(p, TypeSelector) and p.name in KEYBOARD_NATIVE_TAGS for p in branch.subject.parts)
            for branch in parsed.selectors
        )
