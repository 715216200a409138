# src/semantics/roles.py
"""Implicit roles and native interaction traits of HTML elements."""
from typing import Optional

from .core import Element

IMPLICIT_ROLES = {
    "article": "article",
    "aside": "complementary",
    "button": "button",
    "datalist": "listbox",
    "details": "group",
    "dialog": "dialog",
    "fieldset": "group",
    "footer": "contentinfo",
    "form": "form",
    "h1": "heading", "h2": "heading", "h3": "heading",
    "h4": "heading", "h5": "heading", "h6": "heading",
    "header": "banner",
    "hr": "separator",
    "img": "img",
    "li": "listitem",
    "main": "main",
    "menu": "list",
    "meter": "meter",
    "nav": "navigation",
    "ol": "list",
    "optgroup": "group",
    "option": "option",
    "output": "status",
    "progress": "progressbar",
    "section": "region",
    "table": "table",
    "tbody": "rowgroup", "thead": "rowgroup", "tfoot": "rowgroup",
    "td": "cell",
    "textarea": "textbox",
    "th": "columnheader",
    "tr": "row",
    "ul": "list",
}

INPUT_ROLES = {
    "button": "button", "submit": "button", "reset": "button", "image": "button",
    "checkbox": "checkbox",
    "radio": "radio",
    "range": "slider",
    "number": "spinbutton",
    "search": "searchbox",
    "email": "textbox", "tel": "textbox", "text": "textbox", "url": "textbox",
}

WIDGET_ROLES = frozenset({
    "button", "checkbox", "combobox", "grid", "gridcell", "link", "listbox", "menu",
    "menubar", "menuitem", "menuitemcheckbox", "menuitemradio", "option", "radio",
    "radiogroup", "scrollbar", "searchbox", "slider", "spinbutton", "switch", "tab",
    "tablist", "textbox", "tree", "treegrid", "treeitem",
})

NATIVE_FOCUSABLE_TAGS = frozenset({"button", "select", "textarea", "summary", "iframe"})
BUTTON_LIKE_INPUT_TYPES = frozenset({"button", "submit", "reset", "image", "checkbox", "radio", "file", "color"})


def input_type(element: Element) -> str:
    return (element.get("type") or "text").strip().lower()


def implicit_role(element: Element) -> Optional[str]:
    tag = element.tag
    if tag in ("a", "area"):
        return "link" if element.has("href") else None
    if tag == "input":
        kind = input_type(element)
        if kind == "hidden":
            return None
        if element.has("list") and kind in ("text", "search", "email", "tel", "url"):
            return "combobox"
        return INPUT_ROLES.get(kind, "textbox")
    if tag == "select":
        size = (element.get("size") or "").strip()
        if element.has("multiple") or (size.isdigit() and int(size) > 1):
            return "listbox"
        return "combobox"
    if tag == "img" and element.get("alt") == "":
        return "presentation"
    return IMPLICIT_ROLES.get(tag)


def effective_role(element: Element) -> Optional[str]:
    return element.explicit_role or implicit_role(element)


def is_disabled(element: Element) -> bool:
    return element.has("disabled")


def is_natively_focusable(element: Element) -> bool:
    if is_disabled(element):
        return False
    tag = element.tag
    if tag in ("a", "area"):
        return element.has("href")
    if tag == "input":
        return input_type(element) != "hidden"
    if tag in NATIVE_FOCUSABLE_TAGS:
        return True
    editable = element.get("contenteditable")
    return editable is not None and editable.strip().lower() != "false"


def is_natively_keyboard_activated(element: Element) -> bool:
    """Elements whose click behavior the platform fires from the keyboard."""
    tag = element.tag
    if tag == "button" or tag == "summary" or tag == "select" or tag == "textarea":
        return True
    if tag in ("a", "area"):
        return element.has("href")
    if tag == "input":
        return input_type(element) != "hidden"
    return False


def is_native_activation_control(element: Element) -> bool:
    """<button> and button-like <input>: Enter/Space synthesize a click."""
    if element.tag == "button":
        return True
    return element.tag == "input" and input_type(element) in BUTTON_LIKE_INPUT_TYPES


def parse_tabindex(element: Element) -> Optional[int]:
    value = element.get("tabindex")
    if value is None:
        return None
    return parse_int(value)


def parse_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
