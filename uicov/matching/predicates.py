"""Predicates deciding whether one selector covers one element."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from uicov.models.element import ElementDescriptor
from uicov.models.selector import SelectorKind
from uicov.selectors.classifier import TEST_ID_ATTRIBUTES
from uicov.selectors.normalizer import normalize_for_matching

logger = logging.getLogger(__name__)

_ID_SHORTHAND_RE = re.compile(r"#[\w-]+")
_CLASS_SHORTHAND_RE = re.compile(r"(?:\.[\w-]+)+")
_XPATH_ID_RE = re.compile(r"""\[\s*@id\s*=\s*(["'])(.*?)\1\s*\]\s*$""")

_COMPOUND_TOKEN_RE = re.compile(
    r"""
      (?P<tag>[a-zA-Z][\w-]*|\*)
    | \#(?P<id>[\w-]+)
    | \.(?P<cls>[\w-]+)
    | \[\s*(?P<attr>[\w:.-]+)\s*
        (?:(?P<op>[~|^$*]?=)\s*(?P<val>"[^"]*"|'[^']*'|[^\]]*?))?
        \s*(?:\s[iIsS])?\s*\]
    | ::?(?P<pseudo>[\w-]+)(?:\((?P<arg>[^)]*)\))?
    """,
    re.VERBOSE,
)

# Tag names whose elements the discoverer reports under a different semantic type.
TAG_TYPES: dict[str, set[str]] = {
    "a": {"link"},
    "input": {"input", "checkbox", "radio"},
    "button": {"button"},
    "select": {"select"},
    "textarea": {"textarea"},
}

_TEXT_PSEUDOS = {"has-text", "text", "text-is", "contains"}


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"`":
        return value[1:-1]
    return value


@dataclass
class AttributeTest:
    name: str
    op: Optional[str] = None
    value: Optional[str] = None


@dataclass
class Compound:
    """One compound segment of a CSS selector, e.g. ``button.primary[type=submit]``."""

    tag: str = ""
    ids: list[str] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    attributes: list[AttributeTest] = field(default_factory=list)
    text: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            (self.tag and self.tag != "*") or self.ids or self.classes
            or self.attributes or self.text
        )


def split_selector_list(selector: str) -> list[str]:
    """Split ``a, b`` into alternatives, respecting brackets and quotes."""
    return [p for p in _split(selector, separators=",") if p]


def split_compounds(selector: str) -> list[str]:
    """Split a selector into compound segments on descendant/child/sibling combinators."""
    return [p for p in _split(selector, separators=" >+~", whitespace=True) if p]


def _split(selector: str, separators: str, whitespace: bool = False) -> list[str]:
    parts: list[str] = []
    buf: list[str] = []
    depth = 0
    quote: Optional[str] = None
    for ch in selector:
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "\"'`":
            quote = ch
        elif ch in "[(":
            depth += 1
        elif ch in "])":
            depth = max(depth - 1, 0)
        elif depth == 0 and (ch in separators or (whitespace and ch.isspace())):
            if buf:
                parts.append("".join(buf).strip())
                buf = []
            continue
        buf.append(ch)
    if buf:
        parts.append("".join(buf).strip())
    return parts


def parse_compound(segment: str) -> Optional[Compound]:
    """Parse one compound segment. Returns None when the syntax is not recognized."""
    compound = Compound()
    pos = 0
    while pos < len(segment):
        m = _COMPOUND_TOKEN_RE.match(segment, pos)
        if not m or m.end() == pos:
            return None
        if m.group("tag"):
            if pos != 0:
                return None
            compound.tag = m.group("tag").lower()
        elif m.group("id"):
            compound.ids.append(m.group("id"))
        elif m.group("cls"):
            compound.classes.append(m.group("cls"))
        elif m.group("attr"):
            val = m.group("val")
            compound.attributes.append(AttributeTest(
                name=m.group("attr").lower(),
                op=m.group("op"),
                value=_unquote(val) if val is not None else None,
            ))
        elif m.group("pseudo"):
            if m.group("pseudo") in _TEXT_PSEUDOS and m.group("arg"):
                compound.text.append(_unquote(m.group("arg")))
        pos = m.end()
    return compound


def _compare(op: Optional[str], expected: Optional[str], actual: str) -> bool:
    if expected is None:
        return bool(actual)
    if op in (None, "="):
        return actual == expected
    if op == "~=":
        return expected in actual.split()
    if op == "|=":
        return actual == expected or actual.startswith(expected + "-")
    if op == "^=":
        return actual.startswith(expected)
    if op == "$=":
        return actual.endswith(expected)
    if op == "*=":
        return expected in actual
    return False


def attribute_matches(test: AttributeTest, element: ElementDescriptor) -> bool:
    name = test.name
    if name == "id":
        return _compare(test.op, test.value, element.id)
    if name == "class":
        if test.value is None:
            return bool(element.class_names)
        if test.op in (None, "=", "~="):
            return all(c in element.class_names for c in test.value.split())
        return _compare(test.op, test.value, " ".join(element.class_names))
    if name == "role":
        return _compare(test.op, test.value, element.role)
    if name in TEST_ID_ATTRIBUTES:
        if name in element.attributes:
            return _compare(test.op, test.value, element.attributes[name])
        return _compare(test.op, test.value, element.id)
    if name in element.attributes:
        return _compare(test.op, test.value, element.attributes[name])
    return False


def tag_matches(tag: str, element: ElementDescriptor) -> bool:
    if not tag or tag == "*":
        return True
    return (
        tag == element.element_type
        or element.element_type in TAG_TYPES.get(tag, ())
        or tag == element.tag
    )


def compound_matches(compound: Compound, element: ElementDescriptor) -> bool:
    if compound.is_empty:
        return False
    if not tag_matches(compound.tag, element):
        return False
    if any(element.id != i for i in compound.ids):
        return False
    if any(c not in element.class_names for c in compound.classes):
        return False
    if not all(attribute_matches(a, element) for a in compound.attributes):
        return False
    return all(text_matches(t, element) for t in compound.text)


# ---------------------------------------------------------------------------
# Exact predicate
# ---------------------------------------------------------------------------


def exact_match(selector_text: str, element: ElementDescriptor) -> bool:
    """Full-string equality of canonical forms, or ``#id`` / ``.a.b`` shorthand."""
    normalized = normalize_for_matching(selector_text)
    if not normalized:
        return False
    if normalized == normalize_for_matching(element.selector):
        return True
    if _ID_SHORTHAND_RE.fullmatch(normalized):
        return bool(element.id) and element.id == normalized[1:]
    if _CLASS_SHORTHAND_RE.fullmatch(normalized):
        wanted = [c for c in normalized.split(".") if c]
        return bool(element.class_names) and all(c in element.class_names for c in wanted)
    return False


# ---------------------------------------------------------------------------
# Type-specific predicates
# ---------------------------------------------------------------------------


def css_match(value: str, element: ElementDescriptor) -> bool:
    for alternative in split_selector_list(value):
        if alternative.lower() == element.element_type:
            return True
        segments = split_compounds(alternative)
        if not segments:
            continue
        last = segments[-1]
        if exact_match(last, element):
            return True
        compound = parse_compound(last)
        if compound is None:
            logger.debug("Unrecognized CSS segment %r in %r", last, value)
            continue
        if compound_matches(compound, element):
            return True
    return False


def text_matches(value: str, element: ElementDescriptor) -> bool:
    if not value or not element.text:
        return False
    wanted = value.lower()
    actual = element.text.lower()
    return actual == wanted or wanted in actual


def role_match(value: str, element: ElementDescriptor) -> bool:
    return bool(element.role) and element.role == value


def test_id_match(value: str, element: ElementDescriptor) -> bool:
    if element.id and element.id == value:
        return True
    return any(element.attributes.get(a) == value for a in TEST_ID_ATTRIBUTES)


def _accessible_match(value: str, element: ElementDescriptor, fallback_attrs: tuple[str, ...]) -> bool:
    wanted = value.lower()
    if element.accessible_name and wanted in element.accessible_name.lower():
        return True
    for attr in fallback_attrs:
        actual = element.attributes.get(attr, "")
        if actual and wanted in actual.lower():
            return True
    return False


def alt_text_match(value: str, element: ElementDescriptor) -> bool:
    return _accessible_match(value, element, ("alt", "title"))


def label_match(value: str, element: ElementDescriptor) -> bool:
    return _accessible_match(value, element, ("aria-label",))


def placeholder_match(value: str, element: ElementDescriptor) -> bool:
    return _accessible_match(value, element, ("placeholder",))


def xpath_match(value: str, element: ElementDescriptor) -> bool:
    wanted = value.strip()
    for candidate in (element.xpath, element.selector):
        if not candidate:
            continue
        if candidate.strip() == wanted:
            return True
        a = _XPATH_ID_RE.search(wanted)
        b = _XPATH_ID_RE.search(candidate)
        if a and b and a.group(2) == b.group(2):
            return True
    return False


TYPE_PREDICATES: dict[str, Callable[[str, ElementDescriptor], bool]] = {
    SelectorKind.CSS.value: css_match,
    SelectorKind.TEXT.value: text_matches,
    SelectorKind.ROLE.value: role_match,
    SelectorKind.TEST_ID.value: test_id_match,
    SelectorKind.ALT_TEXT.value: alt_text_match,
    SelectorKind.LABEL.value: label_match,
    SelectorKind.PLACEHOLDER.value: placeholder_match,
    SelectorKind.XPATH.value: xpath_match,
}


def type_specific_match(kind: str, value: Optional[str], element: ElementDescriptor) -> bool:
    """Apply the predicate registered for ``kind``. Unknown kinds never match."""
    predicate = TYPE_PREDICATES.get(kind)
    if predicate is None or not value:
        return False
    return predicate(value, element)
