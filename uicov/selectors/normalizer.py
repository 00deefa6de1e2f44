"""Selector normalization.

Two normalizers with different jobs:

- ``normalize_for_matching`` is the canonical form. Identity keys and selector
  equivalence are built from it, and it is insensitive to the quoting
  convention the producing component used.
- ``normalize_for_display`` is for people. It hides attribute values and
  truncates, so two different selectors can share one display form. Never
  build a key from it.
"""

from __future__ import annotations

import re

DISPLAY_MAX_LENGTH = 100

_QUOTES = ("'", '"', "`")

# attr="v", attr='v', attr*="v" ... -> attr=v
_QUOTED_VALUE_RE = re.compile(r"""([~|^$*]?=)\s*(["'`])(.*?)\2""")
# [ name = v ] -> [name=v]
_BRACKET_SPACING_RE = re.compile(r"\[\s*([^\]=\s~|^$*]+)\s*([~|^$*]?=)\s*")
_BRACKET_CLOSE_RE = re.compile(r"\s+\]")
# :has-text("v"), :text('v') ... -> :has-text(v)
_QUOTED_PSEUDO_ARG_RE = re.compile(r"""(:[\w-]+)\(\s*(["'`])(.*?)\2\s*\)""")
_WHITESPACE_RE = re.compile(r"\s+")

_DISPLAY_ATTR_RE = re.compile(r"\[([^\]=~|^$*]+?)\s*([~|^$*]?=)[^\]]*\]")
_DISPLAY_ENGINE_RE = re.compile(r"""\b(text|role)=(?:"[^"]*"|'[^']*'|[^\s>]+)""")
_DISPLAY_TEXT_FN_RE = re.compile(r""":\s*(?:has-)?text\((["'])[^"']*\1\)""")


def _strip_outer_quotes(selector: str) -> str:
    """Drop quotes wrapping the whole selector, not quotes that open and close two parts."""
    if len(selector) < 2 or selector[0] != selector[-1] or selector[0] not in _QUOTES:
        return selector
    inner = selector[1:-1]
    if re.search(r"(?<!\\)" + re.escape(selector[0]), inner):
        return selector
    return inner.strip()


def normalize_for_matching(selector: str) -> str:
    """Canonical, quote-insensitive form of a selector."""
    if not selector:
        return ""
    normalized = _strip_outer_quotes(selector.strip())
    normalized = _QUOTED_VALUE_RE.sub(lambda m: m.group(1) + m.group(3), normalized)
    normalized = _QUOTED_PSEUDO_ARG_RE.sub(lambda m: f"{m.group(1)}({m.group(3)})", normalized)
    normalized = _BRACKET_SPACING_RE.sub(r"[\1\2", normalized)
    normalized = _BRACKET_CLOSE_RE.sub("]", normalized)
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def normalize_for_display(selector: str) -> str:
    """Readable, value-free form of a selector, at most 100 characters."""
    if not selector:
        return ""
    display = _strip_outer_quotes(selector.strip())
    display = _WHITESPACE_RE.sub(" ", display)
    display = _DISPLAY_ATTR_RE.sub(lambda m: f'[{m.group(1).strip()}{m.group(2)}"..."]', display)
    display = _DISPLAY_ENGINE_RE.sub(lambda m: f'{m.group(1)}="..."', display)
    display = _DISPLAY_TEXT_FN_RE.sub(":text(...)", display)
    if len(display) > DISPLAY_MAX_LENGTH:
        display = display[: DISPLAY_MAX_LENGTH - 3] + "..."
    return display


def identity_key(selector: str, element_type: str) -> str:
    """Canonical identity of an element: normalized selector plus semantic type."""
    return f"{normalize_for_matching(selector)}|{element_type}"


def selectors_equivalent(a: str, b: str) -> bool:
    return normalize_for_matching(a) == normalize_for_matching(b)
