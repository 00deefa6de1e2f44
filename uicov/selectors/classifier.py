"""Selector classification: an ordered rule table of selector dialects.

Rules are tried top to bottom and the first hit wins, so the order below is
part of the contract:

1. XPath (``//...``, ``(//...)[1]``, ``xpath=...``)
2. Playwright ``getBy*`` calls
3. Selector-engine prefixes (``text=``, ``role=``, ``data-testid=``, ...)
4. Test-id attribute selectors (``[data-testid="x"]``)
5. Everything else is CSS

Callers with their own dialects pass a different table; the matcher only
sees ``(kind, value)``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from uicov.models.selector import RawSelector, SelectorKind

logger = logging.getLogger(__name__)

TEST_ID_ATTRIBUTES = ("data-testid", "data-test-id", "data-test", "data-qa", "test-id")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"`":
        return value[1:-1]
    return value


def _group(index: int) -> Callable[[re.Match], str]:
    return lambda m: _unquote(m.group(index))


def _whole(m: re.Match) -> str:
    return m.string.strip()


@dataclass(frozen=True)
class SelectorRule:
    name: str
    pattern: re.Pattern
    kind: str
    extract: Callable[[re.Match], str]


def _get_by(method: str, kind: SelectorKind) -> SelectorRule:
    return SelectorRule(
        name=f"getBy{method}",
        pattern=re.compile(rf"getBy{method}\(\s*([\"'`])(.+?)\1"),
        kind=kind.value,
        extract=_group(2),
    )


def _prefix(prefix: str, kind: SelectorKind) -> SelectorRule:
    return SelectorRule(
        name=f"{prefix}=",
        pattern=re.compile(rf"^\s*{re.escape(prefix)}\s*=\s*(.+?)\s*$"),
        kind=kind.value,
        extract=_group(1),
    )


DEFAULT_RULES: tuple[SelectorRule, ...] = (
    SelectorRule("xpath=", re.compile(r"^\s*xpath\s*=\s*(.+)$"), SelectorKind.XPATH.value, _group(1)),
    SelectorRule("xpath", re.compile(r"^\s*\(*\s*\.?/{1,2}"), SelectorKind.XPATH.value, _whole),
    _get_by("Role", SelectorKind.ROLE),
    _get_by("Text", SelectorKind.TEXT),
    _get_by("Label", SelectorKind.LABEL),
    _get_by("Placeholder", SelectorKind.PLACEHOLDER),
    _get_by("AltText", SelectorKind.ALT_TEXT),
    _get_by("Title", SelectorKind.ALT_TEXT),
    _get_by("TestId", SelectorKind.TEST_ID),
    _prefix("text", SelectorKind.TEXT),
    # role=button[name="Save"] declares the role "button"
    SelectorRule(
        "role=", re.compile(r"^\s*role\s*=\s*([\"'`]?)([\w-]+)\1"), SelectorKind.ROLE.value, _group(2),
    ),
    *(_prefix(attr, SelectorKind.TEST_ID) for attr in TEST_ID_ATTRIBUTES),
    _prefix("alt", SelectorKind.ALT_TEXT),
    _prefix("placeholder", SelectorKind.PLACEHOLDER),
    _prefix("label", SelectorKind.LABEL),
    SelectorRule(
        "test-id attribute",
        re.compile(
            r"\[\s*(?:" + "|".join(re.escape(a) for a in TEST_ID_ATTRIBUTES)
            + r")\s*=\s*([\"'`]?)([^\"'`\]]+)\1\s*\]"
        ),
        SelectorKind.TEST_ID.value,
        _group(2),
    ),
)

# A bare value (what an extractor captures from ``getByRole('button')``) never
# contains another dialect's syntax.
_FOREIGN_SYNTAX_RE = re.compile(
    r"getBy\w+\(|^\s*(?:xpath|text|role|alt|placeholder|label|"
    + "|".join(re.escape(a) for a in TEST_ID_ATTRIBUTES)
    + r")\s*="
)


def classify_selector(
    text: str, rules: Sequence[SelectorRule] = DEFAULT_RULES,
) -> tuple[str, str]:
    """Return ``(kind, value)`` for a raw selector string."""
    for rule in rules:
        match = rule.pattern.search(text)
        if match:
            return rule.kind, rule.extract(match)
    return SelectorKind.CSS.value, text.strip()


def declared_value(
    selector: RawSelector, rules: Sequence[SelectorRule] = DEFAULT_RULES,
) -> Optional[str]:
    """The value a selector declares for its own kind.

    Returns None when the text is in a syntax that does not belong to the
    declared kind; the matcher treats that as unmatched.
    """
    raw = selector.raw
    for rule in rules:
        if rule.kind != selector.kind:
            continue
        match = rule.pattern.search(raw)
        if match:
            value = rule.extract(match)
            return value or None

    if selector.kind in (SelectorKind.CSS.value, SelectorKind.XPATH.value):
        return raw.strip() or None

    if _FOREIGN_SYNTAX_RE.search(raw):
        logger.debug("Selector %r does not parse as %s", raw, selector.kind)
        return None
    value = _unquote(raw)
    return value or None
