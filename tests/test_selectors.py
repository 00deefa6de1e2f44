"""Tests for selector normalization and classification."""

import re

import pytest

from uicov.models.selector import RawSelector
from uicov.selectors.classifier import (
    DEFAULT_RULES,
    SelectorRule,
    classify_selector,
    declared_value,
)
from uicov.selectors.normalizer import (
    DISPLAY_MAX_LENGTH,
    identity_key,
    normalize_for_display,
    normalize_for_matching,
    selectors_equivalent,
)


# ============================================================================
# normalize_for_matching
# ============================================================================


class TestNormalizeForMatching:

    @pytest.mark.parametrize("selector", [
        'button[type="submit"]',
        "button[type='submit']",
        "button[type=`submit`]",
        "button[type=submit]",
        "button[ type = 'submit' ]",
    ])
    def test_quote_styles_share_one_form(self, selector):
        assert normalize_for_matching(selector) == "button[type=submit]"

    def test_strips_outer_quotes(self):
        assert normalize_for_matching('"#login-btn"') == "#login-btn"
        assert normalize_for_matching("'#login-btn'") == "#login-btn"

    def test_keeps_quotes_that_belong_to_parts(self):
        assert normalize_for_matching('"a" >> "b"') == '"a" >> "b"'
        assert normalize_for_matching(r'"say \"hi\""') == r'say \"hi\"'

    def test_pseudo_class_arguments_ignore_quote_style(self):
        double = normalize_for_matching('button:has-text("Save")')
        single = normalize_for_matching("button:has-text('Save')")
        assert double == single == "button:has-text(Save)"
        assert identity_key('button:has-text("Save")', "button") == identity_key(
            "button:has-text('Save')", "button"
        )

    def test_collapses_whitespace(self):
        assert normalize_for_matching("  form   >  button ") == "form > button"

    def test_operator_attributes(self):
        assert normalize_for_matching('a[href^="/docs"]') == "a[href^=/docs]"
        assert normalize_for_matching("div[class*='card']") == "div[class*=card]"

    def test_engine_prefix_values(self):
        assert normalize_for_matching('text="Sign in"') == "text=Sign in"

    def test_empty(self):
        assert normalize_for_matching("") == ""

    def test_is_idempotent(self):
        for selector in ['button[type="submit"]', "'  .a   .b '", 'input[ name = "q" ]']:
            once = normalize_for_matching(selector)
            assert normalize_for_matching(once) == once


class TestIdentity:

    def test_identity_key_includes_type(self):
        assert identity_key('button[type="submit"]', "button") == "button[type=submit]|button"
        assert identity_key("#x", "button") != identity_key("#x", "link")

    def test_selectors_equivalent(self):
        assert selectors_equivalent('input[name="email"]', "input[name='email']")
        assert not selectors_equivalent('input[name="email"]', 'input[name="password"]')


# ============================================================================
# normalize_for_display
# ============================================================================


class TestNormalizeForDisplay:

    def test_hides_attribute_values(self):
        assert normalize_for_display('input[name="email"]') == 'input[name="..."]'

    def test_hides_engine_values(self):
        assert normalize_for_display('text="Sign in"') == 'text="..."'
        assert normalize_for_display("role=button") == 'role="..."'

    def test_hides_text_pseudo(self):
        assert normalize_for_display("button:has-text('Save')") == "button:text(...)"

    def test_truncates_long_selectors(self):
        display = normalize_for_display("div " * 60)
        assert len(display) == DISPLAY_MAX_LENGTH
        assert display.endswith("...")

    def test_distinct_selectors_may_collide(self):
        # Display forms are lossy; identity never uses them.
        a, b = 'input[name="email"]', 'input[name="password"]'
        assert normalize_for_display(a) == normalize_for_display(b)
        assert normalize_for_matching(a) != normalize_for_matching(b)


# ============================================================================
# classify_selector
# ============================================================================


class TestClassifySelector:

    @pytest.mark.parametrize("text,expected", [
        ("//div[@id='main']//button", ("xpath", "//div[@id='main']//button")),
        ("(//button)[2]", ("xpath", "(//button)[2]")),
        ("xpath=//a", ("xpath", "//a")),
        ("getByRole('button', { name: 'Save' })", ("role", "button")),
        ('getByText("Sign in")', ("text", "Sign in")),
        ("getByLabel('Email')", ("label", "Email")),
        ("getByPlaceholder('Search')", ("placeholder", "Search")),
        ("getByAltText('Logo')", ("alt-text", "Logo")),
        ("getByTitle('Close')", ("alt-text", "Close")),
        ("getByTestId('checkout')", ("test-id", "checkout")),
        ("text=Sign in", ("text", "Sign in")),
        ('text="Sign in"', ("text", "Sign in")),
        ('role=button[name="Save"]', ("role", "button")),
        ("data-testid=login", ("test-id", "login")),
        ("placeholder=Search", ("placeholder", "Search")),
        ('[data-testid="submit-btn"]', ("test-id", "submit-btn")),
        ("#login .btn", ("css", "#login .btn")),
    ])
    def test_default_rules(self, text, expected):
        assert classify_selector(text) == expected

    def test_first_rule_wins(self):
        # An XPath containing getByRole-looking text is still XPath.
        assert classify_selector("//span[text()=\"getByRole('x')\"]")[0] == "xpath"

    def test_custom_rule_table(self):
        rules = (
            SelectorRule("cy", re.compile(r"^cy:(.+)$"), "test-id", lambda m: m.group(1)),
            *DEFAULT_RULES,
        )
        assert classify_selector("cy:checkout", rules) == ("test-id", "checkout")
        assert classify_selector("cy:checkout") == ("css", "cy:checkout")


class TestDeclaredValue:

    def test_extracts_from_own_dialect(self):
        assert declared_value(RawSelector(raw="getByRole('button')", kind="role")) == "button"

    def test_bare_value(self):
        assert declared_value(RawSelector(raw="'checkout'", kind="test-id")) == "checkout"

    def test_css_and_xpath_use_raw_text(self):
        assert declared_value(RawSelector(raw="#login", kind="css")) == "#login"
        assert declared_value(RawSelector(raw="//a", kind="xpath")) == "//a"

    def test_foreign_syntax_has_no_value(self):
        assert declared_value(RawSelector(raw="text=Save", kind="role")) is None
        assert declared_value(RawSelector(raw="getByText('Save')", kind="test-id")) is None


class TestRawSelector:

    def test_normalized_is_filled(self):
        selector = RawSelector(raw='button[type="submit"]')
        assert selector.normalized == "button[type=submit]"
        assert selector.kind == "css"

    def test_unknown_kind_is_kept(self):
        assert RawSelector(raw="x", kind="shadow").kind == "shadow"
