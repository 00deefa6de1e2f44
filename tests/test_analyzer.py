"""Tests for selector mismatch analysis."""

from uicov.coverage.analyzer import analyze_selector_mismatches, similarity
from uicov.models.element import ElementDescriptor
from uicov.models.selector import RawSelector


class TestAnalyzeSelectorMismatches:

    def test_all_matched(self, login_page):
        selectors = [RawSelector(raw="#login-btn"), RawSelector(raw="getByText('Create')", kind="text")]
        report = analyze_selector_mismatches(selectors, login_page)
        assert report.total_selectors == 2
        assert report.matched_selectors == 2
        assert report.unmatched_selectors == 0
        assert report.mismatches == []
        assert report.recommendations == []

    def test_near_miss(self, login_page, submit_button):
        report = analyze_selector_mismatches([RawSelector(raw="button:has-text('Sign up')")], login_page)
        mismatch = report.mismatches[0]
        assert mismatch.possible_matches == [submit_button]
        assert mismatch.match_score == 0.6
        assert mismatch.reason.startswith("CSS selector 'button:has-text('Sign up')' matches no elements")
        assert any("CSS selectors are failing" in r for r in report.recommendations)

    def test_missing_test_ids(self):
        elements = [ElementDescriptor(selector="#save", element_type="button", id="save")]
        report = analyze_selector_mismatches(
            [RawSelector(raw="getByTestId('checkout')", kind="test-id")], elements,
        )
        assert report.mismatches[0].reason.startswith("No elements on page have test IDs")
        assert report.recommendations[0] == (
            "Add data-testid attributes to interactive elements for more reliable testing"
        )

    def test_other_test_ids(self, login_page):
        report = analyze_selector_mismatches(
            [RawSelector(raw="getByTestId('checkout')", kind="test-id")], login_page,
        )
        assert report.mismatches[0].reason == "Test ID 'checkout' not found. Elements have different test IDs."

    def test_role_reason_lists_roles(self, login_page):
        report = analyze_selector_mismatches([RawSelector(raw="getByRole('tab')", kind="role")], login_page)
        assert report.mismatches[0].reason == "Role 'tab' not found. Available roles: button"

    def test_unknown_kind(self, login_page):
        report = analyze_selector_mismatches([RawSelector(raw="#login-btn", kind="shadow")], login_page)
        assert "unknown kind 'shadow'" in report.mismatches[0].reason

    def test_many_mismatches(self, login_page):
        selectors = [RawSelector(raw=f"#missing-{i}") for i in range(11)]
        report = analyze_selector_mismatches(selectors, login_page)
        assert report.unmatched_selectors == 11
        assert any(r.startswith("Large number of failing selectors (11)") for r in report.recommendations)


class TestSimilarity:

    def test_identical_selector(self, submit_button):
        assert similarity(RawSelector(raw=submit_button.selector), submit_button) == 1.0

    def test_weights(self, submit_button):
        # type compatible (css) + text overlap + attribute overlap
        selector = RawSelector(raw="form #login-btn:has-text('Sign in')")
        assert similarity(selector, submit_button) == 1.0

        assert similarity(RawSelector(raw="getByRole('tab')", kind="role"), submit_button) == 0.3
        assert similarity(RawSelector(raw="x", kind="placeholder"), submit_button) == 0.0
