"""Tests for the ConfirmationGate."""

import threading

import pytest

from sqlgate import (
    BoundedReviewChannel,
    CallableReviewChannel,
    ConfirmationGate,
    ConfirmationRequest,
    ReviewContext,
    ReviewPolicy,
    SqlAnalyzer,
    Verdict,
)
from sqlgate.exceptions import ReviewChannelError


class RecordingChannel(CallableReviewChannel):
    """Channel that returns a fixed verdict and remembers its requests."""

    def __init__(self, verdict: bool = True) -> None:
        super().__init__(self._answer, name="recording")
        self.verdict = verdict
        self.requests: list[ConfirmationRequest] = []

    def _answer(self, request: ConfirmationRequest) -> bool:
        self.requests.append(request)
        return self.verdict


@pytest.fixture
def analyzer() -> SqlAnalyzer:
    return SqlAnalyzer(whole_text_keywords=["salary"], action_keywords=["DELETE", "DROP"])


class TestAutoApproval:
    """Test SQL that never reaches a human."""

    def test_safe_sql_skips_channel(self, analyzer: SqlAnalyzer) -> None:
        """Non-dangerous SQL is approved without invoking the channel."""
        channel = RecordingChannel(verdict=False)
        decision = ConfirmationGate(analyzer, channel).evaluate("SELECT * FROM t")
        assert decision.verdict is Verdict.AUTO_APPROVED
        assert decision.approved is True
        assert decision.review_required is False
        assert channel.requests == []

    def test_ddl_not_reviewed_by_default(self, analyzer: SqlAnalyzer) -> None:
        """DDL without keyword hits is approved when the policy is off."""
        channel = RecordingChannel(verdict=False)
        decision = ConfirmationGate(analyzer, channel).evaluate("CREATE TABLE t (id INT)")
        assert decision.approved is True
        assert channel.requests == []

    def test_audit_action_none_for_approval(self, analyzer: SqlAnalyzer) -> None:
        """Approvals have no rejection action."""
        decision = ConfirmationGate(analyzer, RecordingChannel()).evaluate("SELECT 1")
        assert decision.audit_action() is None
        assert bool(decision) is True


class TestReview:
    """Test SQL that requires a human verdict."""

    def test_dangerous_sql_approved(self, analyzer: SqlAnalyzer) -> None:
        """An explicit approval lets dangerous SQL through."""
        channel = RecordingChannel(verdict=True)
        decision = ConfirmationGate(analyzer, channel).evaluate("DELETE FROM t WHERE id = 1")
        assert decision.verdict is Verdict.APPROVED
        assert decision.review_required is True
        assert len(channel.requests) == 1

    def test_dangerous_sql_rejected(self, analyzer: SqlAnalyzer) -> None:
        """An explicit rejection blocks execution."""
        decision = ConfirmationGate(analyzer, RecordingChannel(verdict=False)).evaluate("DROP TABLE t")
        assert decision.verdict is Verdict.USER_REJECTED
        assert decision.rejected is True
        assert decision.audit_action() == "USER_REJECTED"

    def test_always_review_ddl(self, analyzer: SqlAnalyzer) -> None:
        """With the policy on, any DDL goes to the channel."""
        channel = RecordingChannel(verdict=True)
        gate = ConfirmationGate(analyzer, channel, ReviewPolicy(always_review_ddl=True))
        decision = gate.evaluate("CREATE TABLE t (id INT)")
        assert decision.verdict is Verdict.APPROVED
        assert channel.requests[0].is_ddl is True

    def test_parse_failure_requires_review(self, analyzer: SqlAnalyzer) -> None:
        """Unparseable SQL is never auto-approved."""
        channel = RecordingChannel(verdict=False)
        decision = ConfirmationGate(analyzer, channel).evaluate("SELEKT * FORM t")
        assert decision.verdict is Verdict.USER_REJECTED
        assert channel.requests[0].statement_type == "SQL Error"

    def test_request_carries_context(self, analyzer: SqlAnalyzer) -> None:
        """Caller context is shown to the reviewer."""
        channel = RecordingChannel()
        context = ReviewContext(connection="prod", source_label="File: /tmp/a.sql", driver="oracle")
        ConfirmationGate(analyzer, channel).evaluate("DELETE FROM payroll WHERE salary > 0", context)
        request = channel.requests[0]
        assert request.connection == "prod"
        assert request.source_label == "File: /tmp/a.sql"
        assert request.driver == "oracle"
        assert request.matched_keywords == ("salary", "DELETE")
        assert request.matched_actions == ("DELETE",)

    def test_decide_uses_given_analysis(self, analyzer: SqlAnalyzer) -> None:
        """decide() works on an analysis obtained separately."""
        analysis = analyzer.analyze("DROP TABLE t")
        decision = ConfirmationGate(analyzer, RecordingChannel()).decide(analysis)
        assert decision.analysis is analysis
        assert decision.approved is True


class TestChannelFailure:
    """Test faults while asking for a verdict."""

    def test_exception_is_rejection(self, analyzer: SqlAnalyzer) -> None:
        """A channel exception rejects and is distinguishable from a user choice."""

        def broken(request: ConfirmationRequest) -> bool:
            raise ReviewChannelError("dialog crashed")

        decision = ConfirmationGate(analyzer, CallableReviewChannel(broken)).evaluate("DROP TABLE t")
        assert decision.verdict is Verdict.CHANNEL_ERROR
        assert decision.approved is False
        assert decision.error == "dialog crashed"
        assert decision.audit_action() == "CONFIRM_ERROR: dialog crashed"

    def test_any_exception_is_caught(self, analyzer: SqlAnalyzer) -> None:
        """Unexpected errors are treated the same way."""

        def broken(request: ConfirmationRequest) -> bool:
            raise RuntimeError("boom")

        decision = ConfirmationGate(analyzer, CallableReviewChannel(broken)).evaluate("DROP TABLE t")
        assert decision.verdict is Verdict.CHANNEL_ERROR

    def test_timeout_is_rejection(self, analyzer: SqlAnalyzer) -> None:
        """A channel that exceeds the bound resolves to not approved."""
        release = threading.Event()

        def slow(request: ConfirmationRequest) -> bool:
            release.wait(5)
            return True

        channel = BoundedReviewChannel(CallableReviewChannel(slow), timeout=0.2)
        try:
            decision = ConfirmationGate(analyzer, channel).evaluate("DROP TABLE t")
        finally:
            release.set()
        assert decision.approved is False
        assert decision.verdict is Verdict.USER_REJECTED

    def test_failure_does_not_affect_next_submission(self, analyzer: SqlAnalyzer) -> None:
        """Each submission is independent."""
        calls = []

        def flaky(request: ConfirmationRequest) -> bool:
            calls.append(request)
            if len(calls) == 1:
                raise RuntimeError("first call fails")
            return True

        gate = ConfirmationGate(analyzer, CallableReviewChannel(flaky))
        assert gate.evaluate("DROP TABLE a").verdict is Verdict.CHANNEL_ERROR
        assert gate.evaluate("DROP TABLE b").verdict is Verdict.APPROVED
