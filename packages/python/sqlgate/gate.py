"""Confirmation gate: decides whether SQL may run without a human."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from .confirm import ConfirmationRequest

if TYPE_CHECKING:
    from .analyzer import SqlAnalyzer
    from .channels import ReviewChannel
    from .result import AnalysisResult


class Verdict(str, Enum):
    """How a gate decision was reached."""

    AUTO_APPROVED = "auto_approved"
    APPROVED = "approved"
    USER_REJECTED = "user_rejected"
    CHANNEL_ERROR = "channel_error"


@dataclass(frozen=True)
class ReviewPolicy:
    """Policy switches for the gate.

    Attributes:
        always_review_ddl: Also require review for DDL that matched no
            keyword or action. DDL is auto-committed on most engines.
    """

    always_review_ddl: bool = False


@dataclass(frozen=True)
class ReviewContext:
    """Caller-supplied metadata shown to the reviewer."""

    connection: str = "default"
    source_label: str | None = None
    database: str | None = None
    schema: str | None = None
    driver: str | None = None


@dataclass(frozen=True)
class GateDecision:
    """Outcome of running one submission through the gate.

    Attributes:
        verdict: How the decision was reached.
        analysis: The analysis the decision is based on.
        review_required: Whether a human was asked.
        error: Channel failure message, for CHANNEL_ERROR only.
    """

    verdict: Verdict
    analysis: AnalysisResult
    review_required: bool
    error: str | None = None

    @property
    def approved(self) -> bool:
        return self.verdict in (Verdict.AUTO_APPROVED, Verdict.APPROVED)

    @property
    def rejected(self) -> bool:
        return not self.approved

    def audit_action(self) -> str | None:
        """Audit action for a rejection, None for approvals."""
        if self.verdict is Verdict.USER_REJECTED:
            return "USER_REJECTED"
        if self.verdict is Verdict.CHANNEL_ERROR:
            return f"CONFIRM_ERROR: {self.error}"
        return None

    def __bool__(self) -> bool:
        return self.approved


class ConfirmationGate:
    """Runs analysis and, when needed, human review for SQL submissions.

    Safe SQL is approved without contacting the channel. Dangerous SQL
    (and DDL, when the policy says so) is presented to the review channel;
    only an explicit approval lets it through. A channel exception is a
    rejection, never an approval.

    Example:
        gate = ConfirmationGate(
            analyzer=SqlAnalyzer(action_keywords=["DELETE", "DROP"]),
            channel=default_review_channel(timeout=300),
            policy=ReviewPolicy(always_review_ddl=True),
        )

        decision = gate.evaluate("DROP TABLE staging", ReviewContext("warehouse"))
        if not decision.approved:
            print(decision.audit_action())
    """

    def __init__(
        self,
        analyzer: SqlAnalyzer,
        channel: ReviewChannel,
        policy: ReviewPolicy | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.channel = channel
        self.policy = policy or ReviewPolicy()

    def requires_review(self, analysis: AnalysisResult) -> bool:
        """True if a human must approve this analysis."""
        return analysis.dangerous or (self.policy.always_review_ddl and analysis.is_ddl)

    def decide(self, analysis: AnalysisResult, context: ReviewContext | None = None) -> GateDecision:
        """Decide an already analyzed submission, asking the channel if needed."""
        if not self.requires_review(analysis):
            return GateDecision(Verdict.AUTO_APPROVED, analysis, review_required=False)

        context = context or ReviewContext()
        request = ConfirmationRequest.from_analysis(analysis, context)
        try:
            approved = self.channel.present(request)
        except Exception as e:
            logger.warning("Review channel {} failed: {}", self.channel.name, e)
            return GateDecision(Verdict.CHANNEL_ERROR, analysis, review_required=True, error=str(e))

        verdict = Verdict.APPROVED if approved else Verdict.USER_REJECTED
        logger.info(
            "SQL review on {}: {} (type={}, keywords={}, actions={})",
            context.connection,
            verdict.value,
            analysis.statement_type,
            list(analysis.matched_keywords),
            list(analysis.matched_actions),
        )
        return GateDecision(verdict, analysis, review_required=True)

    def evaluate(self, sql: str | None, context: ReviewContext | None = None) -> GateDecision:
        """Analyze ``sql`` and decide it."""
        return self.decide(self.analyzer.analyze(sql), context)
