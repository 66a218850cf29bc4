"""Rule engine for config-driven BNI follow-up recommendations.

Each rule inspects a contact's relationship features and, when it fires,
emits a prioritised follow-up action. Every evaluation leaves an audit trace.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class RuleType(str, Enum):
    """Rule types."""
    STALE_CONTACT = "stale_contact"
    GAINS_MISSING = "gains_missing"
    NO_MEETINGS = "no_meetings"
    MEETING_OVERDUE = "meeting_overdue"
    REFERRAL_OPPORTUNITY = "referral_opportunity"
    RECIPROCITY_IMBALANCE = "reciprocity_imbalance"


class RuleStatus(str, Enum):
    """Rule evaluation status."""
    TRIGGERED = "TRIGGERED"
    CLEAR = "CLEAR"
    SKIP = "SKIP"


class Priority(str, Enum):
    """Follow-up priority, highest first."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


@dataclass
class RuleTrace:
    """Audit trace for a single rule evaluation."""
    rule_id: str
    name: str
    status: RuleStatus
    reason: str


@dataclass
class FollowUpAction:
    """Recommended next step with a contact."""
    action: str
    priority: Priority
    rule_id: str


@dataclass
class RuleConfig:
    """Configuration for a single rule."""
    id: str
    name: str
    type: RuleType
    action: str
    priority: Priority
    params: dict[str, Any] = field(default_factory=dict)


def default_follow_up_rules() -> list[RuleConfig]:
    """Standard BNI follow-up rules, in evaluation order."""
    return [
        RuleConfig(
            id="stale_contact",
            name="No contact for a month",
            type=RuleType.STALE_CONTACT,
            action="Schedule catch-up meeting",
            priority=Priority.HIGH,
            params={"max_days": 30},
        ),
        RuleConfig(
            id="gains_missing",
            name="No completed GAINS meeting",
            type=RuleType.GAINS_MISSING,
            action="Conduct GAINS meeting",
            priority=Priority.HIGH,
        ),
        RuleConfig(
            id="no_meetings",
            name="Never met",
            type=RuleType.NO_MEETINGS,
            action="Schedule first meeting",
            priority=Priority.HIGH,
        ),
        RuleConfig(
            id="meeting_overdue",
            name="Meeting overdue",
            type=RuleType.MEETING_OVERDUE,
            action="Schedule meeting (overdue)",
            priority=Priority.MEDIUM,
            params={"max_days": 90},
        ),
        RuleConfig(
            id="referral_opportunity",
            name="Known ideal referral, none given",
            type=RuleType.REFERRAL_OPPORTUNITY,
            action="Find referral opportunity",
            priority=Priority.MEDIUM,
        ),
        RuleConfig(
            id="reciprocity_imbalance",
            name="Receiving more than giving",
            type=RuleType.RECIPROCITY_IMBALANCE,
            action="Give referral to balance relationship",
            priority=Priority.LOW,
            params={"tolerance": 2},
        ),
    ]


class FollowUpRuleEngine:
    """Evaluates follow-up rules against a contact's relationship features.

    Expected feature keys: ``days_since_last_contact``, ``gains_completed``,
    ``meeting_count``, ``has_last_meeting``, ``ideal_referral``,
    ``referrals_given``, ``referrals_received``.
    """

    def __init__(self, rules: list[RuleConfig] | None = None):
        self.rules = rules if rules is not None else default_follow_up_rules()
        logger.debug(f"Initialized follow-up rule engine with {len(self.rules)} rules")

    def evaluate(self, features: dict[str, Any]) -> tuple[list[FollowUpAction], list[RuleTrace]]:
        """Evaluate every rule.

        Returns:
            Tuple of (actions sorted high -> low priority, rule_traces)
        """
        actions: list[FollowUpAction] = []
        traces: list[RuleTrace] = []

        for rule in self.rules:
            trace = self._evaluate_rule(rule, features)
            traces.append(trace)
            if trace.status == RuleStatus.TRIGGERED:
                actions.append(FollowUpAction(action=rule.action, priority=rule.priority, rule_id=rule.id))

        # sort is stable: equal priorities keep rule order
        actions.sort(key=lambda a: PRIORITY_ORDER[a.priority])
        return actions, traces

    def _evaluate_rule(self, rule: RuleConfig, features: dict[str, Any]) -> RuleTrace:
        evaluators = {
            RuleType.STALE_CONTACT: self._eval_stale_contact,
            RuleType.GAINS_MISSING: self._eval_gains_missing,
            RuleType.NO_MEETINGS: self._eval_no_meetings,
            RuleType.MEETING_OVERDUE: self._eval_meeting_overdue,
            RuleType.REFERRAL_OPPORTUNITY: self._eval_referral_opportunity,
            RuleType.RECIPROCITY_IMBALANCE: self._eval_reciprocity_imbalance,
        }
        evaluator = evaluators.get(rule.type)
        if evaluator is None:
            logger.warning(f"Unknown rule type: {rule.type}")
            return self._trace(rule, RuleStatus.SKIP, f"Unknown rule type: {rule.type}")

        try:
            fired, reason = evaluator(rule, features)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Rule evaluation failed for {rule.id}: {e}")
            return self._trace(rule, RuleStatus.SKIP, f"Evaluation error: {e}")

        return self._trace(rule, RuleStatus.TRIGGERED if fired else RuleStatus.CLEAR, reason)

    @staticmethod
    def _trace(rule: RuleConfig, status: RuleStatus, reason: str) -> RuleTrace:
        return RuleTrace(rule_id=rule.id, name=rule.name, status=status, reason=reason)

    def _eval_stale_contact(self, rule: RuleConfig, f: dict[str, Any]) -> tuple[bool, str]:
        days = f["days_since_last_contact"]
        max_days = rule.params.get("max_days", 30)
        return days > max_days, f"{days} days since last contact (limit {max_days})"

    def _eval_gains_missing(self, rule: RuleConfig, f: dict[str, Any]) -> tuple[bool, str]:
        completed = bool(f["gains_completed"])
        return not completed, "GAINS meeting completed" if completed else "No completed GAINS meeting"

    def _eval_no_meetings(self, rule: RuleConfig, f: dict[str, Any]) -> tuple[bool, str]:
        count = f["meeting_count"]
        return count == 0, f"{count} meetings recorded"

    def _eval_meeting_overdue(self, rule: RuleConfig, f: dict[str, Any]) -> tuple[bool, str]:
        days = f["days_since_last_contact"]
        max_days = rule.params.get("max_days", 90)
        fired = f["meeting_count"] > 0 and bool(f["has_last_meeting"]) and days > max_days
        return fired, f"{days} days since last contact, {f['meeting_count']} meetings"

    def _eval_referral_opportunity(self, rule: RuleConfig, f: dict[str, Any]) -> tuple[bool, str]:
        ideal = f.get("ideal_referral")
        given = f["referrals_given"]
        return bool(ideal) and given == 0, f"Ideal referral {'known' if ideal else 'unknown'}, {given} given"

    def _eval_reciprocity_imbalance(self, rule: RuleConfig, f: dict[str, Any]) -> tuple[bool, str]:
        given = f["referrals_given"]
        received = f["referrals_received"]
        tolerance = rule.params.get("tolerance", 2)
        return received > given + tolerance, f"{received} received vs {given} given"
