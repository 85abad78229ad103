"""
🤖 AI SIGNAL DETECTOR
=====================
Turns analysis prose (email digests, transcript summaries, document
analysis) into AI-confirmed deal signals with supporting evidence.

WHY PATTERNS:
- Detection is phrase based: each rule is a regex alternation over the
  phrases buyers actually use ("board meeting", "legal review", ...)
- Rules are data. Add a SignalRule to SIGNAL_RULES (or pass your own
  table to SignalDetector) to detect something new
- Every fired rule stores the sentence(s) that triggered it so a user
  can see why a flag is set

Detection only ever sets signals; it never clears one set earlier.
"""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Pattern, Sequence

from loguru import logger

from scoring.config_resolver import ConfigResolver
from signals.evidence import extract_evidence

if TYPE_CHECKING:
    from database.repository import DealHealthRepository


@dataclass(frozen=True)
class SignalRule:
    """One detector: a pattern and the deal fields it writes when it matches."""
    name: str
    pattern: str
    flag_field: str
    source_field: Optional[str] = None
    evidence_field: Optional[str] = None
    confidence_field: Optional[str] = None
    confidence: Optional[float] = None
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # Flattened analysis joins fields with newlines; ".*" must span them
        object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE | re.DOTALL))


SIGNAL_RULES: List[SignalRule] = [
    SignalRule(
        name="close_date_confirmed",
        pattern=r"confirmed.*close|close.*date.*agreed|target.*date.*confirmed|committed.*by",
        flag_field="close_date_ai_confirmed",
        source_field="close_date_ai_source",
        evidence_field="close_date_ai_evidence",
        confidence_field="close_date_ai_confidence",
        confidence=0.8,
    ),
    SignalRule(
        name="buyer_event",
        pattern=r"budget.*cycle|board.*meeting|fiscal.*year|quarter.*end|procurement.*cycle",
        flag_field="buyer_event_ai_confirmed",
        source_field="buyer_event_ai_source",
        evidence_field="buyer_event_ai_evidence",
    ),
    SignalRule(
        name="legal_engaged",
        pattern=(
            r"legal.*review|procurement|contract.*redline|\bmsa\b|\bnda\b|\bsow\b"
            r"|vendor.*approval|legal.*team"
        ),
        flag_field="legal_engaged_ai",
        source_field="legal_engaged_source",
        evidence_field="legal_engaged_evidence",
    ),
    SignalRule(
        name="security_review",
        pattern=(
            r"security.*review|soc ?2|penetration.*test|\bit\b.*review|information.*security"
            r"|security.*questionnaire|compliance.*review"
        ),
        flag_field="security_review_ai",
        source_field="security_review_source",
        evidence_field="security_review_evidence",
    ),
    SignalRule(
        name="scope_approved",
        pattern=(
            r"scope.*approved|agreed.*on.*scope|proposal.*accepted|confirmed.*the.*plan"
            r"|approved.*the.*proposal"
        ),
        flag_field="scope_approved_ai",
        source_field="scope_approved_source",
        evidence_field="scope_approved_evidence",
    ),
    SignalRule(
        name="price_sensitivity",
        pattern=(
            r"budget.*constraint|too.*expensive|price.*concern|can.*you.*do.*better"
            r"|need.*to.*justify.*cost|checking.*with.*finance"
        ),
        flag_field="price_sensitivity_ai",
        source_field="price_sensitivity_source",
        evidence_field="price_sensitivity_evidence",
    ),
    SignalRule(
        name="discount_pending",
        pattern=r"discount.*request|pricing.*exception|approval.*needed.*discount|special.*pricing",
        flag_field="discount_pending_ai",
        source_field="discount_pending_source",
        evidence_field="discount_pending_evidence",
    ),
]


def analysis_text(analysis: Any) -> str:
    """Flatten an analysis result (text, or nested dict/list of text) to prose."""
    if analysis is None:
        return ""
    if isinstance(analysis, str):
        return analysis
    if isinstance(analysis, dict):
        return "\n".join(analysis_text(v) for v in analysis.values() if v is not None)
    if isinstance(analysis, (list, tuple)):
        return "\n".join(analysis_text(v) for v in analysis if v is not None)
    return str(analysis)


class SignalDetector:
    """
    Applies SIGNAL_RULES to analysis output and writes matches onto the deal.

    Usage:
        detector = SignalDetector(repo)
        applied = detector.apply_ai_signals(
            deal_id, summary_text, "transcript", user_id, tenant_id
        )
    """

    def __init__(
        self,
        repository: "DealHealthRepository",
        config_resolver: Optional[ConfigResolver] = None,
        rules: Optional[Sequence[SignalRule]] = None
    ):
        self.repo = repository
        self.configs = config_resolver or ConfigResolver(repository)
        self.rules = list(rules) if rules is not None else SIGNAL_RULES

    def detect(self, text: str, source_label: str) -> Dict[str, Any]:
        """
        Run every rule over `text` (no database access).

        Returns:
            Deal column -> value for every rule that fired
        """
        signals: Dict[str, Any] = {}
        for rule in self.rules:
            if not rule.regex.search(text):
                continue

            signals[rule.flag_field] = True
            if rule.source_field:
                signals[rule.source_field] = source_label
            if rule.confidence_field and rule.confidence is not None:
                signals[rule.confidence_field] = rule.confidence
            if rule.evidence_field:
                evidence = extract_evidence(text, rule.regex)
                if evidence:
                    signals[rule.evidence_field] = evidence

            logger.debug(f"Signal '{rule.name}' fired from {source_label}")
        return signals

    def apply_ai_signals(
        self,
        deal_id: str,
        analysis: Any,
        source_label: str,
        user_id: str,
        tenant_id: str
    ) -> Dict[str, Any]:
        """
        Detect signals in analysis output and write them onto the deal.

        Args:
            deal_id: Deal to update
            analysis: Analysis text (or a dict/list of text fields)
            source_label: What produced the text, e.g. "email" or "transcript"
            user_id: User whose config applies
            tenant_id: Tenant the deal belongs to

        Returns:
            The signals applied (empty when AI is disabled or nothing fired)
        """
        if not self.configs.is_ai_enabled(user_id, tenant_id):
            logger.info(f"AI signals skipped for deal {deal_id} (AI disabled for tenant)")
            return {}

        text = analysis_text(analysis)
        if not text.strip():
            return {}

        signals = self.detect(text, source_label)
        if signals:
            # Partial update: untouched columns keep their values
            self.repo.update_deal(deal_id, tenant_id, signals)
            fired = [k for k, v in signals.items() if v is True]
            logger.info(f"Applied {len(fired)} AI signal(s) to deal {deal_id}: {fired}")

        return signals
