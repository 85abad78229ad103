"""
🔎 TEXT SIGNAL DETECTION
========================
Side-channel writers that turn analysis text into deal evidence before
the next scoring pass reads it.

Components:
- SignalDetector:     pattern rules -> AI-confirmed signals + evidence
- CompetitorDetector: competitor registry names/aliases -> competitive flag
- CompetitorRegistry: tenant-scoped competitor list management

Usage:
    from signals import SignalDetector, CompetitorDetector

    SignalDetector(repo).apply_ai_signals(deal_id, text, "email", user_id, tenant_id)
    CompetitorDetector(repo).detect_competitors(deal_id, user_id, tenant_id, text)
"""

from .competitors import CompetitorDetector, CompetitorRegistry
from .detector import SIGNAL_RULES, SignalDetector, SignalRule
from .evidence import extract_evidence, extract_surrounding_sentence

__all__ = [
    "SignalDetector",
    "SignalRule",
    "SIGNAL_RULES",
    "CompetitorDetector",
    "CompetitorRegistry",
    "extract_evidence",
    "extract_surrounding_sentence",
]
