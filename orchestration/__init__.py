"""
🩺 DEAL HEALTH ORCHESTRATION
============================
Wires the text detectors and the scoring engine into the calls the
application makes after each event.

Components:
- DealHealthService: score, re-score after manual flags, post-analysis hook

Usage:
    from database.repository import SupabaseDealHealthRepository
    from orchestration import DealHealthService

    service = DealHealthService(SupabaseDealHealthRepository())
    result = service.score_deal(deal_id, user_id, tenant_id)
    batch = service.score_all(user_id, tenant_id)
"""

from .deal_health import DealHealthService

__all__ = [
    "DealHealthService",
]
