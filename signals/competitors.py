"""
🥊 COMPETITOR DETECTION
=======================
Scans analysis text for competitors from the tenant's registry and
flags the deal as competitive, with the sentence each name appeared in.

A competitor matches when its name or any alias occurs anywhere in the
text (case-insensitive substring).
"""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

from loguru import logger

from scoring.config_resolver import ConfigResolver
from scoring.exceptions import CompetitorNotFoundError, ConfigValidationError
from scoring.models import Competitor, CompetitorMatch
from signals.detector import analysis_text
from signals.evidence import extract_surrounding_sentence

if TYPE_CHECKING:
    from database.repository import DealHealthRepository


def find_matches(text: str, competitors: List[Competitor]) -> List[CompetitorMatch]:
    """Match registry entries against text; first matching name wins per competitor."""
    haystack = text.lower()
    found = []
    for comp in competitors:
        hit = next((n for n in comp.names if n.lower() in haystack), None)
        if hit is None:
            continue
        found.append(CompetitorMatch(
            id=comp.id,
            name=comp.name,
            matched=hit,
            snippet=extract_surrounding_sentence(text, hit),
        ))
    return found


def describe_matches(matches: List[CompetitorMatch]) -> str:
    """One clause per matched competitor, for the deal's evidence field."""
    clauses = []
    for m in matches:
        clause = m.name if m.matched == m.name else f'{m.name} (as "{m.matched}")'
        if m.snippet:
            clause += f': "{m.snippet}"'
        clauses.append(clause)
    return "Competitors mentioned: " + "; ".join(clauses)


class CompetitorDetector:
    """
    Usage:
        detector = CompetitorDetector(repo)
        matches = detector.detect_competitors(deal_id, user_id, tenant_id, text)
    """

    def __init__(
        self,
        repository: "DealHealthRepository",
        config_resolver: Optional[ConfigResolver] = None
    ):
        self.repo = repository
        self.configs = config_resolver or ConfigResolver(repository)

    def detect_competitors(
        self,
        deal_id: str,
        user_id: str,
        tenant_id: str,
        text: Any
    ) -> List[CompetitorMatch]:
        """
        Flag the deal as competitive if any registered competitor is mentioned.

        Returns:
            Matched competitors (empty when AI is disabled or nothing matched)
        """
        if not self.configs.is_ai_enabled(user_id, tenant_id):
            logger.info(f"Competitor detection skipped for deal {deal_id} (AI disabled for tenant)")
            return []

        text = analysis_text(text)
        if not text.strip():
            return []

        matches = find_matches(text, self.repo.list_competitors(tenant_id))
        if not matches:
            return []

        self.repo.update_deal(deal_id, tenant_id, {
            "competitive_deal_ai": True,
            "competitive_competitors": [m.model_dump() for m in matches],
            "competitive_evidence": describe_matches(matches),
        })
        logger.info(f"Deal {deal_id}: competitors detected {[m.name for m in matches]}")
        return matches


class CompetitorRegistry:
    """Tenant-scoped management of competitor names and aliases."""

    def __init__(self, repository: "DealHealthRepository"):
        self.repo = repository

    @staticmethod
    def _clean(name: Optional[str], aliases: Optional[List[str]], **extra) -> Dict[str, Any]:
        if not name or not name.strip():
            raise ConfigValidationError("Competitor name required")
        cleaned = []
        for alias in aliases or []:
            alias = alias.strip()
            if alias and alias.lower() != name.strip().lower() and alias not in cleaned:
                cleaned.append(alias)
        return {"name": name.strip(), "aliases": cleaned, **extra}

    def list_competitors(self, tenant_id: str) -> List[Competitor]:
        return self.repo.list_competitors(tenant_id)

    def create(
        self,
        tenant_id: str,
        name: str,
        aliases: Optional[List[str]] = None,
        website: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Competitor:
        fields = self._clean(name, aliases, website=website, notes=notes)
        competitor = self.repo.create_competitor(tenant_id, fields)
        logger.info(f"Added competitor {competitor.name} for tenant {tenant_id}")
        return competitor

    def update(
        self,
        competitor_id: str,
        tenant_id: str,
        name: str,
        aliases: Optional[List[str]] = None,
        website: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Competitor:
        fields = self._clean(name, aliases, website=website, notes=notes)
        competitor = self.repo.update_competitor(competitor_id, tenant_id, fields)
        if competitor is None:
            raise CompetitorNotFoundError(competitor_id)
        return competitor

    def delete(self, competitor_id: str, tenant_id: str) -> None:
        if not self.repo.delete_competitor(competitor_id, tenant_id):
            raise CompetitorNotFoundError(competitor_id)
        logger.info(f"Deleted competitor {competitor_id} for tenant {tenant_id}")
