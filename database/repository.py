"""
🗄️ DEAL HEALTH REPOSITORY
==========================
Data-access interface for the deal health engine.

The engine, config resolver and text detectors never talk to Supabase
directly; they receive a DealHealthRepository and get typed records back.
Every read and write is scoped by tenant.

Usage:
    from database.repository import SupabaseDealHealthRepository
    from scoring import ScoringEngine

    engine = ScoringEngine(SupabaseDealHealthRepository())
    result = engine.score_deal(deal_id, user_id, tenant_id)
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from loguru import logger

from scoring.models import (
    Competitor,
    Contact,
    Deal,
    Email,
    Meeting,
    ScoringConfig,
    ValueChange,
)
from scoring.parameters import CLOSED_STAGES

DEALS = "deals"
CONFIGS = "deal_health_config"
CONTACTS = "contacts"
DEAL_CONTACTS = "deal_contacts"
MEETINGS = "meetings"
EMAILS = "emails"
VALUE_HISTORY = "deal_value_history"
COMPETITORS = "competitors"


class DealHealthRepository(ABC):
    """Read/write operations the engine needs from the relational store."""

    # Reads used by scoreDeal (issued concurrently)

    @abstractmethod
    def get_deal(self, deal_id: str, tenant_id: str) -> Optional[Deal]:
        ...

    @abstractmethod
    def find_config(self, user_id: str, tenant_id: str) -> Optional[ScoringConfig]:
        ...

    @abstractmethod
    def list_contacts(self, deal_id: str, tenant_id: str) -> List[Contact]:
        """Contacts linked to the deal."""

    @abstractmethod
    def list_meetings(self, deal_id: str, tenant_id: str) -> List[Meeting]:
        """Meetings for the deal, newest first."""

    @abstractmethod
    def list_emails(self, deal_id: str, tenant_id: str) -> List[Email]:
        """Emails for the deal, oldest first."""

    @abstractmethod
    def list_value_history(self, deal_id: str, tenant_id: str) -> List[ValueChange]:
        """Value changes for the deal, newest first."""

    # Config

    @abstractmethod
    def insert_config(self, config: ScoringConfig) -> ScoringConfig:
        ...

    @abstractmethod
    def save_config(self, config: ScoringConfig) -> ScoringConfig:
        """Insert or replace the (tenant, user) config."""

    # Deals

    @abstractmethod
    def update_deal(self, deal_id: str, tenant_id: str, fields: Dict[str, Any]) -> None:
        """Partial update: only the given columns change."""

    @abstractmethod
    def list_open_deal_ids(self, tenant_id: str, owner_id: Optional[str] = None) -> List[str]:
        ...

    # Competitor registry

    @abstractmethod
    def list_competitors(self, tenant_id: str) -> List[Competitor]:
        """Registry entries, by name."""

    @abstractmethod
    def create_competitor(self, tenant_id: str, fields: Dict[str, Any]) -> Competitor:
        ...

    @abstractmethod
    def update_competitor(
        self, competitor_id: str, tenant_id: str, fields: Dict[str, Any]
    ) -> Optional[Competitor]:
        ...

    @abstractmethod
    def delete_competitor(self, competitor_id: str, tenant_id: str) -> bool:
        ...


class SupabaseDealHealthRepository(DealHealthRepository):
    """DealHealthRepository backed by the shared Supabase connection."""

    def __init__(self, connection=None):
        if connection is None:
            from database.connection import db as connection
        self.db = connection

    def get_deal(self, deal_id: str, tenant_id: str) -> Optional[Deal]:
        row = self.db.get_one(DEALS, {"id": deal_id, "tenant_id": tenant_id})
        return Deal.model_validate(row) if row else None

    def find_config(self, user_id: str, tenant_id: str) -> Optional[ScoringConfig]:
        row = self.db.get_one(CONFIGS, {"user_id": user_id, "tenant_id": tenant_id})
        return ScoringConfig.model_validate(row) if row else None

    def list_contacts(self, deal_id: str, tenant_id: str) -> List[Contact]:
        links = self.db.query(
            DEAL_CONTACTS,
            columns="contact_id",
            filters={"deal_id": deal_id, "tenant_id": tenant_id},
        )
        contact_ids = [link["contact_id"] for link in links if link.get("contact_id")]
        if not contact_ids:
            return []

        rows = self.db.query(CONTACTS, filters={"id": contact_ids, "tenant_id": tenant_id})
        return [Contact.model_validate(r) for r in rows]

    def list_meetings(self, deal_id: str, tenant_id: str) -> List[Meeting]:
        rows = self.db.query(
            MEETINGS,
            filters={"deal_id": deal_id, "tenant_id": tenant_id},
            order_by="-start_time",
        )
        return [Meeting.model_validate(r) for r in rows]

    def list_emails(self, deal_id: str, tenant_id: str) -> List[Email]:
        rows = self.db.query(
            EMAILS,
            filters={"deal_id": deal_id, "tenant_id": tenant_id},
            order_by="sent_at",
        )
        return [Email.model_validate(r) for r in rows]

    def list_value_history(self, deal_id: str, tenant_id: str) -> List[ValueChange]:
        rows = self.db.query(
            VALUE_HISTORY,
            filters={"deal_id": deal_id, "tenant_id": tenant_id},
            order_by="-changed_at",
        )
        return [ValueChange.model_validate(r) for r in rows]

    def insert_config(self, config: ScoringConfig) -> ScoringConfig:
        row = self.db.insert(CONFIGS, config.to_row())
        return ScoringConfig.model_validate(row) if row else config

    def save_config(self, config: ScoringConfig) -> ScoringConfig:
        row = self.db.upsert(CONFIGS, config.to_row(), conflict_columns=["tenant_id", "user_id"])
        return ScoringConfig.model_validate(row) if row else config

    def update_deal(self, deal_id: str, tenant_id: str, fields: Dict[str, Any]) -> None:
        updated = self.db.update_where(DEALS, {"id": deal_id, "tenant_id": tenant_id}, fields)
        if not updated:
            logger.warning(f"Deal update matched no rows: {deal_id}")

    def list_open_deal_ids(self, tenant_id: str, owner_id: Optional[str] = None) -> List[str]:
        filters = {"tenant_id": tenant_id}
        if owner_id:
            filters["owner_id"] = owner_id
        rows = self.db.query(
            DEALS,
            columns="id",
            filters=filters,
            exclude={"stage": list(CLOSED_STAGES)},
        )
        return [r["id"] for r in rows]

    def list_competitors(self, tenant_id: str) -> List[Competitor]:
        rows = self.db.query(COMPETITORS, filters={"tenant_id": tenant_id}, order_by="name")
        return [Competitor.model_validate(r) for r in rows]

    def create_competitor(self, tenant_id: str, fields: Dict[str, Any]) -> Competitor:
        row = self.db.insert(COMPETITORS, {**fields, "tenant_id": tenant_id})
        return Competitor.model_validate(row)

    def update_competitor(
        self, competitor_id: str, tenant_id: str, fields: Dict[str, Any]
    ) -> Optional[Competitor]:
        rows = self.db.update_where(
            COMPETITORS, {"id": competitor_id, "tenant_id": tenant_id}, fields
        )
        return Competitor.model_validate(rows[0]) if rows else None

    def delete_competitor(self, competitor_id: str, tenant_id: str) -> bool:
        return self.db.delete_where(COMPETITORS, {"id": competitor_id, "tenant_id": tenant_id}) > 0
