"""Shared fixtures for deal health tests.

Tests run against InMemoryRepository, so no Supabase project is needed.
Every write the engine or a detector makes is recorded in `repo.writes`.
"""

import sys
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path so tests can import the packages
sys.path.insert(0, str(Path(__file__).parent.parent))

from database.repository import DealHealthRepository
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

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
TENANT = "tenant-1"
USER = "user-1"
DEAL = "deal-1"


class InMemoryRepository(DealHealthRepository):
    """Dict-backed repository that records every write."""

    def __init__(self):
        self.deals: Dict[str, Dict[str, Any]] = {}
        self.configs: Dict[tuple, ScoringConfig] = {}
        self.contacts: Dict[str, List[Contact]] = {}
        self.meetings: Dict[str, List[Meeting]] = {}
        self.emails: Dict[str, List[Email]] = {}
        self.history: Dict[str, List[ValueChange]] = {}
        self.competitors: Dict[str, Competitor] = {}
        self.writes: List[tuple] = []
        self.competitor_reads = 0

    # Seeding helpers

    def add_deal(self, deal_id: str = DEAL, tenant_id: str = TENANT, **fields) -> Dict[str, Any]:
        row = {"id": deal_id, "tenant_id": tenant_id, "name": "Test Deal", "stage": "negotiation"}
        row.update(fields)
        self.deals[deal_id] = row
        return row

    def set_config(self, config: ScoringConfig) -> None:
        self.configs[(config.tenant_id, config.user_id)] = config

    def deal_writes(self) -> List[tuple]:
        return [w for w in self.writes if w[0] == "update_deal"]

    # DealHealthRepository

    def get_deal(self, deal_id, tenant_id):
        row = self.deals.get(deal_id)
        if row is None or row.get("tenant_id") != tenant_id:
            return None
        return Deal.model_validate(row)

    def find_config(self, user_id, tenant_id):
        return self.configs.get((tenant_id, user_id))

    def list_contacts(self, deal_id, tenant_id):
        return list(self.contacts.get(deal_id, []))

    def list_meetings(self, deal_id, tenant_id):
        return sorted(self.meetings.get(deal_id, []), key=lambda m: m.start_time, reverse=True)

    def list_emails(self, deal_id, tenant_id):
        return sorted(self.emails.get(deal_id, []), key=lambda e: e.sent_at)

    def list_value_history(self, deal_id, tenant_id):
        return sorted(self.history.get(deal_id, []), key=lambda h: h.changed_at, reverse=True)

    def insert_config(self, config):
        self.writes.append(("insert_config", config.user_id, config.to_row()))
        self.set_config(config)
        return config

    def save_config(self, config):
        self.writes.append(("save_config", config.user_id, config.to_row()))
        self.set_config(config)
        return config

    def update_deal(self, deal_id, tenant_id, fields):
        self.writes.append(("update_deal", deal_id, dict(fields)))
        if deal_id in self.deals:
            self.deals[deal_id].update(fields)

    def list_open_deal_ids(self, tenant_id, owner_id=None):
        return [
            row["id"] for row in self.deals.values()
            if row.get("tenant_id") == tenant_id
            and row.get("stage") not in CLOSED_STAGES
            and (owner_id is None or row.get("owner_id") == owner_id)
        ]

    def list_competitors(self, tenant_id):
        self.competitor_reads += 1
        return sorted(
            (c for c in self.competitors.values() if c.tenant_id == tenant_id),
            key=lambda c: c.name,
        )

    def create_competitor(self, tenant_id, fields):
        competitor = Competitor(id=str(uuid.uuid4()), tenant_id=tenant_id, **fields)
        self.writes.append(("create_competitor", competitor.id, dict(fields)))
        self.competitors[competitor.id] = competitor
        return competitor

    def update_competitor(self, competitor_id, tenant_id, fields):
        current = self.competitors.get(competitor_id)
        if current is None or current.tenant_id != tenant_id:
            return None
        updated = current.model_copy(update=fields)
        self.writes.append(("update_competitor", competitor_id, dict(fields)))
        self.competitors[competitor_id] = updated
        return updated

    def delete_competitor(self, competitor_id, tenant_id):
        current = self.competitors.get(competitor_id)
        if current is None or current.tenant_id != tenant_id:
            return False
        self.writes.append(("delete_competitor", competitor_id, {}))
        del self.competitors[competitor_id]
        return True


# ─── Builders ────────────────────────────────────────────────────────────────


def make_config(**overrides) -> ScoringConfig:
    config = ScoringConfig.from_defaults(USER, TENANT)
    return config.model_copy(update=overrides) if overrides else config


def make_contact(contact_id: str, role_type: Optional[str] = None, title: Optional[str] = None,
                 first_name: str = "Pat", last_name: str = "Lee") -> Contact:
    return Contact(
        id=contact_id,
        first_name=first_name,
        last_name=last_name,
        title=title,
        role_type=role_type,
    )


def make_meeting(meeting_id: str, days_ago: float, status: Optional[str] = None) -> Meeting:
    return Meeting(id=meeting_id, start_time=NOW - timedelta(days=days_ago), status=status)


def make_email(email_id: str, direction: str, at: datetime) -> Email:
    return Email(id=email_id, direction=direction, sent_at=at)


def make_value_change(days_ago: float, old: float, new: float) -> ValueChange:
    return ValueChange(old_value=old, new_value=new, changed_at=NOW - timedelta(days=days_ago))


# ─── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def engine(repo, clock):
    from scoring.engine import ScoringEngine

    return ScoringEngine(repo, clock=clock)


@pytest.fixture
def service(repo, clock):
    from orchestration import DealHealthService
    from scoring.engine import ScoringEngine

    return DealHealthService(repo, engine=ScoringEngine(repo, clock=clock))


@pytest.fixture
def ai_disabled(repo):
    repo.set_config(make_config(ai_enabled=False))
    return repo
