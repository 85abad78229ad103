"""Errors raised by the deal health engine."""


class DealHealthError(Exception):
    """Base class for deal health engine errors."""


class DealNotFoundError(DealHealthError, LookupError):
    """The deal does not exist for this tenant."""

    def __init__(self, deal_id: str):
        self.deal_id = deal_id
        super().__init__(f"Deal {deal_id} not found")


class CompetitorNotFoundError(DealHealthError, LookupError):
    def __init__(self, competitor_id: str):
        self.competitor_id = competitor_id
        super().__init__(f"Competitor {competitor_id} not found")


class ConfigValidationError(DealHealthError, ValueError):
    """A scoring config or manual update failed validation."""
