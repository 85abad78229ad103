"""
⚙️ DEAL HEALTH SETTINGS
=======================
Central configuration for the deal health scoring engine.
Loads values from environment variables with sensible defaults.

HealthDefaults holds the values a tenant's scoring config is created
with the first time it is requested. Tenants edit their own copy after
that; changing these only affects configs created afterwards.
"""

from pathlib import Path
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file from project root
PROJECT_ROOT = Path(__file__).parent.parent
ENV_FILE = PROJECT_ROOT / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE)
else:
    # Try config directory
    load_dotenv(PROJECT_ROOT / "config" / ".env")


class DatabaseSettings(BaseSettings):
    """Supabase database configuration."""
    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_key: str = Field(default="", validation_alias="SUPABASE_KEY")

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


class HealthDefaults(BaseSettings):
    """Defaults for a newly created tenant scoring config."""
    model_config = SettingsConfigDict(env_prefix="DEAL_HEALTH_")

    ai_enabled: bool = True

    # Category weights (percent, sum to 100)
    weight_close_date: int = 20
    weight_buyer_engagement: int = 25
    weight_process: int = 15
    weight_deal_size: int = 10
    weight_competitive: int = 15
    weight_momentum: int = 15

    threshold_healthy: int = 80
    threshold_watch: int = 50

    segment_avg_smb: float = 10000
    segment_avg_midmarket: float = 35000
    segment_avg_enterprise: float = 100000
    segment_size_multiplier: float = 2.0

    no_meeting_days: int = 14
    response_time_multiplier: float = 1.5
    multi_thread_min_contacts: int = 2

    exec_titles: List[str] = [
        "CEO", "CTO", "CFO", "COO", "VP", "SVP", "EVP", "President", "Director",
    ]
    legal_titles: List[str] = [
        "Legal", "Counsel", "Attorney", "Contract", "Compliance",
    ]
    procurement_titles: List[str] = [
        "Procurement", "Purchasing", "Vendor", "Sourcing",
    ]
    security_titles: List[str] = [
        "CISO", "Security", "InfoSec", "IT Director", "Infrastructure",
    ]

    def category_weight_total(self) -> int:
        return (
            self.weight_close_date + self.weight_buyer_engagement +
            self.weight_process + self.weight_deal_size +
            self.weight_competitive + self.weight_momentum
        )

    def validate_weights(self) -> bool:
        """Ensure category weights sum to 100."""
        return self.category_weight_total() == 100


class EngineSettings(BaseSettings):
    """Runtime knobs for the scoring engine and the text detectors."""
    model_config = SettingsConfigDict(env_prefix="DEAL_HEALTH_ENGINE_")

    # One thread per concurrent read in scoreDeal
    loader_workers: int = 6
    expansion_window_days: int = 30
    max_reply_gap_hours: float = 720
    push_count_cap: int = 3

    evidence_max_sentences: int = 2
    evidence_min_sentence_chars: int = 10
    evidence_max_sentence_chars: int = 400
    evidence_truncate_chars: int = 200


class Settings:
    """
    Master settings class that combines all configuration.

    Usage:
        from config.settings import settings

        url = settings.database.supabase_url
        healthy = settings.defaults.threshold_healthy
        workers = settings.engine.loader_workers
    """

    def __init__(self):
        self.database = DatabaseSettings()
        self.defaults = HealthDefaults()
        self.engine = EngineSettings()
        self.project_root = PROJECT_ROOT

    def validate(self) -> dict:
        """
        Validate all settings and return status.
        Returns dict with validation results.
        """
        results = {
            "database_configured": self.database.is_configured,
            "weights_valid": self.defaults.validate_weights(),
            "thresholds_valid": (
                self.defaults.threshold_watch <= self.defaults.threshold_healthy
            ),
        }
        results["all_valid"] = all([
            results["database_configured"],
            results["weights_valid"],
            results["thresholds_valid"],
        ])
        return results

    def print_status(self):
        """Print configuration status to console."""
        validation = self.validate()

        print("\n" + "=" * 50)
        print("⚙️  DEAL HEALTH CONFIGURATION STATUS")
        print("=" * 50)

        print("\n📡 Database:")
        print(f"  • Supabase: {'✅ Configured' if validation['database_configured'] else '❌ Missing'}")

        print("\n⚖️  Default Category Weights:")
        print(f"  • Valid: {'✅ Yes' if validation['weights_valid'] else '❌ No (must sum to 100)'}")
        print(f"  • Thresholds: healthy ≥ {self.defaults.threshold_healthy}, "
              f"watch ≥ {self.defaults.threshold_watch}")

        print("\n🤖 AI signal detection default: "
              f"{'on' if self.defaults.ai_enabled else 'off'}")

        print("\n" + "=" * 50)
        if validation["all_valid"]:
            print("✅ All critical settings configured! Ready to run.")
        else:
            print("❌ Some settings are missing. Check your .env file.")
        print("=" * 50 + "\n")

        return validation


# Singleton instance - import this in other modules
settings = Settings()


if __name__ == "__main__":
    # Test configuration when run directly
    settings.print_status()
