#!/usr/bin/env python3
"""
🩺 SCORE DEALS
==============
Command-line entry point for the deal health engine.

WHAT IT DOES:
1. Scores one deal, or every open deal of a tenant
2. Optionally runs AI signal + competitor detection on an analysis file
   before scoring (same path as the post-transcript hook)
3. Prints a human-readable breakdown

USAGE:
    python scripts/score_deals.py deal <deal-id> --user <user-id> --tenant <tenant-id>
    python scripts/score_deals.py all --user <user-id> --tenant <tenant-id>

    # With options:
    python scripts/score_deals.py deal <deal-id> --user U --tenant T \\
        --analysis-file transcript.txt --source transcript
    python scripts/score_deals.py all --user U --tenant T --owner <owner-id> -v
"""

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from loguru import logger


def setup_logging(verbose: bool = False):
    """Configure logging."""
    logger.remove()

    level = "DEBUG" if verbose else "INFO"

    # Console output
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
        level=level
    )

    # File output
    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    log_file = log_dir / f"deal_health_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
    logger.add(log_file, level="DEBUG")

    return log_file


def validate_environment():
    """Check that required environment variables are set."""
    from config.settings import settings

    validation = settings.validate()

    if not validation["database_configured"]:
        logger.error("❌ Supabase not configured!")
        logger.info("   Set SUPABASE_URL and SUPABASE_KEY in .env")
        return False

    if not validation["weights_valid"]:
        logger.warning("⚠️ Default category weights don't sum to 100 - new tenant configs will be skewed")

    logger.info("✅ Environment validated")
    return True


def load_analysis(path: str):
    """Read analysis text; JSON files are parsed so nested text is scanned too."""
    content = Path(path).read_text(encoding="utf-8")
    if path.endswith(".json"):
        return json.loads(content)
    return content


def build_service():
    from database.repository import SupabaseDealHealthRepository
    from orchestration import DealHealthService

    return DealHealthService(SupabaseDealHealthRepository())


def score_one(service, args) -> int:
    from scoring import DealNotFoundError, explain_score

    try:
        if args.analysis_file:
            summary = service.process_analysis(
                args.deal_id,
                load_analysis(args.analysis_file),
                args.source,
                args.user,
                args.tenant,
            )
            logger.info(
                f"🤖 {summary['signals_applied']} signal(s), "
                f"{summary['competitors_detected']} competitor(s) detected"
            )
            result = summary["result"]
        else:
            result = service.score_deal(args.deal_id, args.user, args.tenant)
    except DealNotFoundError as e:
        logger.error(f"❌ {e}")
        return 1

    print()
    print(explain_score(result))
    print()
    return 0


def score_many(service, args) -> int:
    batch = service.score_all(args.user, args.tenant, args.owner)

    logger.info("\n" + "=" * 60)
    logger.info("📊 SCORING COMPLETE")
    logger.info("=" * 60)

    tiers = {"healthy": 0, "watch": 0, "risk": 0}
    for result in batch.results:
        tiers[result.tier.value] += 1

    logger.info(f"   • Deals scored: {len(batch.results)}")
    logger.info(f"   • 💚 Healthy: {tiers['healthy']}")
    logger.info(f"   • 👀 Watch: {tiers['watch']}")
    logger.info(f"   • 🚨 Risk: {tiers['risk']}")

    if batch.errors:
        logger.warning(f"\n⚠️ {len(batch.errors)} deal(s) failed:")
        for err in batch.errors:
            logger.warning(f"   • {err['deal_id']}: {err['error']}")

    at_risk = [r for r in batch.results if r.tier.value == "risk"]
    if at_risk:
        logger.info("\n🚨 AT RISK:")
        for r in sorted(at_risk, key=lambda r: r.score)[:args.top]:
            logger.info(f"   • {r.deal_id}: {r.score}/100")

    return 1 if batch.errors and not batch.results else 0


def main():
    """Main entry point."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--user", required=True, help="User whose scoring config applies")
    common.add_argument("--tenant", required=True, help="Tenant ID")
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser = argparse.ArgumentParser(description="Score deal health")
    sub = parser.add_subparsers(dest="command", required=True)

    deal_parser = sub.add_parser("deal", parents=[common], help="Score a single deal")
    deal_parser.add_argument("deal_id", help="Deal ID")
    deal_parser.add_argument(
        "--analysis-file",
        help="Run AI signal and competitor detection on this text/JSON file first"
    )
    deal_parser.add_argument(
        "--source",
        default="transcript",
        help="Source label stored with AI signals (default: transcript)"
    )

    all_parser = sub.add_parser("all", parents=[common], help="Score every open deal of the tenant")
    all_parser.add_argument("--owner", help="Only deals owned by this user")
    all_parser.add_argument("--top", type=int, default=10, help="At-risk deals to list")

    args = parser.parse_args()

    log_file = setup_logging(args.verbose)
    logger.info("🩺 DEAL HEALTH ENGINE")
    logger.info(f"📝 Log file: {log_file}")

    if not validate_environment():
        logger.error("Environment validation failed. Exiting.")
        sys.exit(1)

    service = build_service()
    if args.command == "deal":
        sys.exit(score_one(service, args))
    sys.exit(score_many(service, args))


if __name__ == "__main__":
    main()
