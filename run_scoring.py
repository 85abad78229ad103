#!/usr/bin/env python3
"""Standalone deal health scoring script for GitHub Actions."""

import json
import os
import sys

from loguru import logger


def main():
    tenant_id = os.environ.get("DEAL_HEALTH_TENANT_ID", "")
    user_id = os.environ.get("DEAL_HEALTH_USER_ID", "")
    if not tenant_id or not user_id:
        print("Error: DEAL_HEALTH_TENANT_ID and DEAL_HEALTH_USER_ID must be set")
        return 1

    try:
        from database.repository import SupabaseDealHealthRepository
        from scoring import ScoringEngine

        engine = ScoringEngine(SupabaseDealHealthRepository())
        batch = engine.score_all(user_id, tenant_id)
    except Exception:
        logger.exception("Scoring run failed")
        return 1

    # Count tiers
    tiers = {"healthy": 0, "watch": 0, "risk": 0}
    for r in batch.results:
        tiers[r.tier.value] += 1

    print(f"Total scored: {len(batch.results)} ({len(batch.errors)} failed)")
    print(f"Healthy: {tiers['healthy']}, Watch: {tiers['watch']}, Risk: {tiers['risk']}")

    # Write results to file
    with open("scoring_results.json", "w") as f:
        json.dump({
            "total": len(batch.results),
            "failed": len(batch.errors),
            **tiers,
        }, f)

    # Write to GitHub output file
    github_output = os.environ.get("GITHUB_OUTPUT", "")
    if github_output:
        with open(github_output, "a") as f:
            f.write(f"risk_deals={tiers['risk']}\n")
            f.write(f"total_scored={len(batch.results)}\n")

    return 0


if __name__ == "__main__":
    sys.exit(main())
