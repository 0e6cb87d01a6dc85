"""Run permanent team scoring for a match once its individual points are final."""
import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session
from squads.config import LOG_LEVEL
from squads.database import engine, create_db_and_tables
from squads.errors import TeamServiceError
from squads.services.notifications import NullNotifier
from squads.services.team_scoring import complete_match_team_scoring, get_scoring_policy


def main():
    parser = argparse.ArgumentParser(
        description="Register, aggregate and award team bonuses for a completed match"
    )

    parser.add_argument(
        "--match-id",
        type=int,
        required=True,
        help="Database id of the completed match"
    )

    parser.add_argument(
        "--policy",
        type=str,
        choices=["fixture", "rank"],
        help="Scoring policy (defaults to SCORING_POLICY)"
    )

    args = parser.parse_args()
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    create_db_and_tables()
    with Session(engine) as db:
        try:
            summary = complete_match_team_scoring(
                db,
                args.match_id,
                policy=get_scoring_policy(args.policy),
                notifier=NullNotifier()
            )
        except TeamServiceError as exc:
            print(f"Error: {exc.message}")
            sys.exit(1)

    print(f"Match {summary['match_id']}:")
    print(f"  Newly registered teams: {summary['registered']}")
    print(f"  Teams recomputed:       {summary['recomputed']}")
    print(f"  Bonuses awarded:        {summary['awarded']}")


if __name__ == "__main__":
    main()
