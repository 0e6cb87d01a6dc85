"""Reconciliation sweep: form teams from anyone still waiting in the formation queue."""
import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session
from squads.config import LOG_LEVEL
from squads.database import engine, create_db_and_tables
from squads.services.formation_queue import process_queue
from squads.services.notifications import NullNotifier


def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    create_db_and_tables()

    with Session(engine) as db:
        teams = process_queue(db, NullNotifier())
        for team in teams:
            print(f"  Formed {team.team_name} (id {team.id}): {team.member_user_ids}")

    print(f"Formed {len(teams)} team(s)")


if __name__ == "__main__":
    main()
