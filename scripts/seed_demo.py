"""Seed users, a match and scored fantasy entries for trying team scoring locally."""
import argparse
import random
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session, select
from squads.database import engine, create_db_and_tables
from squads.models import FantasyEntry, Match, Prediction, User
from squads.services.formation_queue import join_queue


def seed(db: Session, users_count: int, match_number: int) -> Match:
    match = db.exec(select(Match).where(Match.match_number == match_number)).first()
    if not match:
        match = Match(match_number=match_number, team1="CSK", team2="MI")
        db.add(match)
        db.commit()
        db.refresh(match)
        print(f"Created match {match.match_number}: {match.team1} vs {match.team2}")

    admin = db.exec(select(User).where(User.is_admin == True)).first()  # noqa: E712
    if not admin:
        db.add(User(display_name="admin", is_admin=True))
        db.commit()

    for i in range(users_count):
        user = User(display_name=f"player{i + 1}")
        db.add(user)
        db.commit()
        db.refresh(user)

        db.add(FantasyEntry(user_id=user.id, match_id=match.id, fantasy_points=random.randint(20, 120)))
        db.add(Prediction(user_id=user.id, match_id=match.id, total_prediction_points=random.choice([0, 10, 25])))
        db.commit()

        result = join_queue(db, user.id)
        print(f"  {user.display_name}: {result.status}")

    return match


def main():
    parser = argparse.ArgumentParser(description="Seed demo data for permanent team scoring")
    parser.add_argument("--users", type=int, default=16, help="Number of users to create")
    parser.add_argument("--match-number", type=int, default=1, help="Match number to seed entries for")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible points")
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)

    create_db_and_tables()
    with Session(engine) as db:
        match_id = seed(db, args.users, args.match_number).id

    print(f"Done. Run: python scripts/complete_match_scoring.py --match-id {match_id}")


if __name__ == "__main__":
    main()
