import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from squads.database import get_session
from squads.dependencies import get_notifier
from squads.models import FantasyEntry, Match, Prediction, User
from squads.services.permanent_teams import create_team

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


class RecordingNotifier:
    """Keeps every notification instead of pushing it anywhere."""

    def __init__(self):
        self.sent = []

    def notify_users(self, user_ids, event, payload):
        self.sent.append((list(user_ids), event, payload))

    def broadcast_match(self, match_id, event, payload):
        self.sent.append((("match", match_id), event, payload))

    def events(self, event):
        return [(user_ids, payload) for user_ids, name, payload in self.sent if name == event]


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="notifier")
def notifier_fixture():
    return RecordingNotifier()


@pytest.fixture(name="client")
def client_fixture(session: Session, notifier: RecordingNotifier):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    app.dependency_overrides[get_notifier] = lambda: notifier
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    counter = {"n": 0}

    def make_user(display_name: str = None, is_admin: bool = False) -> User:
        counter["n"] += 1
        user = User(display_name=display_name or f"player{counter['n']}", is_admin=is_admin)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return make_user


@pytest.fixture(name="make_team")
def make_team_fixture(session: Session, make_user):
    """Form a team from four fresh users, optionally forcing its name."""
    def make_team(team_name: str = None):
        users = [make_user() for _ in range(4)]
        team = create_team(session, [user.id for user in users])
        if team_name:
            team.team_name = team_name
            session.add(team)
            session.commit()
            session.refresh(team)
        return team

    return make_team


@pytest.fixture(name="match")
def match_fixture(session: Session) -> Match:
    match = Match(match_number=1, team1="CSK", team2="MI")
    session.add(match)
    session.commit()
    session.refresh(match)
    return match


@pytest.fixture(name="add_scores")
def add_scores_fixture(session: Session):
    def add_scores(user_id: int, match_id: int, fantasy: float, prediction: float = 0):
        entry = FantasyEntry(user_id=user_id, match_id=match_id, fantasy_points=fantasy)
        session.add(entry)
        if prediction:
            session.add(Prediction(user_id=user_id, match_id=match_id, total_prediction_points=prediction))
        session.commit()
        session.refresh(entry)
        return entry

    return add_scores
