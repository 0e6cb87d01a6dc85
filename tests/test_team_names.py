import itertools

from squads.config import TEAM_NAME_MAX_LENGTH
from squads.services.team_names import (
    TEAM_NAME_ADJECTIVES,
    TEAM_NAME_NOUNS,
    generate_team_name,
    team_name_taken,
)


class FixedChoices:
    """Stands in for ``random``, cycling through the given picks."""

    def __init__(self, picks):
        self.picks = itertools.cycle(picks)

    def choice(self, options):
        pick = next(self.picks)
        assert pick in options
        return pick


def test_generated_name_is_adjective_and_noun(session):
    name = generate_team_name(session)
    adjective, noun = name.split(" ")
    assert adjective in TEAM_NAME_ADJECTIVES
    assert noun in TEAM_NAME_NOUNS
    assert len(name) <= TEAM_NAME_MAX_LENGTH


def test_generated_name_skips_taken_names(session, make_team):
    make_team("Mighty Warriors")

    rng = FixedChoices(["Mighty", "Warriors", "Swift", "Lions"])
    assert generate_team_name(session, rng) == "Swift Lions"


def test_generated_name_falls_back_after_repeated_collisions(session, make_team):
    make_team("Royal Kings")

    rng = FixedChoices(["Royal", "Kings"])
    name = generate_team_name(session, rng)

    assert name.startswith("Team ")
    assert name != "Royal Kings"
    assert len(name) <= TEAM_NAME_MAX_LENGTH
    assert not team_name_taken(session, name)
