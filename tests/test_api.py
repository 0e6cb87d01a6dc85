from squads.services.notifications import PERMANENT_TEAM_FORMED

BASE = "/api/teams/permanent"


def auth(user):
    return {"X-User-Id": str(user.id)}


def form_team_via_api(client, users):
    for user in users:
        response = client.post(f"{BASE}/queue/join", headers=auth(user))
        assert response.status_code == 200
    return response.json()["data"]["team"]


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_unauthorized_access(client):
    assert client.post(f"{BASE}/queue/join").status_code == 401
    assert client.get(f"{BASE}/my-team", headers={"X-User-Id": "999"}).status_code == 401


def test_join_queue_flow(client, make_user, notifier):
    users = [make_user() for _ in range(4)]

    response = client.post(f"{BASE}/queue/join", headers=auth(users[0]))
    assert response.status_code == 200
    assert response.json() == {"success": True, "data": {"status": "in_queue", "position": 1}}

    response = client.post(f"{BASE}/queue/join", headers=auth(users[0]))
    assert response.json()["data"] == {"status": "already_in_queue", "position": 1}

    status = client.get(f"{BASE}/queue/status", headers=auth(users[0])).json()["data"]
    assert status["status"] == "waiting"
    assert status["need_more"] == 3

    for user in users[1:3]:
        client.post(f"{BASE}/queue/join", headers=auth(user))
    response = client.post(f"{BASE}/queue/join", headers=auth(users[3]))

    data = response.json()["data"]
    assert data["status"] == "matched"
    assert [m["user_id"] for m in data["team"]["members"]] == [u.id for u in users]
    assert data["team"]["members"][0]["role"] == "leader"
    assert len(notifier.events(PERMANENT_TEAM_FORMED)) == 1

    response = client.post(f"{BASE}/queue/join", headers=auth(users[2]))
    assert response.json()["data"]["status"] == "already_in_team"
    assert response.json()["data"]["team"]["id"] == data["team"]["id"]

    my_team = client.get(f"{BASE}/my-team", headers=auth(users[1])).json()
    assert my_team["data"]["id"] == data["team"]["id"]


def test_my_team_without_team(client, make_user):
    response = client.get(f"{BASE}/my-team", headers=auth(make_user()))
    assert response.status_code == 200
    assert response.json()["data"] is None


def test_leave_queue(client, make_user):
    user = make_user()
    client.post(f"{BASE}/queue/join", headers=auth(user))

    response = client.delete(f"{BASE}/queue/leave", headers=auth(user))
    assert response.status_code == 200

    response = client.delete(f"{BASE}/queue/leave", headers=auth(user))
    assert response.status_code == 400
    assert response.json() == {"success": False, "detail": "Not in queue"}


def test_rename_team(client, make_user):
    users = [make_user() for _ in range(4)]
    team = form_team_via_api(client, users)
    url = f"{BASE}/{team['id']}/rename"

    response = client.put(url, json={"team_name": "  Night Owls "}, headers=auth(users[0]))
    assert response.status_code == 200
    assert response.json()["data"]["team_name"] == "Night Owls"

    response = client.put(url, json={"team_name": "Day Larks"}, headers=auth(users[1]))
    assert response.status_code == 403

    response = client.put(url, json={"team_name": "N"}, headers=auth(users[0]))
    assert response.status_code == 400


def test_rename_to_taken_name(client, make_user):
    first = form_team_via_api(client, [make_user() for _ in range(4)])
    users = [make_user() for _ in range(4)]
    second = form_team_via_api(client, users)

    response = client.put(
        f"{BASE}/{second['id']}/rename",
        json={"team_name": first["team_name"]},
        headers=auth(users[0])
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Team name already taken"


def test_team_detail_and_list(client, make_user):
    viewer = make_user()
    team = form_team_via_api(client, [make_user() for _ in range(4)])

    response = client.get(f"{BASE}/{team['id']}", headers=auth(viewer))
    assert response.status_code == 200
    assert response.json()["data"]["team_name"] == team["team_name"]

    assert client.get(f"{BASE}/999", headers=auth(viewer)).status_code == 404

    listing = client.get(BASE, headers=auth(viewer)).json()["data"]
    assert [t["id"] for t in listing["items"]] == [team["id"]]
    assert listing["pagination"]["total"] == 1

    board = client.get(f"{BASE}/leaderboard?limit=5", headers=auth(viewer)).json()["data"]
    assert board["items"][0]["rank"] == 1
    assert board["pagination"]["limit"] == 5


def test_register_for_match(client, session, make_user, match):
    loner = make_user()
    response = client.post(f"{BASE}/{match.id}/register", headers=auth(loner))
    assert response.status_code == 400

    users = [make_user() for _ in range(4)]
    team = form_team_via_api(client, users)

    response = client.post(f"{BASE}/{match.id}/register", headers=auth(users[1]))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["team_id"] == team["id"]
    assert data["status"] == "pending"
    assert data["match"]["id"] == match.id

    response = client.post(f"{BASE}/999/register", headers=auth(users[1]))
    assert response.status_code == 404


def test_complete_match_scoring_requires_admin(client, make_user, match):
    response = client.post(f"{BASE}/matches/{match.id}/complete", headers=auth(make_user()))
    assert response.status_code == 403


def test_complete_match_scoring_and_history(client, session, make_user, match, add_scores):
    admin = make_user(is_admin=True)
    users = [make_user() for _ in range(4)]
    team = form_team_via_api(client, users)
    for user in users:
        add_scores(user.id, match.id, fantasy=30)

    url = f"{BASE}/matches/{match.id}/complete?policy=rank"
    response = client.post(url, headers=auth(admin))
    assert response.status_code == 200
    assert response.json()["data"] == {"match_id": match.id, "registered": 1, "recomputed": 1, "awarded": 1}

    response = client.post(url, headers=auth(admin))
    assert response.json()["data"]["awarded"] == 0

    history = client.get(f"{BASE}/{team['id']}/history", headers=auth(users[0])).json()["data"]
    assert len(history["items"]) == 1
    item = history["items"][0]
    assert item["team_total_points"] == 120
    assert item["rank"] == 1
    assert item["bonus_awarded"] == 100
    assert item["status"] == "completed"

    detail = client.get(f"{BASE}/{team['id']}", headers=auth(users[0])).json()["data"]
    assert detail["stats"]["total_points"] == 120 + 100 * 4
    assert detail["stats"]["best_rank"] == 1


def test_complete_match_scoring_errors(client, make_user, match):
    admin = make_user(is_admin=True)

    response = client.post(f"{BASE}/matches/999/complete", headers=auth(admin))
    assert response.status_code == 404
    assert response.json()["detail"] == "Match not found"

    response = client.post(f"{BASE}/matches/{match.id}/complete?policy=lottery", headers=auth(admin))
    assert response.status_code == 400
