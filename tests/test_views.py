import pytest


def create(client, **body):
    body.setdefault("name", "Book club")
    resp = client.post("/groups", json=body)
    assert resp.status_code == 201
    return resp.get_json()


def join(client, code, name, contact=None):
    return client.post("/groups/join", json={
        "join_code": code,
        "name": name,
        "contact": contact or f"{name.lower()}@example.com",
        "wishlist": f"books for {name}",
    })


@pytest.fixture
def club(client):
    group = create(client, budget_limit=15, custom_message="Paperbacks only")
    members = {}
    for name in ("Ann", "Bob", "Cid", "Dee"):
        resp = join(client, group["join_code"].lower(), name)
        assert resp.status_code == 201
        members[name] = resp.get_json()
    return group, members


def admin(group):
    return {"X-Admin-Secret": group["admin_secret"]}


def test_create_group(client):
    body = create(client, budget_limit=10)
    assert body["name"] == "Book club"
    assert body["budget_limit"] == 10
    assert body["drawn"] is False
    assert body["join_code"]
    assert body["admin_secret"]


def test_create_group_requires_name(client):
    resp = client.post("/groups", json={"name": " "})
    assert resp.status_code == 400
    assert "name is required" in resp.get_json()["error"]


def test_group_detail(client, club):
    group, _ = club
    body = client.get(f"/groups/{group['id']}").get_json()
    assert body["num_participants"] == 4
    assert "admin_secret" not in body
    assert "join_code" not in body


def test_unknown_group(client):
    assert client.get("/groups/999").status_code == 404


def test_join_with_bad_code(client):
    resp = join(client, "WRONG", "Ann")
    assert resp.status_code == 404


def test_join_twice(client, club):
    group, _ = club
    resp = join(client, group["join_code"], "ann")
    assert resp.status_code == 409


def test_admin_guard(client, club):
    group, _ = club
    gid = group["id"]
    assert client.post(f"/groups/{gid}/draw").status_code == 403
    assert client.post(f"/groups/{gid}/draw", headers={"X-Admin-Secret": "guess"}).status_code == 403
    assert client.get(f"/groups/{gid}/participants").status_code == 403


def test_admin_secret_in_query(client, club):
    group, _ = club
    resp = client.get(f"/groups/{group['id']}/participants?admin={group['admin_secret']}")
    assert resp.status_code == 200
    assert [p["name"] for p in resp.get_json()["participants"]] == ["Ann", "Bob", "Cid", "Dee"]


def test_draw_and_view(client, club):
    group, members = club
    gid = group["id"]

    resp = client.post(f"/groups/{gid}/draw", headers=admin(group))
    assert resp.status_code == 200
    assert resp.get_json()["count"] == 4
    assert "pairs" not in resp.get_json()

    receivers = []
    for name, member in members.items():
        resp = client.get(
            f"/groups/{gid}/participants/{member['participant_id']}/assignment",
            headers={"X-Access-Key": member["access_key"]},
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["receiver"]["name"] != name
        assert body["receiver"]["wishlist"] == f"books for {body['receiver']['name']}"
        assert body["budget_limit"] == 15
        assert body["custom_message"] == "Paperbacks only"
        receivers.append(body["receiver"]["name"])

    assert sorted(receivers) == sorted(members)
    assert client.get(f"/groups/{gid}").get_json()["drawn"] is True


def test_view_before_draw(client, club):
    group, members = club
    ann = members["Ann"]
    resp = client.get(
        f"/groups/{group['id']}/participants/{ann['participant_id']}/assignment",
        headers={"X-Access-Key": ann["access_key"]},
    )
    assert resp.status_code == 404


def test_view_needs_own_access_key(client, club):
    group, members = club
    ann, bob = members["Ann"], members["Bob"]
    url = f"/groups/{group['id']}/participants/{ann['participant_id']}/assignment"

    assert client.get(url).status_code == 403
    assert client.get(url, headers={"X-Access-Key": bob["access_key"]}).status_code == 403
    missing = f"/groups/{group['id']}/participants/999/assignment"
    assert client.get(missing, headers={"X-Access-Key": ann["access_key"]}).status_code == 403


def test_draw_needs_three(client):
    group = create(client)
    join(client, group["join_code"], "Ann")
    join(client, group["join_code"], "Bob")

    resp = client.post(f"/groups/{group['id']}/draw", headers=admin(group))
    assert resp.status_code == 409
    assert "at least 3" in resp.get_json()["error"]


def test_join_closed_after_draw(client, club):
    group, _ = club
    client.post(f"/groups/{group['id']}/draw", headers=admin(group))
    assert join(client, group["join_code"], "Eve").status_code == 409


def test_clear_draw(client, club):
    group, _ = club
    gid = group["id"]
    client.post(f"/groups/{gid}/draw", headers=admin(group))

    assert client.delete(f"/groups/{gid}/draw", headers=admin(group)).status_code == 204
    assert client.get(f"/groups/{gid}").get_json()["drawn"] is False


def test_remove_participant(client, club):
    group, members = club
    gid = group["id"]
    client.post(f"/groups/{gid}/draw", headers=admin(group))

    resp = client.delete(f"/groups/{gid}/participants/{members['Dee']['participant_id']}", headers=admin(group))

    assert resp.status_code == 204
    detail = client.get(f"/groups/{gid}").get_json()
    assert detail["num_participants"] == 3
    assert detail["drawn"] is False


def test_notify(client, club):
    group, _ = club
    gid = group["id"]
    assert client.post(f"/groups/{gid}/notify", headers=admin(group)).status_code == 409

    client.post(f"/groups/{gid}/draw", headers=admin(group))
    resp = client.post(f"/groups/{gid}/notify", headers=admin(group))

    assert resp.status_code == 200
    assert resp.get_json()["sent"] == 4
    assert resp.get_json()["total"] == 4


def test_invariant_violation_is_a_500(client, club, monkeypatch):
    from giftdraw.draw import InternalInvariantViolation
    from giftdraw.services import assignments

    def broken(*args, **kwargs):
        raise InternalInvariantViolation("receivers do not match the roster")

    monkeypatch.setattr(assignments, "generate", broken)
    group, _ = club

    resp = client.post(f"/groups/{group['id']}/draw", headers=admin(group))

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal error while drawing names."}
