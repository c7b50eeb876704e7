from models.enums import Semester

from conftest import CURRENT_YEAR, PAST_YEAR, actor

ADMIN = actor("admin-1", "DEPARTMENT_ADMIN")
TERM = {"academic_year": CURRENT_YEAR, "semester": "FIRST"}


def test_stage_and_confirm(client):
    client.post("/v1/assignments/staging", json={**TERM, "course_id": 1, "lecturer_id": 1}, headers=ADMIN)
    res = client.post("/v1/assignments/staging", json={**TERM, "course_id": 1, "lecturer_id": 2}, headers=ADMIN)
    assert res.json()["data"]["pending"] == [{"course_id": 1, "lecturer_id": 2}]

    # nothing is written before confirm
    assert client.get("/v1/assignments", headers=ADMIN).json()["data"] == []

    res = client.post("/v1/assignments/staging/confirm", json=TERM, headers=ADMIN)
    data = res.json()["data"]
    assert data["batch"]["created"] == 1
    assert data["session"]["pending"] == []

    assignments = client.get("/v1/assignments", params=TERM, headers=ADMIN).json()["data"]
    assert [(a["course_id"], a["lecturer_id"]) for a in assignments] == [(1, 2)]


def test_staging_is_private_to_each_admin(client):
    client.post("/v1/assignments/staging", json={**TERM, "course_id": 1, "lecturer_id": 1}, headers=ADMIN)
    other = actor("admin-2", "DEPARTMENT_ADMIN")
    res = client.get("/v1/assignments/staging", params=TERM, headers=other)
    assert res.json()["data"]["pending"] == []


def test_staging_an_assigned_course_is_409(client, assignment_repository):
    assignment_repository.create(1, 1, CURRENT_YEAR, Semester.FIRST)
    res = client.post("/v1/assignments/staging", json={**TERM, "course_id": 1, "lecturer_id": 2}, headers=ADMIN)
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "DUPLICATE"


def test_partial_confirm_keeps_failures_staged(client):
    res = client.post(
        "/v1/assignments/staging/batch",
        json={**TERM, "course_ids": [1, 2, 3], "lecturer_id": 1},
        headers=ADMIN,
    )
    assert [i["outcome"] for i in res.json()["data"]["batch"]["items"]] == ["staged"] * 3
    # unknown lecturer for course 3
    client.post("/v1/assignments/staging", json={**TERM, "course_id": 3, "lecturer_id": 99}, headers=ADMIN)

    data = client.post("/v1/assignments/staging/confirm", json=TERM, headers=ADMIN).json()["data"]
    assert data["batch"]["created"] == 2
    assert data["batch"]["failed"] == 1
    assert data["session"]["pending"] == [{"course_id": 3, "lecturer_id": 99}]


def test_unstage_and_cancel(client):
    client.post("/v1/assignments/staging/batch", json={**TERM, "course_ids": [1, 2], "lecturer_id": 1}, headers=ADMIN)
    res = client.delete("/v1/assignments/staging/1", params=TERM, headers=ADMIN)
    assert res.json()["data"]["pending"] == [{"course_id": 2, "lecturer_id": 1}]

    client.delete("/v1/assignments/staging", params=TERM, headers=ADMIN)
    assert client.get("/v1/assignments/staging", params=TERM, headers=ADMIN).json()["data"]["pending"] == []


def test_past_year_confirm_writes_nothing(client):
    past = {"academic_year": PAST_YEAR, "semester": "FIRST"}
    client.post("/v1/assignments/staging", json={**past, "course_id": 1, "lecturer_id": 1}, headers=ADMIN)
    res = client.post("/v1/assignments/staging/confirm", json=past, headers=ADMIN)
    assert res.status_code == 200
    assert res.json()["data"]["batch"]["items"] == []
    assert "not the current academic year" in res.json()["message"]


def test_remove_assignment(client, assignment_repository):
    current = assignment_repository.create(1, 1, CURRENT_YEAR, Semester.FIRST)
    past = assignment_repository.create(2, 1, PAST_YEAR, Semester.FIRST)

    assert client.delete(f"/v1/assignments/{past.id}", headers=ADMIN).status_code == 409
    assert client.delete(f"/v1/assignments/{current.id}", headers=ADMIN).status_code == 200
    assert client.delete(f"/v1/assignments/{current.id}", headers=ADMIN).status_code == 404


def test_only_department_admins_assign(client):
    res = client.post(
        "/v1/assignments/staging",
        json={**TERM, "course_id": 1, "lecturer_id": 1},
        headers=actor("1", "LECTURER"),
    )
    assert res.status_code == 403


def test_bad_academic_year_is_400(client):
    res = client.get("/v1/assignments/staging", params={"academic_year": "2024", "semester": "FIRST"}, headers=ADMIN)
    assert res.status_code == 400


def test_semester_defaults_to_the_current_one(client):
    res = client.post(
        "/v1/assignments/staging",
        json={"academic_year": CURRENT_YEAR, "course_id": 1, "lecturer_id": 1},
        headers=ADMIN,
    )
    assert res.json()["data"]["semester"] == "FIRST"
    res = client.get("/v1/assignments/staging", params={"academic_year": CURRENT_YEAR}, headers=ADMIN)
    assert res.json()["data"]["pending"] == [{"course_id": 1, "lecturer_id": 1}]


def test_looking_at_staging_does_not_create_sessions(client):
    from dependencies.services import staging_store

    for semester in ("FIRST", "SECOND", "SUMMER"):
        res = client.get("/v1/assignments/staging", params={"academic_year": CURRENT_YEAR, "semester": semester},
                         headers=ADMIN)
        assert res.json()["data"]["pending"] == []
    assert len(staging_store) == 0
