"""End-to-end tests for the moderation HTTP API."""

import uuid

import pytest
from sqlalchemy import select

from app.core.errors import PersistenceError
from app.modules.moderation import flags, models

from conftest import auth_headers

API = "/api/v1/moderation"
SPAM_POST = "click here for free money now, act now!"


async def fetch_all(session_factory, model):
    async with session_factory() as session:
        result = await session.execute(select(model))
        return result.scalars().all()


# Scanning

async def test_scan_health_check(client):
    response = await client.get(f"{API}/scan")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "timestamp" in body


async def test_scan_requires_a_token(client):
    response = await client.post(f"{API}/scan", json={"content_type": "text", "content": "hi"})

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


async def test_scan_rejects_a_bad_token(client):
    response = await client.post(
        f"{API}/scan",
        json={"content_type": "text", "content": "hi"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == 401


async def test_text_scan_reports_without_storing(client, student, session_factory):
    response = await client.post(
        f"{API}/scan",
        json={"content_type": "text", "content_id": "post-1", "content": SPAM_POST},
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["flagged"] is True
    assert body["flag_type"] == "spam"
    assert body["confidence_score"] == pytest.approx(3 / 9)
    assert await fetch_all(session_factory, models.AutoFlag) == []


async def test_post_scan_with_id_stores_flag(client, student, session_factory):
    response = await client.post(
        f"{API}/scan",
        json={"content_type": "post", "content_id": "post-9", "content": {"content": SPAM_POST}},
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    assert response.json()["flagged"] is True

    rows = await fetch_all(session_factory, models.AutoFlag)
    assert [(r.content_type, r.content_id, r.confidence_score) for r in rows] == [
        (models.ContentType.POST, "post-9", pytest.approx(0.33))
    ]


async def test_profile_scan_without_id_stores_nothing(client, student, session_factory):
    response = await client.post(
        f"{API}/scan",
        json={"content_type": "user_profile", "content": {"username": "amina", "bio": "nude porn xxx"}},
        headers=auth_headers(student),
    )

    assert response.json()["flag_type"] == "nudity"
    assert await fetch_all(session_factory, models.AutoFlag) == []


async def test_token_can_be_passed_as_query_parameter(client, student):
    token = auth_headers(student)["Authorization"].split(" ", 1)[1]

    response = await client.post(
        f"{API}/scan", params={"token": token}, json={"content_type": "text", "content": "hello"}
    )

    assert response.status_code == 200
    assert response.json()["flagged"] is False


@pytest.mark.parametrize("payload", [
    {"content_type": "video", "content": "hi"},
    {"content_type": "post", "content": {"image_url": "https://cdn.campus.example/a.png"}},
    {"content": "no type at all"},
])
async def test_malformed_scan_requests_are_400(client, student, payload):
    response = await client.post(f"{API}/scan", json=payload, headers=auth_headers(student))

    assert response.status_code == 400


async def test_scan_survives_flag_store_failure(client, student, monkeypatch):
    async def failing_submit(*args, **kwargs):
        raise PersistenceError("Failed to submit flag", operation="submit_flag")

    monkeypatch.setattr(flags, "submit_flag", failing_submit)

    response = await client.post(
        f"{API}/scan",
        json={"content_type": "comment", "content_id": "c-1", "content": {"content": SPAM_POST}},
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    assert response.json()["flagged"] is True


# Auto flags

async def test_external_scanner_can_submit_flags(client, student):
    response = await client.post(
        f"{API}/flags",
        json={"content_type": "media", "content_id": "img-3", "flag_type": "copyright", "confidence_score": 0.876},
        headers=auth_headers(student),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "pending"
    assert body["confidence_score"] == pytest.approx(0.88)


async def test_flag_score_out_of_range_is_400(client, student):
    response = await client.post(
        f"{API}/flags",
        json={"content_type": "post", "content_id": "p-1", "flag_type": "spam", "confidence_score": 1.5},
        headers=auth_headers(student),
    )

    assert response.status_code == 400


async def test_flag_review_flow(client, admin, student, db, session_factory):
    flag = await flags.submit_flag(db, models.ContentType.POST, "post-3", models.FlagType.SPAM, 0.44, None)
    other = await flags.submit_flag(db, models.ContentType.COMMENT, "c-3", models.FlagType.NUDITY, 0.5, None)

    forbidden = await client.get(f"{API}/flags", headers=auth_headers(student))
    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "Forbidden"

    listed = await client.get(f"{API}/flags", headers=auth_headers(admin))
    assert {f["id"] for f in listed.json()} == {str(flag.id), str(other.id)}

    dismissed = await client.put(
        f"{API}/flags/{flag.id}", json={"status": "dismissed"}, headers=auth_headers(admin)
    )
    assert dismissed.status_code == 200
    assert dismissed.json()["status"] == "dismissed"

    promoted = await client.post(f"{API}/flags/{other.id}/promote", headers=auth_headers(admin))
    assert promoted.status_code == 200
    assert promoted.json()["report_type"] == "content"
    assert promoted.json()["target_id"] == "c-3"

    pending = await client.get(f"{API}/flags", headers=auth_headers(admin))
    assert pending.json() == []

    everything = await client.get(f"{API}/flags", params={"status": "all"}, headers=auth_headers(admin))
    assert len(everything.json()) == 2


# Reports

async def test_student_can_file_a_report(client, student, session_factory):
    response = await client.post(
        f"{API}/reports",
        json={"report_type": "user", "target_id": "user-5", "reason": "harassment", "description": "Repeated DMs"},
        headers={**auth_headers(student), "User-Agent": "campus-app/2.1"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "pending"

    logs = await fetch_all(session_factory, models.ModerationLog)
    assert [(l.action_type, l.user_agent) for l in logs] == [("create_report", "campus-app/2.1")]


async def test_report_listing_is_admin_only(client, student, pending_report):
    response = await client.get(f"{API}/reports", headers=auth_headers(student))

    assert response.status_code == 403


async def test_report_listing_filters(client, admin, pending_report):
    pending = await client.get(f"{API}/reports", headers=auth_headers(admin))
    assert [r["id"] for r in pending.json()] == [str(pending_report.id)]

    resolved = await client.get(f"{API}/reports", params={"status": "resolved"}, headers=auth_headers(admin))
    assert resolved.json() == []

    technical = await client.get(
        f"{API}/reports", params={"status": "all", "report_type": "technical"}, headers=auth_headers(admin)
    )
    assert technical.json() == []


@pytest.mark.parametrize("params", [
    {"status": "bogus"},
    {"report_type": "spam"},
    {"limit": 500},
    {"limit": 0},
    {"offset": -1},
])
async def test_report_listing_rejects_bad_query(client, admin, params):
    response = await client.get(f"{API}/reports", params=params, headers=auth_headers(admin))

    assert response.status_code == 400


async def test_report_status_update(client, admin, pending_report, session_factory):
    response = await client.put(
        f"{API}/reports/{pending_report.id}",
        json={"status": "reviewing", "notes": "Checking the links"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "reviewing"

    again = await client.put(
        f"{API}/reports/{pending_report.id}", json={"status": "pending"}, headers=auth_headers(admin)
    )
    assert again.status_code == 400

    missing = await client.put(
        f"{API}/reports/{uuid.uuid4()}", json={"status": "reviewing"}, headers=auth_headers(admin)
    )
    assert missing.status_code == 404


# Enforcement actions

async def test_enforcement_action_resolves_report(client, admin, pending_report, session_factory):
    response = await client.post(
        f"{API}/actions",
        json={
            "report_id": str(pending_report.id),
            "action_type": "hide_content",
            "target_type": "content",
            "target_id": "post-42",
            "reason": "Spam link",
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["moderator_id"] == str(admin.id)

    async with session_factory() as session:
        report = await session.get(models.Report, pending_report.id)
        assert report.status == models.ReportStatus.RESOLVED

    listed = await client.get(f"{API}/actions", params={"action_type": "hide_content"}, headers=auth_headers(admin))
    assert len(listed.json()) == 1


async def test_enforcement_runs_handlers_registered_on_the_app(client, admin):
    from app.main import app

    seen = []

    async def suspend(action):
        seen.append((action.target_id, action.duration_seconds))

    app.state.enforcement_dispatcher.register(models.ActionType.SUSPEND, suspend)

    response = await client.post(
        f"{API}/actions",
        json={
            "action_type": "suspend",
            "target_type": "user",
            "target_id": "user-8",
            "reason": "Spam wave",
            "duration_seconds": 86400,
        },
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert seen == [("user-8", 86400)]


async def test_enforcement_action_missing_field_is_400(client, admin, session_factory):
    response = await client.post(
        f"{API}/actions",
        json={"action_type": "warn", "target_type": "user", "reason": "Rude"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    assert await fetch_all(session_factory, models.EnforcementAction) == []


async def test_students_cannot_take_action(client, student):
    response = await client.post(
        f"{API}/actions",
        json={"action_type": "ban", "target_type": "user", "target_id": "user-1", "reason": "x"},
        headers=auth_headers(student),
    )

    assert response.status_code == 403


# Appeals

async def test_appeal_flow(client, admin, student, other_student, pending_report, session_factory):
    created = await client.post(
        f"{API}/appeals",
        json={"report_id": str(pending_report.id), "reason": "Wrong post", "description": "It was a club link"},
        headers=auth_headers(student),
    )
    assert created.status_code == 200
    appeal_id = created.json()["id"]

    async with session_factory() as session:
        report = await session.get(models.Report, pending_report.id)
        assert report.status == models.ReportStatus.APPEALED

    assert [a["id"] for a in (await client.get(f"{API}/appeals", headers=auth_headers(student))).json()] == [appeal_id]
    assert (await client.get(f"{API}/appeals", headers=auth_headers(other_student))).json() == []
    assert len((await client.get(f"{API}/appeals", headers=auth_headers(admin))).json()) == 1

    denied = await client.put(
        f"{API}/appeals/{appeal_id}", json={"status": "approved"}, headers=auth_headers(student)
    )
    assert denied.status_code == 403

    approved = await client.put(
        f"{API}/appeals/{appeal_id}", json={"status": "approved"}, headers=auth_headers(admin)
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"


async def test_appeal_for_unknown_report_is_404(client, student):
    response = await client.post(
        f"{API}/appeals",
        json={"report_id": str(uuid.uuid4()), "reason": "r", "description": "d"},
        headers=auth_headers(student),
    )

    assert response.status_code == 404


async def test_inactive_users_are_turned_away(client, student, db):
    student.is_active = False
    await db.commit()

    response = await client.get(f"{API}/appeals", headers=auth_headers(student))

    assert response.status_code == 400
