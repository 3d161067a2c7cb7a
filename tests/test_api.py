import inspect

from fastapi.testclient import TestClient

from hifz.models import GroupLevel, UserRole, VerificationMode

from conftest import make_group, make_user


def _open_task(client: TestClient, student_id: int, group_id: int, **extra):
    response = client.post(
        "/api/v1/tasks/", json={"student_id": student_id, "group_id": group_id, **extra}
    )
    assert response.status_code == 201
    return response.json()


def _submit(client: TestClient, task_id: int, **extra):
    body = {"file_type": "voice", "file_id": "voice-file", **extra}
    return client.post(f"/api/v1/tasks/{task_id}/submissions", json=body)


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_open_and_view_task(client: TestClient, session) -> None:
    group = make_group(session, level=GroupLevel.LEVEL_1)
    student = make_user(session)

    task = _open_task(client, student.id, group.id)
    assert task["stage"] == "stage_1_1"
    assert (task["start_line"], task["end_line"]) == (1, 1)
    assert task["deadline_view"]["hours_left"] >= 0

    viewed = client.get(f"/api/v1/tasks/{task['id']}")
    assert viewed.status_code == 200
    assert viewed.json()["id"] == task["id"]
    assert viewed.json()["pending_count"] == 0


def test_hidden_deadlines_are_not_reported(client: TestClient, session) -> None:
    group = make_group(session, show_deadlines=False)
    student = make_user(session)

    task = _open_task(client, student.id, group.id)

    assert task["deadline_view"] is None


def test_unknown_task_returns_404(client: TestClient) -> None:
    response = client.get("/api/v1/tasks/9999")
    assert response.status_code == 404
    assert response.json()["code"] == "task_not_found"


def test_missing_group_returns_500_with_friendly_message(client: TestClient, session) -> None:
    student = make_user(session)
    response = client.post("/api/v1/tasks/", json={"student_id": student.id, "group_id": 404})
    assert response.status_code == 500
    assert "administrator" in response.json()["detail"]


def test_submission_flow_over_http(client: TestClient, session, channel) -> None:
    mentor = make_user(session, UserRole.MENTOR)
    group = make_group(session, mentor=mentor)
    student = make_user(session)
    task = _open_task(client, student.id, group.id)

    created = _submit(client, task["id"], external_message_id="tg-1")
    assert created.status_code == 201
    submission = created.json()["submission"]
    assert submission["status"] == "pending"
    assert created.json()["outcome"] == "queue_for_mentor"

    replay = _submit(client, task["id"], external_message_id="tg-1")
    assert replay.json()["duplicate"] is True
    assert replay.json()["submission"]["id"] == submission["id"]

    confirmed = client.post(f"/api/v1/submissions/{submission['id']}/confirm")
    assert confirmed.status_code == 200
    assert confirmed.json()["queued_for_review"] is True
    assert confirmed.json()["delivery_attempts"] == 1

    queue = client.get(f"/api/v1/mentors/{mentor.id}/queue").json()
    assert queue == {"mentor_id": mentor.id, "depth": 1, "showing_submission_id": submission["id"]}

    reviewed = client.post(
        f"/api/v1/submissions/{submission['id']}/review",
        json={"status": "passed", "reviewer_id": mentor.id},
    )
    assert reviewed.status_code == 200
    body = reviewed.json()
    assert body["submission"]["status"] == "passed"
    assert body["passed_count"] == 1
    assert body["queue_empty"] is True

    again = client.post(
        f"/api/v1/submissions/{submission['id']}/review", json={"status": "failed"}
    )
    assert again.status_code == 409
    assert again.json()["code"] == "submission_already_reviewed"


def test_cancel_last_over_http(client: TestClient, session) -> None:
    group = make_group(session)
    student = make_user(session)
    task = _open_task(client, student.id, group.id)
    submission = _submit(client, task["id"]).json()["submission"]

    cancelled = client.post(f"/api/v1/tasks/{task['id']}/cancel-last")
    assert cancelled.status_code == 200
    assert cancelled.json() == {"cancelled_submission_id": submission["id"], "pending_count": 0}

    nothing = client.post(f"/api/v1/tasks/{task['id']}/cancel-last")
    assert nothing.status_code == 409
    assert nothing.json()["code"] == "nothing_to_cancel"


def test_full_task_rejects_more_recordings(client: TestClient, session) -> None:
    group = make_group(session, learning_required_count=1)
    student = make_user(session)
    task = _open_task(client, student.id, group.id)

    assert _submit(client, task["id"]).status_code == 201
    response = _submit(client, task["id"])

    assert response.status_code == 409
    assert response.json()["code"] == "task_already_complete"


def test_invalid_payload_is_rejected(client: TestClient, session) -> None:
    group = make_group(session)
    student = make_user(session)
    task = _open_task(client, student.id, group.id)

    response = client.post(f"/api/v1/tasks/{task['id']}/submissions", json={"file_type": "voice"})

    assert response.status_code == 422


def test_auto_passed_submission_advances_progress(client: TestClient, session, scorer) -> None:
    group = make_group(
        session,
        learning_required_count=1,
        ai_enabled=True,
        verification_mode=VerificationMode.FULL_AUTO,
    )
    student = make_user(session)
    task = _open_task(client, student.id, group.id)
    scorer.score_value = 97

    response = _submit(client, task["id"])

    assert response.json()["outcome"] == "auto_passed"
    assert response.json()["task_completed"] is True
    progress = client.get(f"/api/v1/progress/{student.id}/{group.id}").json()
    assert progress["current_line"] == 2
    assert progress["tasks_completed"] == 1


def test_retry_delivery_over_http(client: TestClient, session, channel) -> None:
    mentor = make_user(session, UserRole.MENTOR)
    group = make_group(session, mentor=mentor)
    student = make_user(session)
    task = _open_task(client, student.id, group.id)
    submission = _submit(client, task["id"]).json()["submission"]

    channel.fail = True
    client.post(f"/api/v1/submissions/{submission['id']}/confirm")
    channel.fail = False

    retried = client.post(f"/api/v1/submissions/{submission['id']}/retry-delivery")

    assert retried.status_code == 200
    assert retried.json() == {
        "submission_id": submission["id"],
        "delivered": True,
        "attempts": 2,
        "last_error": None,
    }


def test_api_handlers_run_in_the_threadpool() -> None:
    from hifz.main import app

    handlers = [
        route.endpoint
        for route in app.routes
        if getattr(route, "path", "").startswith("/api/v1/")
    ]
    assert handlers
    assert not any(inspect.iscoroutinefunction(handler) for handler in handlers)
