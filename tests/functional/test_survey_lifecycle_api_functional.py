"""End-to-end lifecycle behaviour through the HTTP API.

Each test seeds a run with one live instance, a recipient (rita), an explicit
owner (oscar), an admin (ada) and an unrelated person (nobody), then drives
the `/api/v1` routes with the acting user in the `X-User-Name` header.
"""

from __future__ import annotations

from datetime import datetime, timezone

from survey_lifecycle.logic import change_log, repository_instances, repository_questions, repository_responses
from survey_lifecycle.models.questions import SurveyInstanceQuestionResponse, SurveyQuestionResponse

PROBLEM_JSON = "application/problem+json"


def _as(user: str) -> dict[str, str]:
    return {"X-User-Name": user}


def _status(client, instance_id: int, user: str, action: str, reason: str | None = None):
    body = {"action": action}
    if reason is not None:
        body["reason"] = reason
    return client.post(f"/api/v1/survey-instances/{instance_id}/status", json=body, headers=_as(user))


def _answer(instance_id: int, person_id: int, question_id: int, text: str) -> None:
    repository_responses.save_response(
        SurveyInstanceQuestionResponse(
            survey_instance_id=instance_id,
            person_id=person_id,
            last_updated_at=datetime.now(timezone.utc),
            question_response=SurveyQuestionResponse(question_id=question_id, string_response=text),
        )
    )


# ---------------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------------


def test_owner_approves_completed_instance(client, seed) -> None:
    survey = seed.survey(status="COMPLETED")

    resp = _status(client, survey.instance_id, "oscar", "APPROVING")

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["applied"] is True
    instance = repository_instances.get_instance(survey.instance_id)
    assert instance.status.value == "APPROVED"
    assert instance.approved_by == "oscar"
    entries = change_log.find_for_instance(survey.instance_id)
    assert [e["message"] for e in entries] == [
        "Survey Instance: status changed to APPROVED with action APPROVING"
    ]
    assert entries[0]["user_id"] == "oscar"


def test_admin_reopens_approved_instance_with_prior_version(client, seed) -> None:
    survey = seed.survey(status="COMPLETED")
    _answer(survey.instance_id, survey.recipient_id, survey.question_ids[0], "first draft")
    assert _status(client, survey.instance_id, "oscar", "APPROVING").status_code == 200

    resp = _status(client, survey.instance_id, "ada", "REOPENING", reason="needs more detail")

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "IN_PROGRESS"
    prior_id = body["prior_version_id"]
    assert prior_id is not None

    live = client.get(f"/api/v1/survey-instances/{survey.instance_id}").json()
    assert live["status"] == "IN_PROGRESS"
    assert live["approved_by"] is None and live["approved_at"] is None

    versions = client.get(f"/api/v1/survey-instances/{survey.instance_id}/previous-versions").json()
    assert [v["id"] for v in versions] == [prior_id]
    assert versions[0]["status"] == "APPROVED"
    assert versions[0]["approved_by"] == "oscar"
    assert versions[0]["original_instance_id"] == survey.instance_id

    prior_responses = client.get(f"/api/v1/survey-instances/{prior_id}/responses").json()
    assert [r["question_response"]["string_response"] for r in prior_responses] == ["first draft"]

    messages = [e["message"] for e in change_log.find_for_instance(survey.instance_id)]
    assert messages[-1] == (
        "Survey Instance: status changed to IN_PROGRESS with action REOPENING, [Reason]: needs more detail"
    )


def test_second_reopen_is_rejected_and_keeps_single_prior_version(client, seed) -> None:
    survey = seed.survey(status="APPROVED")
    assert _status(client, survey.instance_id, "ada", "REOPENING").status_code == 200

    again = _status(client, survey.instance_id, "ada", "REOPENING")

    assert again.status_code == 409
    assert again.json()["code"] == "ILLEGAL_TRANSITION"
    assert len(repository_instances.find_previous_versions(survey.instance_id)) == 1


def test_non_owner_approving_in_progress_is_forbidden(client, seed) -> None:
    survey = seed.survey(status="IN_PROGRESS")

    resp = _status(client, survey.instance_id, "rita", "APPROVING")

    assert resp.status_code == 403
    assert resp.headers["content-type"].startswith(PROBLEM_JSON)
    problem = resp.json()
    assert problem["code"] == "PERMISSION_DENIED"
    assert problem["instance"] == f"/api/v1/survey-instances/{survey.instance_id}/status"
    assert repository_instances.get_instance(survey.instance_id).status.value == "IN_PROGRESS"
    assert change_log.find_for_instance(survey.instance_id) == []


def test_prior_version_is_immutable(client, seed) -> None:
    survey = seed.survey(status="APPROVED")
    prior_id = _status(client, survey.instance_id, "ada", "REOPENING").json()["prior_version_id"]

    resp = _status(client, prior_id, "ada", "REOPENING")

    assert resp.status_code == 409
    assert resp.json()["code"] == "IMMUTABLE_VERSION"
    assert client.get(
        f"/api/v1/survey-instances/{prior_id}/actions", headers=_as("ada")
    ).json() == {"actions": []}


def test_submission_prunes_responses_to_retired_questions(client, seed) -> None:
    survey = seed.survey(status="IN_PROGRESS", questions=2)
    kept, retired = survey.question_ids
    _answer(survey.instance_id, survey.recipient_id, kept, "kept")
    _answer(survey.instance_id, survey.recipient_id, retired, "gone")
    repository_questions.retire_question(retired)

    resp = _status(client, survey.instance_id, "rita", "SUBMITTING")

    assert resp.status_code == 200, resp.text
    assert resp.json()["removed_responses"] == 1
    remaining = client.get(f"/api/v1/survey-instances/{survey.instance_id}/responses").json()
    assert [r["question_response"]["question_id"] for r in remaining] == [kept]
    instance = repository_instances.get_instance(survey.instance_id)
    assert instance.status.value == "COMPLETED"
    assert instance.submitted_by == "rita"


def test_rejecting_without_reason_is_invalid(client, seed) -> None:
    survey = seed.survey(status="COMPLETED")

    resp = _status(client, survey.instance_id, "oscar", "REJECTING", reason="   ")

    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_COMMAND"
    assert repository_instances.get_instance(survey.instance_id).status.value == "COMPLETED"


def test_rejecting_with_reason_records_it(client, seed) -> None:
    survey = seed.survey(status="COMPLETED")

    resp = _status(client, survey.instance_id, "oscar", "REJECTING", reason="missing figures")

    assert resp.status_code == 200
    assert resp.json()["status"] == "REJECTED"
    assert change_log.find_for_instance(survey.instance_id)[-1]["message"].endswith("[Reason]: missing figures")


def test_owning_role_holder_can_withdraw(client, seed) -> None:
    survey = seed.survey(status="NOT_STARTED", owning_role="REVIEWER")
    seed.person("rolf", roles=["REVIEWER"])

    resp = _status(client, survey.instance_id, "rolf", "WITHDRAWING")

    assert resp.status_code == 200
    assert resp.json()["status"] == "WITHDRAWN"


def test_unknown_action_is_a_validation_error(client, seed) -> None:
    survey = seed.survey()

    resp = _status(client, survey.instance_id, "rita", "ARCHIVING")

    assert resp.status_code == 422
    assert resp.json()["code"] == "REQUEST_VALIDATION_FAILED"


def test_missing_user_header_is_rejected(client, seed) -> None:
    survey = seed.survey()

    resp = client.post(f"/api/v1/survey-instances/{survey.instance_id}/status", json={"action": "SAVING"})

    assert resp.status_code == 400
    assert resp.json()["code"] == "USER_HEADER_MISSING"


def test_unknown_user_and_instance_are_not_found(client, seed) -> None:
    survey = seed.survey()

    assert _status(client, survey.instance_id, "ghost", "SAVING").status_code == 404
    missing = client.get("/api/v1/survey-instances/999999")
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def test_actions_offered_to_recipient(client, seed) -> None:
    survey = seed.survey(status="IN_PROGRESS")

    body = client.get(f"/api/v1/survey-instances/{survey.instance_id}/actions", headers=_as("rita")).json()

    assert [(a["action"], a["result_status"]) for a in body["actions"]] == [
        ("SAVING", "IN_PROGRESS"),
        ("SUBMITTING", "COMPLETED"),
    ]


def test_actions_offered_to_admin_on_completed(client, seed) -> None:
    survey = seed.survey(status="COMPLETED")

    body = client.get(f"/api/v1/survey-instances/{survey.instance_id}/actions", headers=_as("ada")).json()

    assert [a["action"] for a in body["actions"]] == ["APPROVING", "REJECTING", "REOPENING"]
    assert body["actions"][1]["reason"] == "MANDATORY"


def test_permissions_snapshot(client, seed) -> None:
    survey = seed.survey()

    owner = client.get(f"/api/v1/survey-instances/{survey.instance_id}/permissions", headers=_as("oscar")).json()
    outsider = client.get(f"/api/v1/survey-instances/{survey.instance_id}/permissions", headers=_as("nobody")).json()

    assert owner["is_owner"] and owner["is_meta_edit"] and not owner["is_participant"]
    assert not any(outsider.values())


def test_instances_for_user_and_run_exclude_prior_versions(client, seed) -> None:
    survey = seed.survey(status="APPROVED")
    assert _status(client, survey.instance_id, "ada", "REOPENING").status_code == 200

    mine = client.get("/api/v1/survey-instances/user", headers=_as("rita")).json()
    by_run = client.get(f"/api/v1/survey-runs/{survey.run_id}/instances").json()

    assert [i["id"] for i in mine] == [survey.instance_id]
    assert [i["id"] for i in by_run] == [survey.instance_id]


def test_recipients_and_owners_listing(client, seed) -> None:
    survey = seed.survey()

    recipients = client.get(f"/api/v1/survey-instances/{survey.instance_id}/recipients").json()
    owners = client.get(f"/api/v1/survey-instances/{survey.instance_id}/owners").json()

    assert [r["person"]["user_name"] for r in recipients] == ["rita"]
    assert [o["person"]["user_name"] for o in owners] == ["oscar"]


# ---------------------------------------------------------------------------
# Responses and administrative edits
# ---------------------------------------------------------------------------


def test_recipient_saves_response_without_changing_status(client, seed) -> None:
    survey = seed.survey(status="NOT_STARTED")
    qid = survey.question_ids[0]
    url = f"/api/v1/survey-instances/{survey.instance_id}/responses"

    first = client.put(url, json={"question_id": qid, "string_response": "hello", "comment": "first"}, headers=_as("rita"))
    second = client.put(url, json={"question_id": qid, "string_response": "hello again"}, headers=_as("rita"))

    assert first.status_code == 200, first.text
    assert second.status_code == 200, second.text
    stored = repository_responses.list_responses(survey.instance_id)
    assert [(r.question_response.question_id, r.question_response.string_response) for r in stored] == [
        (qid, "hello again")
    ]
    assert repository_instances.get_instance(survey.instance_id).status.value == "NOT_STARTED"
    assert change_log.find_for_instance(survey.instance_id) == []


def test_non_recipient_cannot_save_response(client, seed) -> None:
    survey = seed.survey(status="IN_PROGRESS")

    resp = client.put(
        f"/api/v1/survey-instances/{survey.instance_id}/responses",
        json={"question_id": survey.question_ids[0], "string_response": "hello"},
        headers=_as("oscar"),
    )

    assert resp.status_code == 403


def test_responses_cannot_be_saved_once_completed(client, seed) -> None:
    survey = seed.survey(status="COMPLETED")

    resp = client.put(
        f"/api/v1/survey-instances/{survey.instance_id}/responses",
        json={"question_id": survey.question_ids[0], "string_response": "late"},
        headers=_as("rita"),
    )

    assert resp.status_code == 409
    assert resp.json()["code"] == "ILLEGAL_TRANSITION"


def test_due_date_change_requires_meta_edit(client, seed) -> None:
    survey = seed.survey()
    url = f"/api/v1/survey-instances/{survey.instance_id}/due-date"

    denied = client.put(url, json={"new_date_val": "2030-01-31"}, headers=_as("rita"))
    allowed = client.put(url, json={"new_date_val": "2030-01-31"}, headers=_as("ada"))
    missing = client.put(url, json={}, headers=_as("ada"))

    assert denied.status_code == 403
    assert allowed.status_code == 200 and allowed.json() == {"updated": True}
    assert missing.status_code == 400
    assert repository_instances.get_instance(survey.instance_id).due_date.isoformat() == "2030-01-31"


def test_recipient_add_replace_and_delete(client, seed) -> None:
    survey = seed.survey()
    base = f"/api/v1/survey-instances/{survey.instance_id}/recipients"

    added = client.post(base, json={"person_id": survey.outsider_id}, headers=_as("oscar"))
    assert added.status_code == 201
    new_id = added.json()["id"]

    replaced = client.put(f"{base}/{new_id}", json={"person_id": survey.admin_id}, headers=_as("oscar"))
    assert replaced.status_code == 200 and replaced.json() == {"updated": True}

    names = sorted(r["person"]["user_name"] for r in client.get(base).json())
    assert names == ["ada", "rita"]

    ada_row = next(r for r in client.get(base).json() if r["person"]["user_name"] == "ada")
    assert client.delete(f"{base}/{ada_row['id']}", headers=_as("oscar")).status_code == 204
    assert client.delete(f"{base}/{ada_row['id']}", headers=_as("oscar")).status_code == 404

    messages = [e["message"] for e in change_log.find_for_instance(survey.instance_id)]
    assert messages == [
        "Survey Instance: Added Nobody as a recipient",
        "Survey Instance: Set Ada as a recipient",
        "Survey Instance: Removed Ada as a recipient",
    ]


def test_recipient_cannot_manage_recipients(client, seed) -> None:
    survey = seed.survey()

    resp = client.post(
        f"/api/v1/survey-instances/{survey.instance_id}/recipients",
        json={"person_id": survey.outsider_id},
        headers=_as("rita"),
    )

    assert resp.status_code == 403


def test_report_problem_with_question(client, seed) -> None:
    survey = seed.survey()
    qid = survey.question_ids[0]

    reported = client.post(
        f"/api/v1/survey-instances/{survey.instance_id}/questions/{qid}/problems",
        json={"message": "typo in wording"},
        headers=_as("rita"),
    )
    unknown = client.post(
        f"/api/v1/survey-instances/{survey.instance_id}/questions/987654/problems",
        json={"message": "???"},
        headers=_as("rita"),
    )

    assert reported.json() == {"reported": True}
    assert unknown.json() == {"reported": False}
    entries = change_log.find_for_instance(survey.instance_id)
    assert [(e["child_kind"], e["message"]) for e in entries] == [
        ("SURVEY_QUESTION", "Question [Question 1]: typo in wording")
    ]


# ---------------------------------------------------------------------------
# Cross-cutting
# ---------------------------------------------------------------------------


def test_request_id_is_echoed(client, seed) -> None:
    resp = client.get("/api/v1/survey-instances/424242", headers={"X-Request-Id": "req-123"})

    assert resp.headers["X-Request-Id"] == "req-123"


def test_health_reports_database(client) -> None:
    assert client.get("/health").json() == {"status": "ok", "db": True}
