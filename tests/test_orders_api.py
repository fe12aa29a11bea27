import pytest

from photodesk.models import User


@pytest.fixture
def created(client):
    response = client.post("/orders", json={"job_id": "job-42", "assigned_editor": "editor-uid"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def make_user(db):
    def _make(firebase_uid, partner_id=None, role="partner"):
        user = User(
            firebase_uid=firebase_uid,
            email=f"{firebase_uid}@example.com",
            partner_id=partner_id,
            role=role,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def as_editor(auth_state, editor_user):
    auth_state["user"] = editor_user
    return editor_user


def move(client, order_id, to_status, reason=None):
    body = {"to_status": to_status}
    if reason is not None:
        body["reason"] = reason
    return client.post(f"/orders/{order_id}/transitions", json=body)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_create_order(created):
    assert created["status"] == "pending"
    assert created["stage"] == "new_order"
    assert created["partner_id"] == "partner-1"
    assert created["max_revision_rounds"] == 2
    assert created["version"] == 0


def test_create_order_requires_partner_account(client, as_editor):
    response = client.post("/orders", json={})
    assert response.status_code == 403


def test_create_order_validates_revision_rounds(client):
    response = client.post("/orders", json={"max_revision_rounds": 0})
    assert response.status_code == 422


def test_get_and_list_orders(client, created):
    fetched = client.get(f"/orders/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["order_number"] == created["order_number"]

    listed = client.get("/orders").json()
    assert [o["id"] for o in listed] == [created["id"]]

    assert client.get("/orders", params={"status": "completed"}).json() == []


def test_list_rejects_unknown_status_filter(client, created):
    response = client.get("/orders", params={"status": "delivered"})
    assert response.status_code == 400
    assert response.json()["code"] == "unknown_status"


def test_transition_endpoint(client, created):
    response = move(client, created["id"], "processing")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processing"
    assert body["stage"] == "work_in_progress"
    assert body["version"] == 1


def test_invalid_transition_is_409(client, created):
    response = move(client, created["id"], "completed")

    assert response.status_code == 409
    assert response.json()["code"] == "invalid_transition"
    assert client.get(f"/orders/{created['id']}").json()["status"] == "pending"


def test_missing_reason_is_400(client, created):
    response = move(client, created["id"], "cancelled", reason="   ")

    assert response.status_code == 400
    assert response.json()["code"] == "missing_reason"


def test_overlong_reason_is_422(client, created):
    response = move(client, created["id"], "cancelled", reason="x" * 501)
    assert response.status_code == 422


def test_other_tenants_order_is_404(client, created, auth_state, make_user):
    auth_state["user"] = make_user("outsider-uid", partner_id="partner-2")

    assert client.get(f"/orders/{created['id']}").status_code == 404
    response = move(client, created["id"], "processing")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_missing_order_is_404(client):
    assert client.get("/orders/does-not-exist").status_code == 404


def test_editor_workflow_and_history(client, created, auth_state, partner_user, as_editor):
    order_id = created["id"]

    assert client.post(f"/orders/{order_id}/accept").json()["status"] == "processing"
    assert client.post(f"/orders/{order_id}/start").json()["status"] == "in_progress"
    assert client.post(f"/orders/{order_id}/start-qc").json()["status"] == "human_check"

    auth_state["user"] = partner_user
    revision = client.post(f"/orders/{order_id}/revisions", json={"reason": "lighten the shadows"})
    assert revision.status_code == 200
    assert revision.json()["revision_rounds_used"] == 1
    assert revision.json()["auto_approval_deadline"] is not None

    history = client.get(f"/orders/{order_id}/history").json()
    assert [h["to_status"] for h in history] == ["processing", "in_progress", "human_check", "in_revision"]
    assert history[-1]["title"] == "Revision requested"
    assert history[-1]["reason"] == "lighten the shadows"
    assert [h["actor"] for h in history] == ["editor-uid", "editor-uid", "editor-uid", "partner-uid"]


def test_accept_unassigned_order_claims_it(client, auth_state, editor_user):
    order_id = client.post("/orders", json={}).json()["id"]
    auth_state["user"] = editor_user

    response = client.post(f"/orders/{order_id}/accept")

    assert response.status_code == 200
    assert response.json()["assigned_editor"] == "editor-uid"


def test_accept_someone_elses_order_is_404(client, auth_state, editor_user):
    order_id = client.post("/orders", json={"assigned_editor": "editor-2"}).json()["id"]
    auth_state["user"] = editor_user

    assert client.post(f"/orders/{order_id}/accept").status_code == 404


@pytest.mark.parametrize("partner_id", [None, "partner-2"])
def test_accept_by_partner_outside_the_tenant_is_404(client, auth_state, partner_user, make_user, partner_id):
    order_id = client.post("/orders", json={}).json()["id"]
    auth_state["user"] = make_user("p2-uid", partner_id=partner_id)

    response = client.post(f"/orders/{order_id}/accept")

    assert response.status_code == 404
    auth_state["user"] = partner_user
    order = client.get(f"/orders/{order_id}").json()
    assert order["status"] == "pending"
    assert order["assigned_editor"] is None


def test_owning_partner_cannot_accept_as_editor(client):
    order_id = client.post("/orders", json={}).json()["id"]
    assert client.post(f"/orders/{order_id}/accept").status_code == 403


def test_listing_is_scoped_to_the_tenant(client, created, auth_state, make_user):
    auth_state["user"] = make_user("p2-uid", partner_id="partner-2")
    client.post("/orders", json={})

    listed = client.get("/orders").json()
    board = client.get("/orders/kanban").json()

    assert created["id"] not in [o["id"] for o in listed]
    assert len(listed) == 1
    assert sum(column["count"] for column in board["stages"]) == 1


def test_account_without_partner_cannot_list(client, created, auth_state, make_user):
    auth_state["user"] = make_user("orphan-uid", partner_id=None)

    assert client.get("/orders").status_code == 403
    assert client.get("/orders/kanban").status_code == 403


def test_editor_listing_shows_only_assignments(client, created, as_editor):
    listed_ids = [o["id"] for o in client.get("/orders").json()]
    assert listed_ids == [created["id"]]


def test_editor_cannot_review_their_own_work(client, created, as_editor):
    order_id = created["id"]
    client.post(f"/orders/{order_id}/accept")
    client.post(f"/orders/{order_id}/start")
    client.post(f"/orders/{order_id}/start-qc")

    revision = client.post(f"/orders/{order_id}/revisions", json={"reason": "self review"})
    complete = client.post(f"/orders/{order_id}/complete")
    via_transition = move(client, order_id, "completed")

    assert revision.status_code == 403
    assert complete.status_code == 403
    assert via_transition.status_code == 403
    order = client.get(f"/orders/{order_id}").json()
    assert order["status"] == "human_check"
    assert order["approved_by"] is None


def test_owning_partner_approves(client, created, auth_state, partner_user, as_editor):
    order_id = created["id"]
    client.post(f"/orders/{order_id}/accept")
    client.post(f"/orders/{order_id}/start")
    client.post(f"/orders/{order_id}/start-qc")
    auth_state["user"] = partner_user

    response = client.post(f"/orders/{order_id}/complete")

    assert response.status_code == 200
    assert response.json()["approved_by"] == "partner-uid"


def test_decline_requires_reason(client, created):
    order_id = created["id"]
    assert client.post(f"/orders/{order_id}/decline", json={}).status_code == 400

    declined = client.post(f"/orders/{order_id}/decline", json={"reason": "shoot was rescheduled"})
    assert declined.json()["status"] == "cancelled"
    assert declined.json()["stage"] == "cancelled"


def test_assign_editor(client, created):
    response = client.post(f"/orders/{created['id']}/assign", json={"editor_uid": "editor-2"})
    assert response.status_code == 200
    assert response.json()["assigned_editor"] == "editor-2"


def test_assign_editor_only_by_owning_partner(client, created, as_editor):
    response = client.post(f"/orders/{created['id']}/assign", json={"editor_uid": "editor-2"})
    assert response.status_code == 403


def test_revision_budget_exhausted(client):
    order_id = client.post(
        "/orders", json={"max_revision_rounds": 1, "assigned_editor": "editor-uid"}
    ).json()["id"]
    move(client, order_id, "processing")
    move(client, order_id, "in_revision", reason="first round")
    move(client, order_id, "human_check")

    response = client.post(f"/orders/{order_id}/revisions", json={"reason": "second round"})

    assert response.status_code == 409
    assert response.json()["code"] == "revision_budget_exhausted"


def test_revision_status(client, created, clock):
    order_id = created["id"]
    move(client, order_id, "processing")
    move(client, order_id, "in_revision", reason="fix white balance")
    clock.advance(hours=12)

    status = client.get(f"/orders/{order_id}/revision-status").json()

    assert status["max_rounds"] == 2
    assert status["used_rounds"] == 1
    assert status["remaining_rounds"] == 1
    assert status["can_request_revision"] is False
    assert status["days_until_auto_approval"] == 3
    assert status["allowed_transitions"] == ["cancelled", "human_check", "in_progress"]


def test_kanban(client, created, clock):
    other = client.post("/orders", json={"assigned_editor": "editor-uid"}).json()
    move(client, other["id"], "processing")
    move(client, other["id"], "in_revision", reason="sky looks flat")

    board = client.get("/orders/kanban").json()
    columns = {c["id"]: c for c in board["stages"]}

    assert [c["id"] for c in board["stages"]] == [
        "new_order",
        "work_in_progress",
        "revisions",
        "human_check",
        "complete",
        "cancelled",
    ]
    assert columns["new_order"]["count"] == 1
    assert columns["revisions"]["label"] == "Revisions"
    card = columns["revisions"]["orders"][0]
    assert card["id"] == other["id"]
    assert card["revision_notes"] == "sky looks flat"
    assert card["days_until_auto_approval"] == 3


def test_manual_auto_approval(client, created, clock):
    order_id = created["id"]
    move(client, order_id, "processing")
    move(client, order_id, "in_revision", reason="retouch blemishes")
    clock.advance(days=3)

    response = client.post("/orders/automation/auto-approve")

    assert response.json() == {"checked": 1, "approved": 1, "skipped": 0}
    order = client.get(f"/orders/{order_id}").json()
    assert order["status"] == "completed"
    assert order["approved_by"] == "system:auto-approval"
    assert client.get(f"/orders/{order_id}/history").json()[-1]["title"] == "Order auto-approved"


def test_manual_auto_approval_forbidden_for_editors(client, as_editor):
    assert client.post("/orders/automation/auto-approve").status_code == 403
