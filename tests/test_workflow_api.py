"""
HTTP tests for the jobs and bulk endpoints
"""

from job_pipeline.services.side_effects import side_effects


def _drain(client):
    client.portal.call(side_effects.drain)


def _create(client, headers, **overrides):
    body = {"name": "Bridge inspection", "siteId": 2, "clientId": 7, "clientType": "individual"}
    body.update(overrides)
    resp = client.post("/v1/jobs", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert "X-Request-ID" in resp.headers


def test_prometheus_metrics(client):
    resp = client.get("/v1/metrics/prometheus")
    assert resp.status_code == 200
    assert "job_pipeline_build_info" in resp.text


def test_missing_user_header_is_401(client):
    resp = client.get("/v1/jobs")
    assert resp.status_code == 401
    assert resp.json()["error"] == "Unauthorized"


def test_non_numeric_user_is_401(client):
    assert client.get("/v1/jobs", headers={"X-User-Id": "bob"}).status_code == 401


def test_create_and_get_job(client, user_headers):
    job = _create(client, user_headers, notes="call ahead")
    resp = client.get(f"/v1/jobs/{job['id']}", headers=user_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["pipeline"] == "bids"
    assert body["createdBy"] == 42
    assert body["meta"]["notes"] == "call ahead"
    assert "requested" in body["dates"]


def test_create_job_validation(client, user_headers):
    resp = client.post("/v1/jobs", json={"name": "x"}, headers=user_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidPayload"


def test_get_missing_job(client, user_headers):
    resp = client.get("/v1/jobs/999", headers=user_headers)
    assert resp.status_code == 404
    assert resp.json() == {"error": "NotFound", "detail": "Job 999 not found"}


def test_full_lifecycle(client, user_headers, contacts, notifier, email_sender):
    job_id = _create(client, user_headers)["id"]

    resp = client.post(f"/v1/jobs/{job_id}/schedule", headers=user_headers, json={
        "scheduledDate": "2024-01-10", "scheduledFlight": "2024-01-10", "personsAssigned": [11],
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["pipeline"] == "scheduled"
    assert resp.json()["meta"]["persons_assigned"] == "[11]"

    resp = client.post(f"/v1/jobs/{job_id}/log-flight", headers=user_headers,
                       json={"flownDate": "2024-01-10", "flightLog": {"duration": 45}})
    assert resp.json()["pipeline"] == "processing-deliver"

    resp = client.post(f"/v1/jobs/{job_id}/deliver", headers=user_headers, json={"deliveredDate": "2024-01-12"})
    assert resp.json()["dates"]["delivered"] == "2024-01-12"

    resp = client.post(f"/v1/jobs/{job_id}/bill", headers=user_headers, json={"invoiceNumber": "INV-1"})
    assert resp.json()["pipeline"] == "bill"

    resp = client.post(f"/v1/jobs/{job_id}/bill-paid", headers=user_headers, json={})
    assert resp.json()["pipeline"] == "completed"

    _drain(client)
    types = sorted(n["type"] for n in notifier.sent)
    assert types == ["job_billed", "job_billed", "job_delivered", "job_scheduled"]
    templates = sorted(e["template"] for e in email_sender.sent)
    assert templates == ["delivery-notification", "pilot-notification"]


def test_single_action_invalid_payload(client, user_headers):
    job_id = _create(client, user_headers)["id"]
    resp = client.post(f"/v1/jobs/{job_id}/schedule", headers=user_headers, json={
        "scheduledDate": "2024-01-10", "scheduledFlight": "2024-01-10", "personsAssigned": [],
    })
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidPayload"
    assert client.get(f"/v1/jobs/{job_id}", headers=user_headers).json()["pipeline"] == "bids"


def test_single_action_unknown(client, user_headers):
    job_id = _create(client, user_headers)["id"]
    assert client.post(f"/v1/jobs/{job_id}/teleport", headers=user_headers, json={}).status_code == 404


def test_patch_job(client, user_headers):
    job_id = _create(client, user_headers)["id"]
    resp = client.patch(f"/v1/jobs/{job_id}", headers=user_headers, json={"name": "Renamed", "amountPayable": "99"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"
    assert resp.json()["meta"]["amount_payable"] == "99"


def test_delete_job(client, user_headers):
    job_id = _create(client, user_headers, notes="gone soon")["id"]
    resp = client.delete(f"/v1/jobs/{job_id}", headers=user_headers)
    assert resp.status_code == 200
    assert resp.json() == {"deleted": job_id}
    assert client.get(f"/v1/jobs/{job_id}", headers=user_headers).status_code == 404


def test_list_jobs_with_counts(client, user_headers):
    _create(client, user_headers)
    _create(client, user_headers)
    resp = client.get("/v1/jobs", headers=user_headers)
    assert resp.status_code == 200
    assert len(resp.json()["jobs"]) == 2
    assert resp.json()["counts"]["bids"] == 2

    assert client.get("/v1/jobs?pipeline=archived", headers=user_headers).status_code == 400


class TestBulkEndpoints:
    def test_bulk_bill_partial(self, client, user_headers, admin_headers):
        a = _create(client, user_headers)["id"]
        b = _create(client, user_headers)["id"]

        resp = client.post("/v1/bulk/bill", headers=user_headers,
                           json={"jobIds": [a, b, 999], "invoiceNumber": "INV-100"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 3
        assert body["succeeded"] == 2
        assert body["failed"] == 1
        assert body["errors"] == [{"jobId": 999, "error": "NotFound"}]
        assert body["warnings"] == []

        logs = client.get("/v1/bulk/logs", headers=admin_headers).json()
        assert len(logs) == 1
        assert logs[0]["id"] == body["logId"]
        assert logs[0]["status"] == "partial"
        assert logs[0]["actionType"] == "bill"
        assert logs[0]["errorDetails"] == [{"jobId": 999, "error": "NotFound"}]

    def test_bulk_all_failed_is_still_200(self, client, user_headers):
        resp = client.post("/v1/bulk/deliver", headers=user_headers, json={"jobIds": [998, 999]})
        assert resp.status_code == 200
        assert resp.json()["failed"] == 2

    def test_bulk_invalid_payload_opens_no_log(self, client, user_headers, admin_headers):
        job_id = _create(client, user_headers)["id"]
        resp = client.post("/v1/bulk/schedule", headers=user_headers, json={
            "jobIds": [job_id], "scheduledDate": "2024-01-10", "scheduledFlight": "2024-01-10",
            "personsAssigned": [],
        })
        assert resp.status_code == 400
        assert client.get("/v1/bulk/logs", headers=admin_headers).json() == []

    def test_bulk_requires_job_ids(self, client, user_headers):
        resp = client.post("/v1/bulk/approve", headers=user_headers, json={"jobIds": [], "approvedFlight": "2024-01-09"})
        assert resp.status_code == 400

    def test_bulk_unknown_action(self, client, user_headers):
        assert client.post("/v1/bulk/teleport", headers=user_headers, json={"jobIds": [1]}).status_code == 404

    def test_bulk_schedule_logged_as_approve(self, client, user_headers, admin_headers):
        job_id = _create(client, user_headers)["id"]
        resp = client.post("/v1/bulk/schedule", headers=user_headers, json={
            "jobIds": [job_id], "scheduledDate": "2024-01-10", "scheduledFlight": "2024-01-10",
            "personsAssigned": [11],
        })
        assert resp.json()["succeeded"] == 1
        log = client.get("/v1/bulk/logs", headers=admin_headers).json()[0]
        assert (log["actionType"], log["pipeline"]) == ("approve", "scheduled")

    def test_bulk_delete(self, client, user_headers):
        ids = [_create(client, user_headers)["id"] for _ in range(2)]
        resp = client.post("/v1/bulk/delete", headers=user_headers, json={"jobIds": ids})
        assert resp.json()["succeeded"] == 2
        assert client.get(f"/v1/bulk/jobs?ids={ids[0]},{ids[1]}", headers=user_headers).json() == []

    def test_bulk_get_jobs(self, client, user_headers):
        a = _create(client, user_headers)["id"]
        resp = client.get(f"/v1/bulk/jobs?ids={a},555", headers=user_headers)
        assert [j["id"] for j in resp.json()] == [a]
        assert client.get("/v1/bulk/jobs?ids=a,b", headers=user_headers).status_code == 400

    def test_bulk_side_effects_only_for_successes(self, client, user_headers, contacts, notifier):
        a = _create(client, user_headers)["id"]
        client.post("/v1/bulk/deliver", headers=user_headers, json={"jobIds": [a, 999]})
        _drain(client)
        assert [(n["user_id"], n["type"]) for n in notifier.sent] == [(7, "job_delivered")]

    def test_logs_require_admin(self, client, user_headers):
        resp = client.get("/v1/bulk/logs", headers=user_headers)
        assert resp.status_code == 403
        assert resp.json()["error"] == "Forbidden"

    def test_logs_filter_and_order(self, client, user_headers, admin_headers):
        job_id = _create(client, user_headers)["id"]
        client.post("/v1/bulk/approve", headers=user_headers, json={"jobIds": [job_id], "approvedFlight": "2024-01-09"})
        client.post("/v1/bulk/deliver", headers=user_headers, json={"jobIds": [999]})

        logs = client.get("/v1/bulk/logs", headers=admin_headers).json()
        assert [entry["actionType"] for entry in logs] == ["deliver", "approve"]

        failed = client.get("/v1/bulk/logs?status=failed", headers=admin_headers).json()
        assert [entry["actionType"] for entry in failed] == ["deliver"]

        approve = client.get("/v1/bulk/logs?actionType=approve", headers=admin_headers).json()
        assert len(approve) == 1

        single = client.get(f"/v1/bulk/logs/{approve[0]['id']}", headers=admin_headers).json()
        assert single["status"] == "completed"
