"""
Tests for the analyses HTTP routes.

Validates:
- Status normalization and rejection of unknown statuses
- Minutes parsing for the expires-in listing
- Job ID path matching (lower-case UUIDs only)
- Timestamp encoding as epoch milliseconds
- PATCH body validation and error mapping
- Database errors surface as 500 with the error message
- Request logging: one line per request, tracebacks for unhandled errors
"""

import pytest
from loguru import logger
from sqlalchemy.exc import OperationalError

from conftest import JOB_ID, FakeResult, job_row, status_update_row


class TestExpiredByStatus:

    def test_lists_expired_jobs(self, client, fake_conn):
        fake_conn.queue(FakeResult([job_row(planned_end_date=job_row()["start_date"])]))

        response = client.get("/expired/running")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        jobs = response.json()["jobs"]
        assert len(jobs) == 1
        assert jobs[0]["id"] == JOB_ID
        assert jobs[0]["description"] == "word count run"
        assert jobs[0]["result_folder"] == "/iplant/home/ipcdev/analyses/wc-run-1"
        assert jobs[0]["start_date"] == 1704164645000
        assert jobs[0]["planned_end_date"] == 1704164645000

    def test_status_is_case_normalized(self, client, fake_conn):
        response = client.get("/expired/CANCELED")

        assert response.status_code == 200
        params = fake_conn.statements[0].compile().params
        assert "Canceled" in params.values()

    def test_empty_result_is_empty_list(self, client):
        response = client.get("/expired/Completed")

        assert response.status_code == 200
        assert response.json() == {"jobs": []}

    def test_unknown_status_is_rejected(self, client, fake_conn):
        response = client.get("/expired/bogus")

        assert response.status_code == 400
        assert response.json()["detail"] == "unknown status Bogus"
        assert fake_conn.statements == []


class TestExpiresInByStatus:

    def test_lists_expiring_jobs(self, client, fake_conn):
        fake_conn.queue(FakeResult([job_row()]))

        response = client.get("/expires-in/30/queued")

        assert response.status_code == 200
        assert response.json()["jobs"][0]["planned_end_date"] is None
        assert len(fake_conn.statements) == 1

    def test_non_integer_minutes_is_rejected(self, client, fake_conn):
        response = client.get("/expires-in/ten/Running")

        assert response.status_code == 400
        assert response.json()["detail"] == "can't parse ten as an integer"
        assert fake_conn.statements == []

    def test_negative_minutes_is_rejected(self, client):
        response = client.get("/expires-in/-5/Running")

        assert response.status_code == 400

    def test_minutes_beyond_int32_is_rejected(self, client, fake_conn):
        response = client.get("/expires-in/2147483648/Running")

        assert response.status_code == 400
        assert response.json()["detail"] == "can't parse 2147483648 as an integer"
        assert fake_conn.statements == []

    def test_largest_window_is_accepted(self, client, fake_conn):
        response = client.get("/expires-in/2147483647/Running")

        assert response.status_code == 200
        assert len(fake_conn.statements) == 1

    def test_status_checked_before_minutes(self, client):
        response = client.get("/expires-in/ten/bogus")

        assert response.status_code == 400
        assert response.json()["detail"] == "unknown status Bogus"


class TestGetById:

    def test_returns_job(self, client, fake_conn):
        fake_conn.queue(FakeResult([job_row()]))

        response = client.get(f"/id/{JOB_ID}")

        assert response.status_code == 200
        body = response.json()
        assert body["username"] == "ipcdev@iplantcollaborative.org"
        assert body["name"] == "wc-run-1"
        assert set(body) == {
            "id", "app_id", "user_id", "username", "status", "description",
            "name", "result_folder", "start_date", "planned_end_date",
        }

    def test_missing_job_is_404(self, client):
        response = client.get(f"/id/{JOB_ID}")

        assert response.status_code == 404
        assert response.json()["detail"] == f"job {JOB_ID} not found"

    def test_malformed_id_does_not_match(self, client, fake_conn):
        assert client.get("/id/not-a-uuid").status_code == 404
        assert client.get(f"/id/{JOB_ID.upper()}").status_code == 404
        assert fake_conn.statements == []

    def test_database_error_is_500(self, client, fake_conn):
        async def broken(statement):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        fake_conn.execute = broken

        response = client.get(f"/id/{JOB_ID}")

        assert response.status_code == 500
        assert "connection refused" in response.json()["detail"]


class TestUpdateById:

    def test_patch_updates_and_returns_job(self, client, fake_conn):
        fake_conn.queue(
            FakeResult(rowcount=1),
            FakeResult([job_row(status="Canceled", name="renamed")]),
        )

        response = client.patch(f"/id/{JOB_ID}", json={"status": "canceled", "name": "renamed"})

        assert response.status_code == 200
        assert response.json()["status"] == "Canceled"
        assert response.json()["name"] == "renamed"
        assert fake_conn.commits == 1
        params = fake_conn.statements[0].compile().params
        assert params["status"] == "Canceled"
        assert params["job_name"] == "renamed"

    def test_empty_patch_is_rejected(self, client, fake_conn):
        response = client.patch(f"/id/{JOB_ID}", json={"app_id": "ignored"})

        assert response.status_code == 400
        assert response.json()["detail"] == "nothing in patch"
        assert fake_conn.statements == []

    def test_malformed_json_is_rejected(self, client):
        response = client.patch(
            f"/id/{JOB_ID}",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["detail"].startswith("invalid JSON body")

    def test_non_object_body_is_rejected(self, client):
        response = client.patch(f"/id/{JOB_ID}", json=["status", "Failed"])

        assert response.status_code == 400

    def test_invalid_status_in_patch_is_rejected(self, client):
        response = client.patch(f"/id/{JOB_ID}", json={"status": "Paused"})

        assert response.status_code == 400
        assert "unknown status Paused" in response.json()["detail"]

    def test_wrong_type_is_rejected(self, client):
        response = client.patch(f"/id/{JOB_ID}", json={"planned_end_date": "tomorrow"})

        assert response.status_code == 400
        assert "planned_end_date" in response.json()["detail"]

    def test_out_of_range_end_date_is_rejected(self, client, fake_conn):
        """
        GIVEN: a planned_end_date no datetime can represent
        WHEN: the job is patched
        THEN: the request is a 400 with a JSON body and nothing is written
        """
        response = client.patch(f"/id/{JOB_ID}", json={"planned_end_date": 10**18})

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("application/json")
        assert "planned_end_date" in response.json()["detail"]
        assert fake_conn.statements == []

    def test_boolean_end_date_is_rejected(self, client, fake_conn):
        response = client.patch(f"/id/{JOB_ID}", json={"planned_end_date": True})

        assert response.status_code == 400
        assert fake_conn.statements == []

    def test_numeric_string_end_date_is_rejected(self, client, fake_conn):
        response = client.patch(f"/id/{JOB_ID}", json={"planned_end_date": "1704164645000"})

        assert response.status_code == 400
        assert fake_conn.statements == []

    def test_non_string_name_is_rejected(self, client, fake_conn):
        response = client.patch(f"/id/{JOB_ID}", json={"name": 5})

        assert response.status_code == 400
        assert fake_conn.statements == []

    def test_unknown_job_is_404(self, client, fake_conn):
        fake_conn.queue(FakeResult(rowcount=0))

        response = client.patch(f"/id/{JOB_ID}", json={"description": "x"})

        assert response.status_code == 404
        assert fake_conn.rollbacks == 1
        assert fake_conn.commits == 0


class TestStatusUpdates:

    def test_lists_updates(self, client, fake_conn):
        fake_conn.queue(FakeResult([
            status_update_row(),
            status_update_row(sent_on=1704164700000, last_propagation_attempt=1704164701000),
        ]))

        response = client.get(f"/id/{JOB_ID}/status-updates")

        assert response.status_code == 200
        updates = response.json()["status_updates"]
        assert [u["sent_on"] for u in updates] == [1704164645000, 1704164700000]
        assert updates[0]["last_propagation_attempt"] is None
        assert updates[1]["last_propagation_attempt"] == 1704164701000
        assert updates[0]["created_date"] == 1704164645000

    def test_no_updates_is_empty_list(self, client):
        response = client.get(f"/id/{JOB_ID}/status-updates")

        assert response.status_code == 200
        assert response.json() == {"status_updates": []}


class TestDebugAndHealth:

    def test_debug_vars(self, client):
        response = client.get("/debug/vars")

        assert response.status_code == 200
        body = response.json()
        assert isinstance(body["cmdline"], list)
        assert body["memstats"]["max_rss_kb"] > 0

    def test_health_without_engine_is_unhealthy(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "unhealthy", "database": {"connected": False}}

    def test_health_with_database_is_healthy(self, client, monkeypatch):
        async def ping():
            return None

        monkeypatch.setattr("jobservices.api.health.ping_database", ping)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": {"connected": True}}


class TestRequestLogging:

    @pytest.fixture
    def records(self, client):
        """Capture loguru records emitted after the app configured logging."""
        captured = []
        handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
        yield captured
        logger.remove(handler_id)

    def http_records(self, records):
        return [r for r in records if r["extra"].get("component") == "http"]

    def test_one_line_per_request(self, client, records):
        client.get("/expired/Running")

        lines = self.http_records(records)
        assert len(lines) == 1
        assert lines[0]["level"].name == "INFO"
        assert lines[0]["message"].startswith("GET /expired/Running -> 200 (")
        assert lines[0]["message"].endswith("[client=testclient]")

    def test_health_requests_are_logged(self, client, records):
        client.get("/health")

        lines = self.http_records(records)
        assert len(lines) == 1
        assert lines[0]["message"].startswith("GET /health -> 200 (")

    def test_server_errors_logged_as_warning(self, client, fake_conn, records):
        async def broken(statement):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

        fake_conn.execute = broken

        client.get(f"/id/{JOB_ID}")

        lines = self.http_records(records)
        assert lines[0]["level"].name == "WARNING"
        assert "-> 500" in lines[0]["message"]

    def test_unhandled_error_logged_with_traceback(self, client, fake_conn, records):
        """
        GIVEN: a handler that raises an error nothing maps to a response
        WHEN: the request is served
        THEN: the request line is logged at ERROR with the exception attached
        """
        async def broken(statement):
            raise RuntimeError("boom")

        fake_conn.execute = broken

        with pytest.raises(RuntimeError):
            client.get(f"/id/{JOB_ID}")

        lines = self.http_records(records)
        assert len(lines) == 1
        assert lines[0]["level"].name == "ERROR"
        assert lines[0]["message"].startswith(f"GET /id/{JOB_ID} -> unhandled error")
        assert lines[0]["exception"] is not None
        assert lines[0]["exception"].type is RuntimeError
