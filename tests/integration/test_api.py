"""Integration tests for the job API via TestClient."""

import json
import threading
import time

import pytest
from fastapi.testclient import TestClient

from gov_ai.api.main import create_app
from gov_ai.pipeline.job_queue import JobQueue


@pytest.fixture
def release():
    """Jobs block until the test sets this event."""
    return threading.Event()


@pytest.fixture
def job_queue(tmp_path, release):
    def runner(job, store):
        release.wait(timeout=5)
        store.save(f"{job.job_id}.json", {"url": job.url, "principles": job.principles})

    return JobQueue(reports_dir=tmp_path / "prod-reports", max_concurrent=1, runner=runner)


@pytest.fixture
def client(job_queue, release):
    app = create_app(job_queue=job_queue)
    with TestClient(app) as test_client:
        yield test_client
        release.set()


def wait_for_report(client, job_id, release):
    release.set()
    for _ in range(200):
        data = client.get(f"/job/{job_id}").json()
        if data["status"]:
            return data
        time.sleep(0.01)
    raise AssertionError(f"job {job_id} did not finish")


class TestHealth:

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["queue"]["concurrency"] == 1
        assert data["llm_configured"] is False


class TestAnalyze:

    def test_queues_job(self, client, release):
        resp = client.post("/analyze", json={"url": "https://snapshot.org/#/a/proposal/1"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] is True
        assert data["queued"] is True
        assert data["job_id"].endswith("Z")

        result = wait_for_report(client, data["job_id"], release)
        assert result["report"] == {"url": "https://snapshot.org/#/a/proposal/1", "principles": None}

    def test_principles_override(self, client, release):
        resp = client.post("/analyze", json={"url": "https://x", "principles": {"risk": "high"}})
        result = wait_for_report(client, resp.json()["job_id"], release)
        assert result["report"]["principles"] == {"risk": "high"}

    @pytest.mark.parametrize("principles,expected", [({}, {}), ([], []), ("strict", None), (None, None)])
    def test_principles_kinds(self, client, release, principles, expected):
        resp = client.post("/analyze", json={"url": "https://x", "principles": principles})
        result = wait_for_report(client, resp.json()["job_id"], release)
        assert result["report"]["principles"] == expected

    def test_invalid_json(self, client):
        resp = client.post("/analyze", content=b"{not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json() == {"status": False, "error": "Invalid JSON body"}

    @pytest.mark.parametrize("body", [{}, {"url": ""}, {"url": 42}, ["https://x"]])
    def test_missing_url(self, client, body):
        resp = client.post("/analyze", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"status": False, "error": "Missing or invalid 'url' field"}

    def test_empty_body(self, client):
        resp = client.post("/analyze")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing or invalid 'url' field"


class TestJobStatus:

    def test_pending(self, client):
        job_id = client.post("/analyze", json={"url": "https://x"}).json()["job_id"]
        resp = client.get(f"/job/{job_id}")
        assert resp.status_code == 200
        assert resp.json() == {"status": False}

    def test_unknown_job_is_pending(self, client):
        assert client.get("/job/2020-01-01T00-00-00-000Z").json() == {"status": False}

    def test_missing_id(self, client):
        resp = client.get("/job/")
        assert resp.status_code == 400
        assert resp.json() == {"status": False, "error": "Missing job id"}

    def test_error_report_is_returned(self, client, job_queue):
        job_queue.store.save("failed-job.json", {"status": "error", "error": "AMBIENT_API_KEY is not set"})
        data = client.get("/job/failed-job").json()
        assert data["status"] is True
        assert data["report"] == {"status": "error", "error": "AMBIENT_API_KEY is not set"}

    def test_traversal_rejected(self, client):
        resp = client.get("/job/..%5Csecret")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid job id"


class TestNotFound:

    def test_unknown_route(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.json() == {"status": False, "error": "Not found"}

    def test_wrong_method(self, client):
        resp = client.get("/analyze")
        assert resp.status_code == 404
        assert resp.json() == {"status": False, "error": "Not found"}


class TestQueueOrdering:

    def test_jobs_finish_in_order(self, client, job_queue, release):
        ids = [client.post("/analyze", json={"url": f"https://x/{i}"}).json()["job_id"] for i in range(3)]
        assert len(set(ids)) == 3

        last = wait_for_report(client, ids[-1], release)
        assert last["report"]["url"] == "https://x/2"
        for job_id in ids:
            path = job_queue.store.path_for(f"{job_id}.json")
            assert json.loads(path.read_text(encoding="utf-8"))["url"].startswith("https://x/")
