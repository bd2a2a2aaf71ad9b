import json
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from bridge.errors import DeliveryError
from bridge.main import create_app
from bridge.services.classifier import EventClassifier
from bridge.services.failure_tracker import FailureTracker
from bridge.services.webhook_handler import WebhookHandler
from bridge.signature import sign

SECRET = "test_webhook_secret"
NOW = datetime(2026, 1, 19, 12, 30, tzinfo=timezone.utc)

PUSH_PAYLOAD = json.dumps({
    "ref": "refs/heads/main",
    "commits": [{"id": "abc1234def", "message": "Test commit", "url": "u", "author": {"name": "Test User"}}],
    "repository": {"full_name": "test/repo", "html_url": "https://github.com/test/repo"},
    "sender": {"login": "testuser"},
})

class DummySink:
    def __init__(self):
        self.messages = []

    async def send(self, message):
        self.messages.append(message)

class FailingSink:
    async def send(self, message):
        raise DeliveryError("chat webhook responded 500: boom")

def _app(sink=None):
    tracker = FailureTracker(retention=timedelta(days=7), now_fn=lambda: NOW)
    sink = sink or DummySink()
    handler = WebhookHandler(SECRET, EventClassifier(tracker), sink)
    return create_app(handler), tracker, sink

def _post(client, path, body, event="push", secret=SECRET):
    headers = {"X-GitHub-Event": event, "Content-Type": "application/json"}
    if secret is not None:
        headers["X-Hub-Signature-256"] = sign(secret, body)
    return client.post(path, content=body, headers=headers)

def test_health_endpoints():
    app, _tracker, _sink = _app()
    with TestClient(app) as client:
        for path in ("/actuator/health/liveness", "/actuator/health/readiness"):
            resp = client.get(path)
            assert resp.status_code == 200
            assert resp.json() == {"status": "UP"}
        assert client.get("/api/health").json() == {"ok": True}

def test_webhook_processes_valid_push():
    app, _tracker, sink = _app()
    client = TestClient(app)
    resp = _post(client, "/webhook/general", PUSH_PAYLOAD)
    assert resp.status_code == 200
    assert resp.text == "Webhook processed successfully"
    assert len(sink.messages) == 1
    assert sink.messages[0].channel == "general"

def test_webhook_without_channel():
    app, _tracker, sink = _app()
    resp = _post(TestClient(app), "/webhook", PUSH_PAYLOAD)
    assert resp.status_code == 200
    assert sink.messages[0].channel is None

def test_ignored_event_is_acknowledged():
    app, _tracker, sink = _app()
    resp = _post(TestClient(app), "/webhook/general", "{}", event="issue_comment")
    assert resp.status_code == 200
    assert sink.messages == []

def test_bad_signature_is_rejected_without_server_error():
    app, _tracker, sink = _app()
    client = TestClient(app)
    assert _post(client, "/webhook/general", PUSH_PAYLOAD, secret="wrong").status_code == 401
    assert _post(client, "/webhook/general", PUSH_PAYLOAD, secret=None).status_code == 401
    assert sink.messages == []

def test_parse_error_returns_500():
    app, _tracker, _sink = _app()
    resp = _post(TestClient(app), "/webhook/random-channel", '{"ref":"refs/heads/main"}')
    assert resp.status_code == 500
    assert "Error processing webhook" in resp.text
    assert "repository.full_name" in resp.text

def test_builds_endpoint_empty():
    app, _tracker, _sink = _app()
    body = TestClient(app).get("/builds").json()
    assert body["failedBuilds"] == []
    assert body["stats"] == {"totalFailedBuilds": 0, "failedByBranch": {}, "trackingDurationDays": 7}

def test_builds_endpoint_lists_failures():
    app, tracker, _sink = _app()
    tracker.record_failure(123456, "main", workflow_name="CI", html_url="https://x/runs/1", repo_full_name="o/r")
    tracker.record_failure(789012, "prod", workflow_name="Deploy", html_url="https://x/runs/2", repo_full_name="o/r")

    body = TestClient(app).get("/builds").json()
    assert body["stats"]["totalFailedBuilds"] == 2
    assert body["stats"]["failedByBranch"] == {"main": 1, "prod": 1}
    assert {b["workflowId"] for b in body["failedBuilds"]} == {123456, 789012}
    assert all(b["failedFor"] == "0m" for b in body["failedBuilds"])

def test_index_page_contains_build_status_section():
    app, _tracker, _sink = _app()
    resp = TestClient(app).get("/")
    assert resp.status_code == 200
    assert "Build Status" in resp.text
    assert 'id="build-content"' in resp.text
    assert "fetch('/builds')" in resp.text
    assert "loadBuildStatus" in resp.text
    assert "Failed Builds" in resp.text

def test_delivery_error_returns_500_and_keeps_failure():
    app, tracker, _sink = _app(sink=FailingSink())
    payload = json.dumps({
        "workflow_run": {
            "workflow_id": 42,
            "run_number": 1,
            "name": "CI",
            "status": "completed",
            "conclusion": "failure",
            "head_branch": "main",
            "head_sha": "0123456789",
            "html_url": "https://github.com/test/repo/actions/runs/1",
            "created_at": "2026-01-19T12:00:00Z",
            "actor": {"login": "octocat"},
        },
        "repository": {"full_name": "test/repo", "html_url": "https://github.com/test/repo"},
    })
    resp = _post(TestClient(app), "/webhook/builds", payload, event="workflow_run")
    assert resp.status_code == 500
    assert resp.text == "Error processing webhook: chat webhook responded 500: boom"
    assert len(tracker) == 1

def test_default_handler_is_built_at_startup():
    app = create_app()
    assert app.state.handler is None
    with TestClient(app) as client:
        assert app.state.handler is not None
        assert client.get("/builds").json()["stats"]["totalFailedBuilds"] == 0
