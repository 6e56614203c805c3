from prometheus_client import REGISTRY

_APPLIED = ("sync_operations_applied_total", {"op_type": "create", "entity_type": "task"})


def test_metrics_endpoint_exposes_counters(client, owner_user, act_as, sample_project):
    act_as(owner_user)
    before = REGISTRY.get_sample_value(*_APPLIED) or 0.0

    client.post(
        "/api/sync/operations",
        json={
            "op_id": "metrics-op",
            "op_type": "create",
            "entity_type": "task",
            "entity_id": "metrics-task",
            "payload": {"title": "Counted", "project_id": sample_project.id},
        },
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert REGISTRY.get_sample_value(*_APPLIED) == before + 1
    body = response.text
    assert "sync_operations_applied_total{" in body
    assert "sessions_auto_paused_total" in body
    assert "client_sync_delivery_seconds_bucket" in body
