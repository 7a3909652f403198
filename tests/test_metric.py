from unittest.mock import patch

from skipguard.metric import (
    _normalize_api_endpoint,
    api_call_count,
    push_metrics,
    record_api_call,
)


def test_record_api_call_tracks_endpoint_label():
    before = api_call_count.labels(endpoint="commits/xxx")._value.get()
    record_api_call(endpoint="/repos/org/repo/commits/abc123")
    after = api_call_count.labels(endpoint="commits/xxx")._value.get()
    assert after == before + 1


def test_normalize_api_endpoint_examples():
    assert _normalize_api_endpoint("/repos/org/repo/actions/runs/42") == "runs/xxx"
    assert (
        _normalize_api_endpoint("/repos/org/repo/actions/runs/42/cancel")
        == "runs/cancel"
    )
    assert (
        _normalize_api_endpoint("/repos/org/repo/actions/workflows/7/runs?per_page=100")
        == "workflows/runs"
    )
    assert (
        _normalize_api_endpoint("/repos/org/repo/actions/artifacts?name=x&per_page=100")
        == "artifacts"
    )
    assert (
        _normalize_api_endpoint("/repos/org/repo/actions/artifacts/5/zip")
        == "artifacts/zip"
    )
    assert _normalize_api_endpoint("/repos/org/repo/actions/artifacts/5") == (
        "artifacts/xxx"
    )
    assert _normalize_api_endpoint("CreateArtifact") == "other"


def test_push_metrics_failure_is_logged(caplog):
    with patch("skipguard.metric.push_to_gateway", side_effect=OSError("down")):
        push_metrics("localhost:9091", {"repository": "org/repo"})
    assert "Failed to push metrics" in caplog.text
