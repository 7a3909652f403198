import jwt
import pytest

from skipguard.github.artifacts import ArtifactUploadError, backend_ids_from_token


def _token(scp):
    return jwt.encode({"scp": scp}, "secret", algorithm="HS256")


def test_backend_ids_from_token():
    token = _token("Actions.ExampleScope Actions.Results:run-backend:job-backend")
    assert backend_ids_from_token(token) == ("run-backend", "job-backend")


def test_token_without_results_scope():
    with pytest.raises(ArtifactUploadError):
        backend_ids_from_token(_token("Actions.ExampleScope"))
