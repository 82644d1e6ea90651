import pytest

import server
from storage import LocalMapStorage


@pytest.fixture
def issuer(monkeypatch):
    """
    Low-difficulty issuer installed behind the Flask routes.
    """
    iss = server.Issuer(LocalMapStorage(), difficulty=1, challenge_length=32)
    monkeypatch.setattr(server, "issuer", iss)
    return iss


@pytest.fixture
def http(issuer):
    server.flask_app.config["TESTING"] = True
    return server.flask_app.test_client()
