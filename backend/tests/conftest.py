import os
import sys
# ensure backend package is on path for tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.references import ReferenceGenerator

ORIGIN = 'https://frontend.example'


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides):
        values = dict(
            database_url=f"sqlite:///{tmp_path / 'test.db'}",
            allowed_origin=ORIGIN,
            frontend_url=ORIGIN,
        )
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def make_client(make_settings):
    clients = []

    def _make(transport=None, clock=None, **overrides):
        app = create_app(
            make_settings(**overrides),
            references=ReferenceGenerator(clock=clock),
            transport=transport,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for c in clients:
        c.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


def count_donations(client):
    from app import donation_models
    session = client.app.state.db.session()
    try:
        return session.query(donation_models.Donation).count()
    finally:
        session.close()
