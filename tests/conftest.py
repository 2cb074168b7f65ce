import pytest
from datetime import datetime
from fastapi.testclient import TestClient
from data.database import Base, Event, SessionLocal, engine
from main import app
from services.cache import get_cache_client, get_mock_cache_client
from config import config

config.valid_tokens = ["fake-client-token"]

app.dependency_overrides[get_cache_client] = get_mock_cache_client

AUTH_HEADERS = {"Authorization": "Bearer fake-client-token"}


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield

@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c

@pytest.fixture
def headers():
    return dict(AUTH_HEADERS)

@pytest.fixture
def create_experiment(client, headers):
    """Creates an experiment through the API, optionally starting it."""
    def _create(variants=None, status="running", **overrides):
        payload = {
            "name": "Homepage Hero Button Test",
            "description": "Blue vs green hero button",
            "hypothesis": "A green button draws more clicks",
            "primary_goal": "hero_button_click",
            "traffic_allocation": 100,
            "variants": variants or [
                {"name": "Control", "is_control": True, "traffic_weight": 50, "config": {"color": "blue"}},
                {"name": "Variant A", "traffic_weight": 50, "config": {"color": "green"}},
            ],
        }
        payload.update(overrides)
        response = client.post("/experiments", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        experiment = response.json()
        if status != "draft":
            response = client.patch(f"/experiments/{experiment['id']}/status", json={"status": status}, headers=headers)
            assert response.status_code == 200, response.text
            experiment = response.json()
        return experiment
    return _create

@pytest.fixture
def seed_events(db_session):
    """Inserts events directly: seed(variant_id, sessions, converted, day)."""
    def _seed(experiment_id, variant_id, sessions, converted, goal="hero_button_click", day=datetime(2026, 3, 2, 12), prefix=None):
        prefix = prefix or variant_id
        for i in range(sessions):
            session_id = f"{prefix}-{i}"
            db_session.add(Event(experiment_id=experiment_id, variant_id=variant_id, session_id=session_id,
                                 event_type="exposure", timestamp=day))
            if i < converted:
                db_session.add(Event(experiment_id=experiment_id, variant_id=variant_id, session_id=session_id,
                                     event_type=goal, timestamp=day))
        db_session.commit()
    return _seed
