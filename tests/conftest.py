import base64
import os

# Must be set before the application modules are imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"

import pytest
from fastapi.testclient import TestClient

from medspace.main import app
from medspace.core.database import Base, SessionLocal, engine, get_redis
from medspace.core.mail import MailDeliveryError, get_mailer
from medspace.core.security import UserRole, get_password_hash
from medspace.models.user import User

class FakeRedis:
    """In-memory stand-in for the few Redis commands the app uses."""

    def __init__(self):
        self.data = {}

    def setex(self, key, time, value):
        self.data[key] = str(value)
        return True

    def get(self, key):
        return self.data.get(key)

    def delete(self, key):
        return 1 if self.data.pop(key, None) is not None else 0

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])

class RecordingMailer:
    """Collects outgoing mail instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.failing = set()

    def send(self, recipient, subject, body, html=False):
        if recipient in self.failing:
            raise MailDeliveryError(f"Mailbox unavailable: {recipient}")
        self.sent.append({"to": recipient, "subject": subject, "body": body, "html": html})

    def messages_to(self, recipient):
        return [message for message in self.sent if message["to"] == recipient]

# Test data
USER_DATA = {
    "name": "Test User",
    "email": "test@medspace.io",
    "password": "TestPassword123",
    "phone": "0712345678",
    "dob": "1990-05-17",
    "gender": "Female",
    "address": {
        "street": "1 Main Street",
        "city": "Nairobi",
        "state": "Nairobi",
        "postalCode": "00100"
    },
    "medicalHistory": ["asthma"]
}

ADMIN_EMAIL = "admin@medspace.io"
ADMIN_PASSWORD = "AdminPassword123"

def user_payload(**overrides):
    data = {**USER_DATA, "address": dict(USER_DATA["address"])}
    data.update(overrides)
    return data

def register(client, **overrides):
    return client.post("/auth/register", json=user_payload(**overrides))

def login_headers(client, email=USER_DATA["email"], password=USER_DATA["password"]):
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.json()
    return {"Authorization": f"Bearer {response.json()['token']}"}

def basic_headers(email, password):
    credentials = base64.b64encode(f"{email}:{password}".encode()).decode()
    return {"Authorization": f"Basic {credentials}"}

@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def fake_redis():
    return FakeRedis()

@pytest.fixture
def mailer():
    return RecordingMailer()

@pytest.fixture
def client(test_db, fake_redis, mailer):
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.clear()

@pytest.fixture
def auth_headers(client):
    """Registered default user, logged in."""
    assert register(client).status_code == 201
    return login_headers(client)

@pytest.fixture
def admin_user(test_db):
    session = SessionLocal()
    try:
        admin = User(
            email=ADMIN_EMAIL,
            password_hash=get_password_hash(ADMIN_PASSWORD),
            role=UserRole.ADMIN,
            name="Admin",
            medical_history=[],
        )
        session.add(admin)
        session.commit()
        session.refresh(admin)
        return admin.id
    finally:
        session.close()

@pytest.fixture
def admin_basic(admin_user):
    return basic_headers(ADMIN_EMAIL, ADMIN_PASSWORD)
