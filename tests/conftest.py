import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RABBITMQ_URL"] = ""
os.environ["SCORING_SERVICE_URL"] = ""
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ADMIN_EMAIL"] = "admin@prolance.io"

from itertools import count
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prolance.auth.crud import create_user
from prolance.auth.models import UserRole
from prolance.database import Base, get_db
from prolance.main import app
from prolance.payments.gateway import BasePaymentProvider, compute_signature
from prolance.payments.routes import payment_provider
from prolance.redis_client import get_redis
from prolance.security import create_access_token

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

COVER_LETTER = (
    "I have built several marketplaces with this exact stack and can start right away "
    "with a clear weekly delivery plan."
)


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.ttl = {}

    def set(self, key, value, ex=None):
        self.store[key] = value
        self.ttl[key] = ex
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.ttl.pop(key, None)
        return 1 if self.store.pop(key, None) is not None else 0

    def ping(self):
        return True


class FakeGateway(BasePaymentProvider):
    key_id = "rzp_test_fake"
    key_secret = "fake_key_secret"
    webhook_secret = "fake_webhook_secret"

    def __init__(self):
        self.orders = {}
        self.payments = {}
        self._ids = count(1)

    def create_order(self, amount, currency, receipt, notes=None):
        order_id = f"order_{next(self._ids)}"
        order = {
            "id": order_id,
            "amount": int(round(amount * 100)),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
            "status": "created",
        }
        self.orders[order_id] = order
        return order

    def fetch_payment(self, payment_id):
        return self.payments.get(payment_id, {"id": payment_id, "status": "captured", "method": "upi"})

    def verify_payment_signature(self, order_id, payment_id, signature):
        return signature == self.sign(order_id, payment_id)

    def verify_webhook_signature(self, body, signature):
        return signature == compute_signature(self.webhook_secret, body)

    def sign(self, order_id, payment_id):
        return compute_signature(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"))


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(fake_redis, gateway):
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: fake_redis
    app.dependency_overrides[payment_provider] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user_id, role="client"):
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


class Marketplace:
    """Drives the API through the usual client/freelancer journey."""

    def __init__(self, client, gateway):
        self.client = client
        self.gateway = gateway
        self._emails = count(1)

    def user(self, role=UserRole.CLIENT, name=None):
        n = next(self._emails)
        session = TestingSessionLocal()
        try:
            user = create_user(session, name or f"User {n}", f"user{n}@example.com", "secret123", role)
            return SimpleNamespace(
                id=user.id, name=user.name, email=user.email, username=user.username,
                headers=auth_headers(user.id, user.role.value),
            )
        finally:
            session.close()

    def create_project(self, owner, **overrides):
        payload = {
            "title": "Marketplace backend",
            "description": "Build the REST API for a freelance marketplace",
            "category": "Programming & Tech",
            "budget": {"min": 1000, "max": 5000, "type": "fixed"},
            "duration": "1 month",
            "skills_required": ["Python", "FastAPI"],
            "tags": ["api"],
        }
        payload.update(overrides)
        response = self.client.post("/api/projects", json=payload, headers=owner.headers)
        assert response.status_code == 201, response.text
        return response.json()

    def apply(self, freelancer, project_id):
        response = self.client.post("/api/applications", json={
            "project_id": project_id,
            "cover_letter": COVER_LETTER,
            "proposed_budget": {"min": 2000, "max": 3000},
            "proposed_duration": "3 weeks",
        }, headers=freelancer.headers)
        assert response.status_code == 201, response.text
        return response.json()

    def accept_application(self, owner, application_id):
        response = self.client.patch(
            f"/api/applications/{application_id}/status",
            json={"status": "accepted"},
            headers=owner.headers,
        )
        assert response.status_code == 200, response.text
        return response.json()

    def propose(self, freelancer, project_id, application_id, conversation_id, amount=3000):
        response = self.client.post("/api/contracts/propose", json={
            "conversation_id": conversation_id,
            "project_id": project_id,
            "application_id": application_id,
            "contract_details": {
                "title": "API build",
                "scope": "REST API with auth, projects and payments",
                "deliverables": ["Source code", "Deployment notes"],
                "final_amount": amount,
                "duration": "3 weeks",
            },
        }, headers=freelancer.headers)
        assert response.status_code == 201, response.text
        return response.json()

    def pending_contract(self, amount=3000):
        """A client, a freelancer, an open project and a pending contract between them."""
        owner = self.user(UserRole.CLIENT, name="Clara Client")
        freelancer = self.user(UserRole.FREELANCER, name="Fred Freelancer")
        project = self.create_project(owner)
        application = self.apply(freelancer, project["id"])
        accepted = self.accept_application(owner, application["id"])
        contract = self.propose(
            freelancer, project["id"], application["id"], accepted["conversation_id"], amount
        )
        return SimpleNamespace(
            owner=owner, freelancer=freelancer, project=project, application=application,
            conversation_id=accepted["conversation_id"], contract=contract,
        )

    def create_order(self, owner, project_id, amount, contract_id=None):
        payload = {"project_id": project_id, "amount": amount}
        if contract_id is not None:
            payload["contract_id"] = contract_id
        response = self.client.post("/api/payments/create-order", json=payload, headers=owner.headers)
        assert response.status_code == 201, response.text
        return response.json()

    def verify(self, owner, order_id, payment_id="pay_1", signature=None):
        return self.client.post("/api/payments/verify", json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature or self.gateway.sign(order_id, payment_id),
        }, headers=owner.headers)

    def fund_escrow(self, deal, payment_id="pay_1"):
        order = self.create_order(deal.owner, deal.project["id"], deal.contract["contract_details"]["final_amount"],
                                  deal.contract["id"])
        response = self.verify(deal.owner, order["order"]["id"], payment_id)
        assert response.status_code == 200, response.text
        return order

    def finish_work(self, freelancer, project_id):
        headers = freelancer.headers
        response = self.client.put(f"/api/projects/{project_id}/work-status",
                                   json={"work_status": "completed"}, headers=headers)
        assert response.status_code == 200, response.text
        response = self.client.post(f"/api/projects/{project_id}/deliverables",
                                    json={"title": "Final build", "file_url": "https://files.example.com/build.zip"},
                                    headers=headers)
        assert response.status_code == 201, response.text
        response = self.client.post(f"/api/projects/{project_id}/submit", headers=headers)
        assert response.status_code == 200, response.text
        return response.json()


@pytest.fixture
def market(client, gateway):
    return Marketplace(client, gateway)
