import time
from datetime import datetime
from types import SimpleNamespace

import pytest

from affectly.app import create_app
from affectly.errors import ClassifierError, GatewayError, StoreError
from affectly.models import PREMIUM, VERIFIED
from affectly.sentiment_service import Analysis

NOW = datetime(2026, 10, 19, 12, 0, 0)


class FakeClassifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = 0

    def analyze(self, text):
        self.calls += 1
        if self.fail:
            raise ClassifierError("model offline")
        return Analysis(
            sentiment={"label": "POSITIVE", "score": 0.85},
            emotions=[{"label": "joy", "score": 0.7}, {"label": "optimism", "score": 0.6}],
        )


class FakeGateway:
    def __init__(self, status="success", email="ada@example.com", error=None, delay=0):
        self.status = status
        self.email = email
        self.error = error
        self.delay = delay
        self.init_calls = []
        self.verify_calls = []

    def initialize_transaction(self, **kwargs):
        self.init_calls.append(kwargs)
        if self.error:
            raise self.error
        return {
            "reference": "ref_123",
            "authorization_url": "https://checkout.paystack.com/abc",
            "access_code": "abc",
        }

    def verify_transaction(self, reference):
        self.verify_calls.append(reference)
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return {"status": self.status, "customer_email": self.email, "amount": 60000}


class FakeStore:
    """In-memory stand-in for the billing half of EntryStore."""

    def __init__(self, *profiles):
        self.profiles = {p.user_id: p for p in profiles}
        self.transactions = {}
        self.subscribers = {}
        self.grants = 0
        self.fail_subscriber = False
        self.fail_record = False

    def get_profile_by_email(self, email):
        for profile in self.profiles.values():
            if profile.email == email:
                return profile
        return None

    def get_transaction(self, reference):
        return self.transactions.get(reference)

    def record_transaction_status(self, reference, status, **fields):
        if self.fail_record:
            raise StoreError()
        txn = self.transactions.setdefault(
            reference,
            SimpleNamespace(reference=reference, status=None, user_id=None, subscription_end=None),
        )
        txn.status = status
        for key, value in fields.items():
            setattr(txn, key, value)
        return txn

    def grant_premium(self, user_id, reference, email, amount_minor_units, now, subscription_end):
        self.grants += 1
        profile = self.profiles[user_id]
        profile.subscription_tier = PREMIUM
        profile.updated_at = now
        self.record_transaction_status(
            reference, VERIFIED, user_id=user_id, email=email,
            amount_minor_units=amount_minor_units, subscription_end=subscription_end,
        )
        return profile

    def upsert_subscriber(self, record):
        if self.fail_subscriber:
            raise StoreError()
        self.subscribers[record["user_id"]] = dict(record)


def make_profile(user_id="u1", email="ada@example.com", tier="free"):
    return SimpleNamespace(user_id=user_id, email=email, subscription_tier=tier, updated_at=None)


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(classifier, gateway):
    app = create_app(
        {"TESTING": True, "SQLALCHEMY_DATABASE_URI": "sqlite://"},
        classifier=classifier,
        gateway=gateway,
    )
    yield app


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def store(ctx):
    return ctx.extensions["affectly"]["store"]


@pytest.fixture
def client(app):
    return app.test_client()
