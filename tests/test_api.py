"""
Tests for the HTTP CRUD facade.

The MongoDB handle is swapped for a mongomock database per test.
"""

from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from schemas import SEED_PRODUCTS


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["antiques_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def client(mongo):
    return TestClient(main.app)


PRODUCT = {
    "title": "Victorian Era Mirror",
    "description": "Ornate golden frame.",
    "price": 45000,
    "category": "Lighting & Mirrors",
    "images": [],
    "subject": "Mirror",
}

SUBMISSION = {
    "title": "Brass Lamp",
    "description": "Hand-beaten brass lamp.",
    "price": 500,
    "category": "Lighting & Mirrors",
    "images": [],
    "phone": "98765 43210",
    "address": "4 Mall Road, Shimla",
    "subject": "Brass",
}


class TestHealth:

    def test_root(self, client):
        assert client.get("/").json() == {"message": "Antique Shop API is running"}

    def test_database_status(self, client):
        body = client.get("/test").json()

        assert body["connection_status"] == "Connected"
        assert body["database"] == "✅ Connected & Working"

    def test_without_database(self, monkeypatch):
        monkeypatch.setattr(database, "db", None)
        client = TestClient(main.app)

        assert client.get("/test").json()["connection_status"] == "Not Connected"
        assert client.get("/api/products").status_code == 500


class TestProductsApi:

    def test_crud(self, client):
        created = client.post("/api/products", json=PRODUCT)
        assert created.status_code == 201
        product_id = created.json()["id"]

        assert client.get(f"/api/products/{product_id}").json()["title"] == PRODUCT["title"]

        updated = client.put(f"/api/products/{product_id}", json={**PRODUCT, "price": 40000})
        assert updated.json()["price"] == 40000

        assert client.delete(f"/api/products/{product_id}").status_code == 200
        assert client.get(f"/api/products/{product_id}").status_code == 404
        assert client.delete(f"/api/products/{product_id}").status_code == 404

    def test_unknown_id_is_404(self, client):
        assert client.get("/api/products/not-an-object-id").status_code == 404
        assert client.put("/api/products/000000000000000000000000", json=PRODUCT).status_code == 404

    def test_invalid_payload(self, client):
        assert client.post("/api/products", json={**PRODUCT, "price": -5}).status_code == 422

    def test_filters(self, client):
        client.post("/api/products", json=PRODUCT)
        client.post("/api/products", json={**PRODUCT, "title": "Oak Chair", "category": "Vintage Furniture"})

        assert [p["title"] for p in client.get("/api/products", params={"category": "Vintage Furniture"}).json()] == ["Oak Chair"]
        assert [p["title"] for p in client.get("/api/products", params={"q": "mirror"}).json()] == ["Victorian Era Mirror"]
        assert len(client.get("/api/products", params={"category": "All"}).json()) == 2

    def test_seed_is_idempotent(self, client):
        assert client.post("/api/seed").json() == {"seeded": {"products": len(SEED_PRODUCTS)}}
        assert client.post("/api/seed").json() == {"seeded": {"products": 0}}
        assert len(client.get("/api/products").json()) == len(SEED_PRODUCTS)


class TestReviewApi:

    def test_submission_lifecycle(self, client):
        created = client.post("/api/submissions", json={**SUBMISSION, "status": "approved"}).json()
        assert created["status"] == "pending"
        assert created["submitted_at"]

        updated = client.put(f"/api/submissions/{created['id']}", json={**SUBMISSION, "status": "approved"})
        assert updated.json()["status"] == "approved"
        assert [s["id"] for s in client.get("/api/submissions", params={"status": "approved"}).json()] == [created["id"]]

        assert client.delete(f"/api/submissions/{created['id']}").status_code == 204
        assert client.get("/api/submissions").json() == []

    def test_offers(self, client):
        offer = {"product_id": "abc", "amount": 400, "name": "Asha", "contact_number": "98765"}
        created = client.post("/api/offers", json=offer).json()

        assert created["status"] == "pending"
        assert len(client.get("/api/offers", params={"product_id": "abc"}).json()) == 1
        assert client.get("/api/offers", params={"product_id": "other"}).json() == []
        assert client.put(f"/api/offers/{created['id']}", json={**offer, "status": "rejected"}).json()["status"] == "rejected"
        assert client.delete(f"/api/offers/{created['id']}").status_code == 204

    def test_edit_without_status_keeps_the_review(self, client):
        created = client.post("/api/submissions", json=SUBMISSION).json()
        client.put(f"/api/submissions/{created['id']}", json={**SUBMISSION, "status": "approved"})

        edited = client.put(f"/api/submissions/{created['id']}", json={**SUBMISSION, "price": 650})

        assert edited.status_code == 200
        assert edited.json()["status"] == "approved"
        assert edited.json()["price"] == 650

    @pytest.mark.parametrize("path, payload", [
        ("/api/submissions", SUBMISSION),
        ("/api/offers", {"product_id": "abc", "amount": 400, "name": "Asha", "contact_number": "98765"}),
    ])
    @pytest.mark.parametrize("target", ["pending", "rejected"])
    def test_approved_review_is_final(self, client, path, payload, target):
        created = client.post(path, json=payload).json()
        client.put(f"{path}/{created['id']}", json={**payload, "status": "approved"})

        response = client.put(f"{path}/{created['id']}", json={**payload, "status": target})

        assert response.status_code == 409
        assert client.get(path).json()[0]["status"] == "approved"

    def test_review_update_of_missing_document(self, client):
        assert client.put("/api/offers/000000000000000000000000",
                          json={"product_id": "abc", "amount": 1, "name": "A", "contact_number": "1"}).status_code == 404

    def test_offer_discounts(self, client):
        created = client.post("/api/offers-discounts", json={"title": "Diwali", "description": "10% off"}).json()
        assert created["status"] == "active"

        toggled = client.put(f"/api/offers-discounts/{created['id']}",
                             json={"title": "Diwali", "description": "10% off", "status": "inactive"})
        assert toggled.json()["status"] == "inactive"
        assert client.delete(f"/api/offers-discounts/{created['id']}").status_code == 204
        assert client.get("/api/offers-discounts").json() == []


class RecordingMailer:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send_verification(self, email, token):
        if self.fail:
            raise ConnectionError("smtp unreachable")
        self.sent.append((email, token))


@pytest.fixture
def mailer():
    mailer = RecordingMailer()
    main.app.dependency_overrides[main.get_mailer] = lambda: mailer
    yield mailer
    main.app.dependency_overrides.clear()


class TestNewsletterApi:

    def test_subscribe_and_verify(self, client, mailer, mongo):
        response = client.post("/api/subscribe", json={"email": "Asha@Antiques.in"})

        assert response.status_code == 200
        assert response.json() == {"message": "Please check your email to verify your subscription"}
        [(email, token)] = mailer.sent
        assert email == "asha@antiques.in"
        assert mongo["subscriber"].find_one({"email": email})["is_verified"] is False

        verified = client.get("/api/verify-email", params={"token": token})

        assert verified.json() == {"message": "Email verified successfully"}
        stored = mongo["subscriber"].find_one({"email": email})
        assert stored["is_verified"] is True
        assert stored["verification_token"] is None

    def test_resubscribing_unverified_sends_a_new_token(self, client, mailer, mongo):
        client.post("/api/subscribe", json={"email": "asha@antiques.in"})
        again = client.post("/api/subscribe", json={"email": "asha@antiques.in"})

        assert again.json() == {"message": "Verification email resent"}
        assert mongo["subscriber"].count_documents({}) == 1
        first, second = (token for _, token in mailer.sent)
        assert first != second
        assert client.get("/api/verify-email", params={"token": first}).status_code == 400
        assert client.get("/api/verify-email", params={"token": second}).status_code == 200

    def test_verified_address_cannot_subscribe_twice(self, client, mailer):
        client.post("/api/subscribe", json={"email": "asha@antiques.in"})
        client.get("/api/verify-email", params={"token": mailer.sent[0][1]})

        response = client.post("/api/subscribe", json={"email": "asha@antiques.in"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Email already subscribed"
        assert len(mailer.sent) == 1

    def test_token_is_single_use(self, client, mailer):
        client.post("/api/subscribe", json={"email": "asha@antiques.in"})
        token = mailer.sent[0][1]

        assert client.get("/api/verify-email", params={"token": token}).status_code == 200
        assert client.get("/api/verify-email", params={"token": token}).status_code == 400

    def test_expired_token_is_rejected(self, client, mailer, mongo):
        client.post("/api/subscribe", json={"email": "asha@antiques.in"})
        mongo["subscriber"].update_one(
            {}, {"$set": {"verification_expires": datetime.now(timezone.utc) - timedelta(hours=1)}}
        )

        response = client.get("/api/verify-email", params={"token": mailer.sent[0][1]})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid or expired verification token"

    def test_missing_token(self, client):
        assert client.get("/api/verify-email").status_code == 400

    def test_invalid_email(self, client, mailer):
        assert client.post("/api/subscribe", json={"email": "not-an-address"}).status_code == 422
        assert mailer.sent == []

    def test_mailer_failure(self, client, mailer):
        mailer.fail = True

        response = client.post("/api/subscribe", json={"email": "asha@antiques.in"})

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to subscribe"

    def test_subscriber_list_hides_tokens(self, client, mailer):
        client.post("/api/subscribe", json={"email": "asha@antiques.in"})
        client.post("/api/subscribe", json={"email": "ravi@antiques.in"})
        client.get("/api/verify-email", params={"token": mailer.sent[0][1]})

        everyone = client.get("/api/subscribers").json()
        verified = client.get("/api/subscribers", params={"verified": True}).json()

        assert {s["email"] for s in everyone} == {"asha@antiques.in", "ravi@antiques.in"}
        assert all(set(s) == {"id", "email", "subscribed_at", "is_verified"} for s in everyone)
        assert [s["email"] for s in verified] == ["asha@antiques.in"]
