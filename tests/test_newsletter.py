import threading
import time

from medspace.models.newsletter import NewsletterSubscriber
from medspace.services import mail_service
from medspace.services.newsletter_service import NewsletterService

from .conftest import ADMIN_EMAIL, USER_DATA, basic_headers, register

BROADCAST = {"subject": "Clinic hours", "message": "We now open on Saturdays."}

def subscribe(client, email):
    return client.post("/subscribe", json={"email": email})

class TestSubscribe:

    def test_subscribe(self, client, db, mailer):
        response = subscribe(client, "reader@medspace.io")
        assert response.status_code == 200

        assert db.query(NewsletterSubscriber).count() == 1
        welcome = mailer.messages_to("reader@medspace.io")
        assert len(welcome) == 1
        assert welcome[0]["html"] is True

    def test_duplicate_subscription(self, client, db):
        """The second subscribe fails and nothing is duplicated."""
        assert subscribe(client, "reader@medspace.io").status_code == 200

        response = subscribe(client, "reader@medspace.io")
        assert response.status_code == 400
        assert response.json()["message"] == "Email is already subscribed"
        assert db.query(NewsletterSubscriber).count() == 1

    def test_subscription_race_on_same_email(self, client, db, mailer, monkeypatch):
        assert subscribe(client, "reader@medspace.io").status_code == 200
        monkeypatch.setattr(NewsletterService, "_is_subscribed", lambda self, email: False)

        response = subscribe(client, "reader@medspace.io")
        assert response.status_code == 400
        assert response.json()["message"] == "Email is already subscribed"
        assert db.query(NewsletterSubscriber).count() == 1
        assert len(mailer.messages_to("reader@medspace.io")) == 1

    def test_invalid_email(self, client):
        response = client.post("/subscribe", json={"email": "nope"})
        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "email"

    def test_missing_email(self, client):
        response = client.post("/subscribe", json={})
        assert response.status_code == 400

class TestAdminAuth:

    def test_no_credentials(self, client):
        response = client.post("/admin/send-mail", json=BROADCAST)
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Basic"

    def test_wrong_password_is_rejected(self, client, admin_user):
        """Knowing an admin's email is not enough."""
        response = client.post(
            "/admin/send-mail",
            json=BROADCAST,
            headers=basic_headers(ADMIN_EMAIL, "not-the-password")
        )
        assert response.status_code == 401

    def test_unknown_email(self, client):
        response = client.post(
            "/admin/send-mail",
            json=BROADCAST,
            headers=basic_headers("ghost@medspace.io", "whatever123")
        )
        assert response.status_code == 401

    def test_non_admin_is_forbidden(self, client):
        register(client)

        response = client.post(
            "/admin/send-mail",
            json=BROADCAST,
            headers=basic_headers(USER_DATA["email"], USER_DATA["password"])
        )
        assert response.status_code == 403

class TestBroadcast:

    def test_no_subscribers(self, client, admin_basic):
        response = client.post("/admin/send-mail", json=BROADCAST, headers=admin_basic)
        assert response.status_code == 400
        assert response.json()["message"] == "No subscribers found."

    def test_missing_fields(self, client, admin_basic):
        response = client.post("/admin/send-mail", json={"subject": ""}, headers=admin_basic)
        assert response.status_code == 400
        assert {e["field"] for e in response.json()["errors"]} == {"subject", "message"}

    def test_sends_to_every_subscriber(self, client, admin_basic, mailer):
        for email in ("a@medspace.io", "b@medspace.io"):
            subscribe(client, email)

        response = client.post("/admin/send-mail", json=BROADCAST, headers=admin_basic)
        assert response.status_code == 200

        data = response.json()
        assert data["sent"] == 2
        assert data["failed"] == 0
        assert {r["email"] for r in data["results"]} == {"a@medspace.io", "b@medspace.io"}
        for email in ("a@medspace.io", "b@medspace.io"):
            updates = [m for m in mailer.messages_to(email) if m["subject"] == BROADCAST["subject"]]
            assert len(updates) == 1
            assert BROADCAST["message"] in updates[0]["body"]

    def test_one_failure_does_not_abort_the_rest(self, client, admin_basic, mailer):
        for email in ("a@medspace.io", "b@medspace.io", "c@medspace.io"):
            subscribe(client, email)
        mailer.failing.add("b@medspace.io")

        response = client.post("/admin/send-mail", json=BROADCAST, headers=admin_basic)
        assert response.status_code == 200

        data = response.json()
        assert data["sent"] == 2
        assert data["failed"] == 1
        failed = [r for r in data["results"] if r["status"] == "failed"]
        assert failed[0]["email"] == "b@medspace.io"
        assert "Mailbox unavailable" in failed[0]["error"]

    def test_message_is_escaped(self, client, admin_basic, mailer):
        subscribe(client, "a@medspace.io")

        client.post(
            "/admin/send-mail",
            json={"subject": "Hi", "message": "<script>alert(1)</script>"},
            headers=admin_basic
        )
        body = [m for m in mailer.messages_to("a@medspace.io") if m["subject"] == "Hi"][0]["body"]
        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_delivery_report(self, client, admin_basic, mailer):
        subscribe(client, "a@medspace.io")
        mailer.failing.add("b@medspace.io")
        subscribe(client, "b@medspace.io")

        response = client.get("/admin/mail-deliveries?status=failed", headers=admin_basic)
        assert response.status_code == 200

        deliveries = response.json()
        assert [d["recipient"] for d in deliveries] == ["b@medspace.io"]
        assert deliveries[0]["status"] == "failed"

        everything = client.get("/admin/mail-deliveries", headers=admin_basic).json()
        assert [d["recipient"] for d in everything] == ["b@medspace.io", "a@medspace.io"]

    def test_concurrent_sends_are_bounded(self, client, admin_basic, mailer, monkeypatch):
        emails = [f"reader{i}@medspace.io" for i in range(6)]
        for email in emails:
            subscribe(client, email)

        monkeypatch.setattr(mail_service, "MAIL_CONCURRENCY", 2)
        lock = threading.Lock()
        in_flight = {"now": 0, "peak": 0}
        record = mailer.send

        def slow_send(recipient, subject, body, html=False):
            with lock:
                in_flight["now"] += 1
                in_flight["peak"] = max(in_flight["peak"], in_flight["now"])
            time.sleep(0.05)
            with lock:
                in_flight["now"] -= 1
            record(recipient, subject, body, html=html)

        monkeypatch.setattr(mailer, "send", slow_send)

        response = client.post("/admin/send-mail", json=BROADCAST, headers=admin_basic)
        assert response.status_code == 200
        assert response.json()["sent"] == 6
        assert 1 <= in_flight["peak"] <= 2
