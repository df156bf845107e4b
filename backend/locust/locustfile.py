"""
Locust Load Test Suite

Tokens are minted locally with the API's SECRET_KEY, so run with the same
environment as the server.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test capacity + waitlist under contention
  locust -f locustfile.py --tags throughput   # Test the listing cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
import uuid
from datetime import datetime, timedelta, timezone

import httpx
from locust import HttpUser, between, events, tag, task

from campusrsvp.core.security import create_access_token

EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
CAPACITY = int(os.environ.get("LOAD_EVENT_CAPACITY", "10"))
BUFFER = int(os.environ.get("LOAD_EVENT_BUFFER", "2"))


def bearer(user_id, role=None):
    claims = {"sub": user_id}
    if role:
        claims["role"] = role
    return {"Authorization": f"Bearer {create_access_token(data=claims)}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Submit and approve one small event that every ConcurrencyUser fights over."""
    global CONCURRENCY_EVENT_ID

    if not environment.host:
        return

    start = datetime.now(timezone.utc) + timedelta(days=30)
    with httpx.Client(base_url=environment.host) as http:
        resp = http.post(
            "/api/v1/events/",
            json={
                "title": "Concurrency Test Event",
                "description": f"{CAPACITY} seats + {BUFFER} buffer",
                "location": "Test",
                "start_time": start.isoformat(),
                "end_time": (start + timedelta(hours=2)).isoformat(),
                "capacity": CAPACITY,
                "rsvp_buffer": BUFFER,
                "is_waitlist_enabled": True,
            },
            headers=bearer("load-organizer"),
        )
        if resp.status_code != 201:
            print(f"Could not create concurrency event: {resp.status_code} {resp.text}")
            return

        event_id = resp.json()["id"]
        http.post(f"/api/v1/admin/events/{event_id}/approve", headers=bearer("load-admin", role="admin"))
        CONCURRENCY_EVENT_ID = event_id
        print(f"Created event {event_id} with {CAPACITY}+{BUFFER} going slots")


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users -> capacity + buffer slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM rsvps WHERE event_id = X AND status = 'going';
    Should be <= capacity + buffer, and waitlist_position should run 1..N.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = f"load-{uuid.uuid4().hex[:12]}"
        self.headers = bearer(self.user_id)

    @tag("concurrency")
    @task(3)
    def rsvp_going(self):
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post(
            f"/api/v1/events/{CONCURRENCY_EVENT_ID}/rsvp",
            json={"status": "going"},
            headers=self.headers,
            name="/events/[id]/rsvp",
            catch_response=True,
        ) as resp:
            # 409: this user already holds an RSVP
            if resp.status_code in (200, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected {resp.status_code}: {resp.text}")

    @tag("concurrency")
    @task(1)
    def cancel_rsvp(self):
        """Cancellations free slots and drive waitlist promotion."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.delete(
            f"/api/v1/events/{CONCURRENCY_EVENT_ID}/rsvp",
            headers=self.headers,
            name="/events/[id]/rsvp [cancel]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 404):
                resp.success()
            else:
                resp.failure(f"Unexpected {resp.status_code}: {resp.text}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Read throughput against the cached listing

    Run: locust -f locustfile.py --tags throughput -u 500 -r 100 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput")
    @task(5)
    def list_events(self):
        page = random.randint(1, 3)
        resp = self.client.get(f"/api/v1/events/?page={page}&page_size=20", name="/events/?page=[n]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput")
    @task(1)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/events/[id]")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Bad input never reaches the state machine

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1)

    def on_start(self):
        self.headers = bearer(f"edge-{uuid.uuid4().hex[:12]}")

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def request_waitlisted_directly(self):
        with self.client.post(
            "/api/v1/events/1/rsvp",
            json={"status": "waitlisted"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_event(self):
        with self.client.post(
            "/api/v1/events/999999999/rsvp",
            json={"status": "going"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (404,))

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/events/1/rsvp",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, (400, 422))

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/events/1/rsvp",
            json={"status": "going"},
            catch_response=True,
        ) as resp:
            self._expect(resp, (401,))
