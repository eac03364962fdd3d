"""
Locust Load Test Suite

Every virtual user is provisioned through the admin endpoint on start, so
the bootstrap admin from the seed script must exist (see ADMIN_EMAIL and
ADMIN_SECRET below, overridable through the environment).

Run scenarios:
  locust -f locustfile.py --tags race        # Many people, few seats
  locust -f locustfile.py --tags throughput  # Seat map cache
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # All tests

After a race run, verify in the database:
  SELECT COUNT(*) FROM bookings;                        -- <= contested seats
  SELECT COUNT(*) FROM seats WHERE is_booked
    AND id NOT IN (SELECT seat_id FROM bookings);       -- frozen seats only
"""

import os
import random
import uuid

from locust import HttpUser, between, events, tag, task

ADMIN_EMAIL = os.getenv("THEATRE_ADMIN_EMAIL", "admin@example.com")
ADMIN_SECRET = os.getenv("THEATRE_ADMIN_SECRET", "change-me-admin")
CONTESTED_SEATS = int(os.getenv("THEATRE_CONTESTED_SEATS", "10"))

# Shared state
SEAT_IDS = []


def _login(client, email, secret):
    resp = client.post("/api/v1/auth/login", json={"email": email, "secret": secret})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: {CONTESTED_SEATS} contested seats, admin {ADMIN_EMAIL}")
    print("=" * 60)


class TheatreUser(HttpUser):
    """Base user: provisioned by the admin, then logged in."""

    abstract = True

    def on_start(self):
        admin_headers = _login(self.client, ADMIN_EMAIL, ADMIN_SECRET)
        self.email = f"load_{uuid.uuid4().hex[:10]}@test.com"
        self.secret = "load-test-secret"

        self.client.post(
            "/api/v1/admin/users",
            json={"email": self.email, "secret": self.secret},
            headers=admin_headers,
            name="/api/v1/admin/users [provision]",
        )
        self.headers = _login(self.client, self.email, self.secret)

        if not SEAT_IDS and self.headers:
            resp = self.client.get("/api/v1/seats", headers=self.headers, name="/api/v1/seats [setup]")
            if resp.status_code == 200:
                free = [s["id"] for s in resp.json()["seats"] if not s["is_booked"]]
                SEAT_IDS.extend(free[:CONTESTED_SEATS])


class SeatRaceUser(TheatreUser):
    """
    TEST 1: Race - many people, CONTESTED_SEATS seats

    Run: locust -f locustfile.py --tags race -u 100 -r 50 --run-time 30s

    Every request must end in 201 or 409; anything else is a failure.
    """

    wait_time = between(0, 0.1)

    @tag("race")
    @task
    def grab_contested_seat(self):
        if not SEAT_IDS or not self.headers:
            return

        with self.client.post(
            "/api/v1/bookings",
            json={"seat_id": random.choice(SEAT_IDS)},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409 and resp.json().get("code") in ("seat_taken", "already_booked"):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class SeatMapUser(TheatreUser):
    """
    TEST 2: Throughput - seat map cache

    Run twice, with REDIS_ENABLED=true and false, and compare latency.
    """

    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def seat_map(self):
        if self.headers:
            self.client.get("/api/v1/seats", headers=self.headers, name="/api/v1/seats [cached]")

    @tag("throughput", "read")
    @task(3)
    def my_booking(self):
        if self.headers:
            self.client.get("/api/v1/bookings/me", headers=self.headers)

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(TheatreUser):
    """
    TEST 3: Edge cases - bad input must produce error codes, never a 500.
    """

    wait_time = between(0.5, 1.5)

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.post(
            "/api/v1/bookings", json={"seat_id": 999999}, headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, [404, 409])

    @tag("edge")
    @task
    def negative_seat_id(self):
        with self.client.post(
            "/api/v1/bookings", json={"seat_id": -5}, headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings", data="not json at all", headers=self.headers, catch_response=True
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings", json={"seat_id": 1}, catch_response=True) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def provision_as_non_admin(self):
        with self.client.post(
            "/api/v1/admin/users",
            json={"email": "nobody@test.com", "secret": "x"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [403])
