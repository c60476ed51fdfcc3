"""
Locust Load Test Suite

Run from backend/ so the app package is importable:
  locust -f locust/locustfile.py --tags contention  # Last registration slots
  locust -f locust/locustfile.py --tags throughput  # Listing cache, verification
  locust -f locust/locustfile.py --tags edge        # Bad input
  locust -f locust/locustfile.py                    # All tests

Participants are provisioned by the auth service in production. Here the
setup hook inserts them directly (DATABASE_URL_SYNC) and mints their
tokens with the shared SECRET_KEY.
"""

import itertools
import random
from datetime import datetime, timezone, timedelta

import httpx
from locust import HttpUser, task, between, tag, events
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.security import create_access_token
from app.models import User

settings = get_settings()

PARTICIPANT_POOL = 500
CONTENTION_SLOTS = 10

# Shared state
PARTICIPANT_IDS = []
ORGANIZER_HEADERS = {}
EVENT_IDS = []
CONTENTION_EVENT_ID = None
_participant_cycle = None


def bearer(user_id: int, role: str) -> dict:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Setup: participants, an organizer and the contention event."""
    global CONTENTION_EVENT_ID, _participant_cycle

    print("\n" + "=" * 60)
    print("SETUP: Provisioning participants and contention event...")
    print("=" * 60)

    run_id = random.randint(10000, 99999)
    engine = create_engine(settings.DATABASE_URL_SYNC)
    with Session(engine) as session:
        organizer = User(email=f"org_{run_id}@load.test", full_name="Load Organizer", role="organizer")
        participants = [
            User(email=f"p{i}_{run_id}@load.test", full_name=f"Participant {i}", role="student")
            for i in range(PARTICIPANT_POOL)
        ]
        session.add(organizer)
        session.add_all(participants)
        session.commit()
        ORGANIZER_HEADERS.update(bearer(organizer.id, "organizer"))
        PARTICIPANT_IDS.extend(p.id for p in participants)
    engine.dispose()
    _participant_cycle = itertools.cycle(PARTICIPANT_IDS)

    now = datetime.now(timezone.utc)
    if not environment.host:
        return

    with httpx.Client(base_url=environment.host) as http:
        resp = http.post(
            "/api/v1/events/",
            json={
                "title": "Contention Test Event",
                "description": f"{CONTENTION_SLOTS} slots only",
                "start_date": (now + timedelta(days=1)).isoformat(),
                "end_date": (now + timedelta(days=2)).isoformat(),
                "max_participants": CONTENTION_SLOTS,
            },
            headers=ORGANIZER_HEADERS,
        )
        if resp.status_code == 201:
            CONTENTION_EVENT_ID = resp.json()["id"]
            http.post(f"/api/v1/events/{CONTENTION_EVENT_ID}/publish", headers=ORGANIZER_HEADERS)
            EVENT_IDS.append(CONTENTION_EVENT_ID)
            print(f"\n✓ Created event {CONTENTION_EVENT_ID} with {CONTENTION_SLOTS} slots\n")


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 users -> 10 slots in round 0

    Run: locust -f locust/locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM registrations WHERE event_id = X;
      SELECT admitted_count FROM rounds WHERE event_id = X AND sequence_number = 0;
    Both should be <= 10
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = bearer(next(_participant_cycle), "student") if _participant_cycle else {}

    @tag("contention")
    @task
    def register_for_last_slots(self):
        """All users fight for the same 10 slots."""
        if not CONTENTION_EVENT_ID or not self.headers:
            return

        with self.client.post(
            "/api/v1/registrations/",
            json={"event_id": CONTENTION_EVENT_ID},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                # capacity_exceeded, already_registered or a retryable conflict
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness and verification lookups

    Run twice:
      1. With Redis: locust -f locust/locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        """Hammer the cached endpoint."""
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/events/?page={page}&page_size=20", name="/api/v1/events/ [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("throughput", "read")
    @task(3)
    def verify_unknown_certificate(self):
        """Public lookups; unknown identifiers must stay cheap."""
        code = "".join(random.choices("0123456789ABCDEF", k=32))
        self.client.get(f"/api/v1/certificates/verify/{code}", name="/api/v1/certificates/verify/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locust/locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = bearer(next(_participant_cycle), "student") if _participant_cycle else {}

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.client.post(
            "/api/v1/registrations/",
            json={"event_id": 999999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_outcome(self):
        with self.client.post(
            "/api/v1/registrations/1/outcomes",
            json={"round_sequence_number": 0, "outcome": "maybe"},
            headers=ORGANIZER_HEADERS,
            catch_response=True,
        ) as resp:
            if resp.status_code in [404, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 404/422, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/registrations/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/registrations/",
            json={"event_id": 1},
            catch_response=True,
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
