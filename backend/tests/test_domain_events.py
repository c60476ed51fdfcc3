"""
Domain events reach the publisher only for committed changes.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import AdministrativeStatus
from app.services.interfaces.publisher import DomainEvent, DomainEventType
from app.services.interfaces.logging_publisher import LoggingPublisher
from app.services.publisher import discard_events, pending_events
from app.services.publisher_factory import build_publisher
from app.services.registration_service import register
from app.services.redis_publisher import RedisPublisher


@pytest.mark.asyncio
async def test_events_published_after_commit(
    client: AsyncClient, participant_headers, organizer_headers, two_round_event, published
):
    response = await client.post(
        "/api/v1/registrations/", json={"event_id": two_round_event.id}, headers=participant_headers
    )
    registration_id = response.json()["id"]
    assert published.types() == ["registration.created"]

    await client.post(
        f"/api/v1/registrations/{registration_id}/outcomes",
        json={"round_sequence_number": 0, "outcome": "passed"},
        headers=organizer_headers,
    )
    assert published.types()[1:] == ["round.advanced"]

    await client.post(
        f"/api/v1/registrations/{registration_id}/outcomes",
        json={"round_sequence_number": 1, "outcome": "passed"},
        headers=organizer_headers,
    )
    assert published.types()[2:] == ["certificate.issued", "registration.completed"]

    completed = published.events[-1]
    assert completed.payload["registration_id"] == registration_id
    assert completed.payload["certificate_number"] == f"EVT-{two_round_event.id}-000001"


@pytest.mark.asyncio
async def test_no_events_for_failed_request(
    client: AsyncClient, make_headers, make_event, participants, published
):
    """A rejected registration publishes nothing."""
    event = await make_event(capacity=1)
    await client.post("/api/v1/registrations/", json={"event_id": event.id}, headers=make_headers(participants[0]))

    response = await client.post(
        "/api/v1/registrations/", json={"event_id": event.id}, headers=make_headers(participants[1])
    )
    assert response.status_code == 409
    assert published.types() == ["registration.created"]


@pytest.mark.asyncio
async def test_lifecycle_events(client: AsyncClient, organizer_headers, make_event, published):
    event = await make_event(status=AdministrativeStatus.DRAFT, rounds=2)
    await client.post(f"/api/v1/events/{event.id}/publish", headers=organizer_headers)
    await client.post(
        f"/api/v1/events/{event.id}/rounds/advance", json={"expected_index": 0}, headers=organizer_headers
    )
    await client.post(f"/api/v1/events/{event.id}/rounds/rollback", headers=organizer_headers)
    await client.post(f"/api/v1/events/{event.id}/cancel", headers=organizer_headers)

    assert published.types() == [
        "event.published",
        "round.advanced",
        "round.rolled_back",
        "event.cancelled",
    ]
    assert published.events[1].payload == {"event_id": event.id, "from_index": 0, "to_index": 1, "trigger": "manual"}


def test_domain_event_to_dict():
    event = DomainEvent(type=DomainEventType.CERTIFICATE_REVOKED, payload={"certificate_number": "EVT-1-000001"})
    data = event.to_dict()
    assert data["type"] == "certificate.revoked"
    assert data["payload"] == {"certificate_number": "EVT-1-000001"}
    assert data["occurred_at"].endswith("+00:00")


def test_build_publisher():
    assert isinstance(build_publisher("logging"), LoggingPublisher)
    assert isinstance(build_publisher("redis"), RedisPublisher)
    assert isinstance(build_publisher("anything-else"), LoggingPublisher)


@pytest.mark.asyncio
async def test_events_stay_queued_on_the_session(db_session: AsyncSession, published_event, participant, published):
    """Nothing is published before commit; a rollback drops the queue."""
    await register(db_session, published_event.id, participant.id)
    assert [e.type for e in pending_events(db_session)] == [DomainEventType.REGISTRATION_CREATED]
    assert published.events == []

    await db_session.rollback()
    discard_events(db_session)
    assert pending_events(db_session) == []
