"""
Tests for the registration ledger: enrollment, outcome recording and
who may see which registration.
"""

import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ParticipantNotFound
from app.models.enums import AdministrativeStatus, Role
from app.models.user import User
from app.services.registration_service import register


async def enroll(client: AsyncClient, event_id: int, headers: dict):
    return await client.post("/api/v1/registrations/", json={"event_id": event_id}, headers=headers)


async def record(client: AsyncClient, registration_id: int, round_number: int, outcome: str, headers: dict):
    return await client.post(
        f"/api/v1/registrations/{registration_id}/outcomes",
        json={"round_sequence_number": round_number, "outcome": outcome},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_register(client: AsyncClient, participant, participant_headers, published_event):
    """Registration admits the participant to round 0 as pending."""
    response = await enroll(client, published_event.id, participant_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["registration_number"] == f"REG-{published_event.id}-{participant.id}"
    assert data["status"] == "active"
    assert data["current_round"] == 0
    assert data["outcomes"] == [{"sequence_number": 0, "outcome": "pending"}]

    response = await client.get(f"/api/v1/events/{published_event.id}")
    assert response.json()["rounds"][0]["admitted_count"] == 1


@pytest.mark.asyncio
async def test_register_twice(client: AsyncClient, participant_headers, published_event):
    """Second registration for the same event returns 409."""
    await enroll(client, published_event.id, participant_headers)
    response = await enroll(client, published_event.id, participant_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "already_registered"


@pytest.mark.asyncio
async def test_register_unknown_participant(client: AsyncClient, make_headers, published_event):
    """A valid token whose user is missing from the directory is a 404, not a 500."""
    ghost = User(id=9999, email="ghost@example.com", full_name="Ghost", role=Role.STUDENT.value)
    response = await enroll(client, published_event.id, make_headers(ghost))
    assert response.status_code == 404
    assert response.json()["error"] == "participant_not_found"

    response = await client.get(f"/api/v1/events/{published_event.id}")
    assert response.json()["rounds"][0]["admitted_count"] == 0


@pytest.mark.asyncio
async def test_register_unknown_participant_service(db_session: AsyncSession, published_event):
    with pytest.raises(ParticipantNotFound):
        await register(db_session, published_event.id, 9999)


@pytest.mark.asyncio
async def test_register_inactive_participant(
    client: AsyncClient, db_session: AsyncSession, participant, participant_headers, published_event
):
    participant.is_active = False
    await db_session.commit()

    response = await enroll(client, published_event.id, participant_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "participant_inactive"


@pytest.mark.asyncio
async def test_register_for_draft_event(client: AsyncClient, participant_headers, make_event):
    event = await make_event(status=AdministrativeStatus.DRAFT)
    response = await enroll(client, event.id, participant_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "event_not_open"


@pytest.mark.asyncio
async def test_register_for_ended_event(client: AsyncClient, participant_headers, make_event):
    event = await make_event(starts_in=timedelta(days=-3), lasts=timedelta(days=1))
    response = await enroll(client, event.id, participant_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "event_not_open"


@pytest.mark.asyncio
async def test_register_for_ongoing_event(client: AsyncClient, participant_headers, make_event):
    """Registration stays open until the event ends."""
    event = await make_event(starts_in=timedelta(hours=-2))
    response = await enroll(client, event.id, participant_headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_register_for_missing_event(client: AsyncClient, participant_headers):
    response = await enroll(client, 9999, participant_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "event_not_found"


@pytest.mark.asyncio
async def test_register_when_round_full(client: AsyncClient, make_headers, make_event, participants):
    """The round-0 capacity is a hard ceiling."""
    event = await make_event(capacity=2)

    for p in participants[:2]:
        response = await enroll(client, event.id, make_headers(p))
        assert response.status_code == 201

    response = await enroll(client, event.id, make_headers(participants[2]))
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "capacity_exceeded"
    assert body["retryable"] is False


@pytest.mark.asyncio
async def test_register_unauthenticated(client: AsyncClient, published_event):
    response = await client.post("/api/v1/registrations/", json={"event_id": published_event.id})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_progress_through_two_rounds(
    client: AsyncClient, participant_headers, organizer_headers, two_round_event
):
    """
    Passing round 0 opens round 1 and, with nobody else pending, advances
    the event; passing the final round completes the registration.
    """
    registration_id = (await enroll(client, two_round_event.id, participant_headers)).json()["id"]

    response = await record(client, registration_id, 0, "passed", organizer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["event_round_index"] == 1
    assert data["registration"]["current_round"] == 1
    assert data["registration"]["outcomes"] == [
        {"sequence_number": 0, "outcome": "passed"},
        {"sequence_number": 1, "outcome": "pending"},
    ]
    assert data["certificate_number"] is None

    response = await record(client, registration_id, 1, "passed", organizer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["registration"]["status"] == "completed"
    assert data["certificate_number"] == f"EVT-{two_round_event.id}-000001"


@pytest.mark.asyncio
async def test_outcome_for_round_not_started(
    client: AsyncClient, make_headers, organizer_headers, two_round_event, participants
):
    """Round 1 cannot be judged while the event is still in round 0."""
    first = (await enroll(client, two_round_event.id, make_headers(participants[0]))).json()["id"]
    await enroll(client, two_round_event.id, make_headers(participants[1]))

    response = await record(client, first, 0, "passed", organizer_headers)
    assert response.json()["event_round_index"] == 0

    response = await record(client, first, 1, "passed", organizer_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "out_of_sequence"


@pytest.mark.asyncio
async def test_outcome_recorded_twice(client: AsyncClient, make_headers, organizer_headers, two_round_event, participants):
    first = (await enroll(client, two_round_event.id, make_headers(participants[0]))).json()["id"]
    await enroll(client, two_round_event.id, make_headers(participants[1]))

    await record(client, first, 0, "passed", organizer_headers)
    response = await record(client, first, 0, "failed", organizer_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "out_of_sequence"


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome", ["maybe", "pending", "PASSED"])
async def test_invalid_outcome(client: AsyncClient, participant_headers, organizer_headers, published_event, outcome):
    registration_id = (await enroll(client, published_event.id, participant_headers)).json()["id"]
    response = await record(client, registration_id, 0, outcome, organizer_headers)
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_outcome"


@pytest.mark.asyncio
@pytest.mark.parametrize("outcome", ["failed", "eliminated"])
async def test_failed_outcome_eliminates(
    client: AsyncClient, participant_headers, organizer_headers, two_round_event, outcome
):
    registration_id = (await enroll(client, two_round_event.id, participant_headers)).json()["id"]

    response = await record(client, registration_id, 0, outcome, organizer_headers)
    assert response.status_code == 200
    registration = response.json()["registration"]
    assert registration["status"] == "eliminated"
    assert registration["eliminated_in_round"] == 0
    assert registration["current_round"] == 0

    # Eliminated registrations take no further outcomes
    response = await record(client, registration_id, 0, "passed", organizer_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_next_round_capacity(client: AsyncClient, make_headers, organizer_headers, make_event, participants, db_session):
    """Passing into a full round is rejected and leaves round 0 unresolved."""
    event = await make_event(rounds=2)
    event.rounds[1].capacity = 1
    await db_session.commit()

    first = (await enroll(client, event.id, make_headers(participants[0]))).json()["id"]
    second = (await enroll(client, event.id, make_headers(participants[1]))).json()["id"]
    await enroll(client, event.id, make_headers(participants[2]))

    assert (await record(client, first, 0, "passed", organizer_headers)).status_code == 200
    response = await record(client, second, 0, "passed", organizer_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "capacity_exceeded"

    response = await client.get(f"/api/v1/registrations/{second}", headers=organizer_headers)
    assert response.json()["outcomes"] == [{"sequence_number": 0, "outcome": "pending"}]


@pytest.mark.asyncio
async def test_outcome_by_other_organizer(
    client: AsyncClient, participant_headers, make_headers, other_organizer, published_event
):
    registration_id = (await enroll(client, published_event.id, participant_headers)).json()["id"]
    response = await record(client, registration_id, 0, "passed", make_headers(other_organizer))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_outcome_by_participant(client: AsyncClient, participant_headers, published_event):
    registration_id = (await enroll(client, published_event.id, participant_headers)).json()["id"]
    response = await record(client, registration_id, 0, "passed", participant_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_outcome_for_missing_registration(client: AsyncClient, organizer_headers):
    response = await record(client, 9999, 0, "passed", organizer_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "registration_not_found"


@pytest.mark.asyncio
async def test_view_registration(
    client: AsyncClient, participant_headers, organizer_headers, make_headers, participants, published_event
):
    """Owner and organizer can read a registration; other participants cannot."""
    registration_id = (await enroll(client, published_event.id, participant_headers)).json()["id"]

    assert (await client.get(f"/api/v1/registrations/{registration_id}", headers=participant_headers)).status_code == 200
    assert (await client.get(f"/api/v1/registrations/{registration_id}", headers=organizer_headers)).status_code == 200

    response = await client.get(f"/api/v1/registrations/{registration_id}", headers=make_headers(participants[0]))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_my_registrations(client: AsyncClient, participant_headers, make_event):
    first = await make_event(title="First")
    second = await make_event(title="Second")
    await enroll(client, first.id, participant_headers)
    await enroll(client, second.id, participant_headers)

    response = await client.get("/api/v1/registrations/me", headers=participant_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert {r["event_id"] for r in data["registrations"]} == {first.id, second.id}


@pytest.mark.asyncio
async def test_list_event_registrations_by_status(
    client: AsyncClient, make_headers, organizer_headers, two_round_event, participants
):
    ids = [(await enroll(client, two_round_event.id, make_headers(p))).json()["id"] for p in participants]
    await record(client, ids[0], 0, "failed", organizer_headers)

    response = await client.get(f"/api/v1/registrations/event/{two_round_event.id}", headers=organizer_headers)
    assert response.json()["total"] == 3

    response = await client.get(
        f"/api/v1/registrations/event/{two_round_event.id}",
        params={"status": "eliminated"},
        headers=organizer_headers,
    )
    assert [r["id"] for r in response.json()["registrations"]] == [ids[0]]


@pytest.mark.asyncio
async def test_list_event_registrations_other_organizer(
    client: AsyncClient, make_headers, other_organizer, published_event
):
    response = await client.get(
        f"/api/v1/registrations/event/{published_event.id}",
        headers=make_headers(other_organizer),
    )
    assert response.status_code == 403
