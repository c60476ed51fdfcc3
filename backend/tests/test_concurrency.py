"""
Concurrent writers on the same event.

Each writer runs in its own session and transaction, the way two requests
would, and both are started together with asyncio.gather.
"""

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.core.exceptions import CapacityExceeded
from app.db.session import session_scope
from app.models.registration import Registration
from app.models.round import Round
from app.services.registration_service import record_outcome, register
from app.services.round_service import advance_round


@pytest.mark.asyncio
async def test_last_slot_goes_to_exactly_one(session_factory, db_session, make_event, participants):
    """Two participants race for the last slot of round 0."""
    event = await make_event(capacity=2)
    async with session_scope(session_factory) as session:
        await register(session, event.id, participants[0].id)

    async def attempt(participant_id):
        async with session_scope(session_factory) as session:
            return await register(session, event.id, participant_id)

    results = await asyncio.gather(
        attempt(participants[1].id),
        attempt(participants[2].id),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, Registration)]
    losers = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(winners) == 1
    assert len(losers) == 1

    admitted = await db_session.execute(
        select(Round.admitted_count).where(Round.event_id == event.id, Round.sequence_number == 0)
    )
    assert admitted.scalar() == 2
    registrations = await db_session.execute(
        select(func.count(Registration.id)).where(Registration.event_id == event.id)
    )
    assert registrations.scalar() == 2


@pytest.mark.asyncio
async def test_concurrent_advances_move_one_round(session_factory, db_session, make_event):
    """Two organizers advance from round 0 at once; the event ends up in round 1."""
    event = await make_event(rounds=3)

    async def advance():
        async with session_scope(session_factory) as session:
            moved = await advance_round(session, event.id, expected_index=0)
            return moved.current_round_index

    results = await asyncio.gather(advance(), advance())
    assert results == [1, 1]

    await db_session.refresh(event)
    assert event.current_round_index == 1


@pytest.mark.asyncio
async def test_concurrent_advance_requests_move_one_round(client: AsyncClient, organizer_headers, make_event):
    """Two advance requests sent together for round 0 land the event on round 1."""
    event = await make_event(rounds=3)

    async def advance():
        return await client.post(
            f"/api/v1/events/{event.id}/rounds/advance",
            json={"expected_index": 0},
            headers=organizer_headers,
        )

    responses = await asyncio.gather(advance(), advance())
    assert [r.status_code for r in responses] == [200, 200]
    assert [r.json()["current_round_index"] for r in responses] == [1, 1]

    response = await client.get(f"/api/v1/events/{event.id}")
    assert response.json()["current_round_index"] == 1


@pytest.mark.asyncio
async def test_concurrent_final_passes_issue_distinct_numbers(session_factory, make_event, participants):
    """Certificates issued at the same time never share a number."""
    event = await make_event()
    ids = []
    for p in participants[:2]:
        async with session_scope(session_factory) as session:
            ids.append((await register(session, event.id, p.id)).id)

    async def pass_final(registration_id):
        async with session_scope(session_factory) as session:
            result = await record_outcome(session, registration_id, 0, "passed")
            return result.certificate.certificate_number

    numbers = await asyncio.gather(*(pass_final(i) for i in ids))
    assert sorted(numbers) == [f"EVT-{event.id}-000001", f"EVT-{event.id}-000002"]
