"""Tests for the Calendly scheduling handler."""

import json

import httpx
import pytest

from callrelay.config import settings
from callrelay.config.models import ApplicationConfig
from callrelay.functions.calendly import build_scheduling_payload, schedule_calendly_meeting

ARGS = {
    "eventType": "https://api.calendly.com/event_types/EVT",
    "startTime": "2024-01-15T10:00:00Z",
    "inviteeEmail": "ana@example.com",
    "inviteeName": "Ana",
}


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_payload_defaults_timezone():
    payload = build_scheduling_payload(ARGS)

    assert payload["event_type"] == ARGS["eventType"]
    assert payload["invitee"] == {
        "email": "ana@example.com",
        "name": "Ana",
        "timezone": "UTC",
    }
    assert payload["questions_and_responses"] == []


def test_payload_maps_questions():
    payload = build_scheduling_payload(
        dict(ARGS, timezone="Europe/Lisbon", questions=[{"question": "Q", "answer": "A"}])
    )

    assert payload["invitee"]["timezone"] == "Europe/Lisbon"
    assert payload["questions_and_responses"] == [{"question": "Q", "response": "A"}]


@pytest.mark.asyncio
async def test_successful_booking():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            201,
            json={
                "resource": {
                    "uri": "https://api.calendly.com/scheduled_events/E1",
                    "start_time": "2024-01-15T10:00:00Z",
                    "end_time": "2024-01-15T10:30:00Z",
                    "status": "active",
                    "location": {"join_url": "https://meet.example/abc"},
                }
            },
        )

    async with client_for(handler) as client:
        output = await schedule_calendly_meeting(ARGS, client=client, access_token="tok")

    assert json.loads(output) == {
        "success": True,
        "eventId": "https://api.calendly.com/scheduled_events/E1",
        "meetingLink": "https://meet.example/abc",
        "startTime": "2024-01-15T10:00:00Z",
        "endTime": "2024-01-15T10:30:00Z",
        "status": "active",
        "invitee": {"name": "Ana", "email": "ana@example.com"},
    }
    assert seen[0].headers["Authorization"] == "Bearer tok"
    assert json.loads(seen[0].content)["invitee"]["timezone"] == "UTC"


@pytest.mark.asyncio
async def test_api_error_message_surfaced():
    def handler(request):
        return httpx.Response(400, json={"message": "Invalid start time"})

    async with client_for(handler) as client:
        output = await schedule_calendly_meeting(ARGS, client=client, access_token="tok")

    assert json.loads(output) == {
        "success": False,
        "error": "Calendly API Error: Invalid start time",
    }


@pytest.mark.asyncio
async def test_missing_token_is_reported_without_request():
    previous = settings._config
    settings.set_config(ApplicationConfig())
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    try:
        async with client_for(handler) as client:
            output = await schedule_calendly_meeting(ARGS, client=client)
    finally:
        settings.set_config(previous)

    assert json.loads(output)["success"] is False
    assert calls == []


@pytest.mark.asyncio
async def test_missing_argument_is_reported():
    async with client_for(lambda request: httpx.Response(200)) as client:
        output = await schedule_calendly_meeting(
            {"startTime": "x"}, client=client, access_token="tok"
        )

    assert json.loads(output)["success"] is False
