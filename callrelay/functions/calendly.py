"""
Meeting scheduling through the Calendly scheduled events API.

The access token comes from ``CALENDLY_ACCESS_TOKEN`` and is read at call
time, so a token added after start up is picked up by ``reload_config()``.
"""

import json
from typing import Any, Dict, Optional

import httpx

from callrelay.config.constants import CALENDLY_SCHEDULED_EVENTS_URL, HTTP_TIMEOUT
from callrelay.config.logging_config import configure_logging
from callrelay.config.settings import integrations_config
from callrelay.models.tool_models import OpenAITool, ToolParameter, ToolParameters

logger = configure_logging("functions.calendly")

CALENDLY_SCHEMA = OpenAITool(
    name="schedule_calendly_meeting",
    description="Schedule a meeting using Calendly",
    parameters=ToolParameters(
        properties={
            "eventType": ToolParameter(
                type="string",
                description="Calendly event type URI (e.g., 'https://api.calendly.com/event_types/AAAAAAAAAAAAAAAA')",
            ),
            "startTime": ToolParameter(
                type="string",
                description="Start time in ISO format (e.g., '2024-01-15T10:00:00Z')",
            ),
            "inviteeEmail": ToolParameter(
                type="string", description="Email of the person being invited"
            ),
            "inviteeName": ToolParameter(
                type="string", description="Name of the person being invited"
            ),
            "timezone": ToolParameter(
                type="string", description="Timezone (e.g., 'America/Sao_Paulo')"
            ),
        },
        required=["eventType", "startTime", "inviteeEmail", "inviteeName"],
    ),
)


class CalendlyError(Exception):
    """Raised for a non-success reply from the Calendly API."""


def build_scheduling_payload(args: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "event_type": args["eventType"],
        "start_time": args["startTime"],
        "invitee": {
            "email": args["inviteeEmail"],
            "name": args["inviteeName"],
            "timezone": args.get("timezone") or "UTC",
        },
        "questions_and_responses": [
            {"question": q.get("question"), "response": q.get("answer")}
            for q in args.get("questions") or []
        ],
    }


def _error_message(response: httpx.Response) -> str:
    try:
        message = response.json().get("message")
    except ValueError:
        message = None
    return f"Calendly API Error: {message or response.reason_phrase}"


async def schedule_calendly_meeting(
    args: Dict[str, Any],
    client: Optional[httpx.AsyncClient] = None,
    access_token: Optional[str] = None,
) -> str:
    """Create a scheduled event and return a JSON summary of it."""
    token = access_token or integrations_config().calendly_access_token
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)
    try:
        if not token:
            raise CalendlyError("Calendly access token is not configured")

        response = await client.post(
            CALENDLY_SCHEDULED_EVENTS_URL,
            json=build_scheduling_payload(args),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {token}",
            },
        )
        if response.is_error:
            raise CalendlyError(_error_message(response))

        resource = response.json()["resource"]
        location = resource.get("location") or {}
        return json.dumps(
            {
                "success": True,
                "eventId": resource.get("uri"),
                "meetingLink": location.get("join_url") or location.get("location"),
                "startTime": resource.get("start_time"),
                "endTime": resource.get("end_time"),
                "status": resource.get("status"),
                "invitee": {
                    "name": args["inviteeName"],
                    "email": args["inviteeEmail"],
                },
            }
        )
    except (CalendlyError, httpx.HTTPError, KeyError, ValueError) as e:
        logger.error(f"Error creating Calendly meeting: {e}")
        return json.dumps({"success": False, "error": str(e)})
    finally:
        if owns_client:
            await client.aclose()
