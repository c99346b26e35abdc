"""
Current weather lookup backed by the Open-Meteo forecast API.
"""

import json
from typing import Any, Dict, Optional

import httpx

from callrelay.config.constants import HTTP_TIMEOUT, OPEN_METEO_FORECAST_URL
from callrelay.config.logging_config import configure_logging
from callrelay.models.tool_models import OpenAITool, ToolParameter, ToolParameters

logger = configure_logging("functions.weather")

WEATHER_SCHEMA = OpenAITool(
    name="get_weather_from_coords",
    description="Get the current weather",
    parameters=ToolParameters(
        properties={
            "latitude": ToolParameter(type="number"),
            "longitude": ToolParameter(type="number"),
        },
        required=["latitude", "longitude"],
    ),
)


async def get_weather_from_coords(
    args: Dict[str, Any], client: Optional[httpx.AsyncClient] = None
) -> str:
    """Return ``{"temp": <celsius>}`` for the given coordinates as JSON text."""
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)
    try:
        params = {
            "latitude": args["latitude"],
            "longitude": args["longitude"],
            "current": "temperature_2m,wind_speed_10m",
            "hourly": "temperature_2m,relative_humidity_2m,wind_speed_10m",
        }
        response = await client.get(OPEN_METEO_FORECAST_URL, params=params)
        response.raise_for_status()
        data = response.json()
        current = data.get("current") or {}
        return json.dumps({"temp": current.get("temperature_2m")})
    except (httpx.HTTPError, KeyError, ValueError) as e:
        logger.error(f"Error fetching weather: {e}")
        return json.dumps({"success": False, "error": str(e)})
    finally:
        if owns_client:
            await client.aclose()
