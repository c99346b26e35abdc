"""
Function handlers exposed to the model.

Each handler wraps one third-party HTTP API and never raises past its own
boundary; failures come back as ``{"success": false, "error": ...}`` text.
"""

from callrelay.function_handler import FunctionDescriptor, FunctionHandler

from .calendly import CALENDLY_SCHEMA, schedule_calendly_meeting
from .weather import WEATHER_SCHEMA, get_weather_from_coords

DEFAULT_FUNCTIONS = [
    FunctionDescriptor(schema=WEATHER_SCHEMA, handler=get_weather_from_coords),
    FunctionDescriptor(schema=CALENDLY_SCHEMA, handler=schedule_calendly_meeting),
]


def create_default_function_handler() -> FunctionHandler:
    """Dispatch table holding the weather and Calendly handlers, in that order."""
    return FunctionHandler(list(DEFAULT_FUNCTIONS))


__all__ = [
    "CALENDLY_SCHEMA",
    "DEFAULT_FUNCTIONS",
    "WEATHER_SCHEMA",
    "create_default_function_handler",
    "get_weather_from_coords",
    "schedule_calendly_meeting",
]
