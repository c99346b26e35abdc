"""Unit tests for FunctionHandler dispatch."""

import json

import pytest

from callrelay.function_handler import (
    INVALID_ARGUMENTS_ERROR,
    FunctionDescriptor,
    FunctionHandler,
)
from callrelay.functions import create_default_function_handler
from callrelay.models.tool_models import OpenAITool, ToolParameters


def make_tool(name):
    return OpenAITool(
        name=name, description=f"{name} tool", parameters=ToolParameters(properties={})
    )


class CountingHandler:
    """Callable handler that records the arguments it was given."""

    def __init__(self, result="ok"):
        self.calls = []
        self.result = result

    def __call__(self, args):
        self.calls.append(args)
        return self.result


@pytest.fixture
def counting():
    return CountingHandler()


@pytest.fixture
def handler(counting):
    return FunctionHandler([FunctionDescriptor(schema=make_tool("count"), handler=counting)])


@pytest.mark.asyncio
async def test_sync_handler_result_returned_verbatim(handler, counting):
    output = await handler.dispatch("count", '{"a": 1}')

    assert output == "ok"
    assert counting.calls == [{"a": 1}]


@pytest.mark.asyncio
async def test_async_handler_is_awaited():
    async def add(args):
        return {"sum": args["a"] + args["b"]}

    handler = FunctionHandler([FunctionDescriptor(schema=make_tool("add"), handler=add)])

    result = await handler.execute("add", '{"a": 2, "b": 3}')

    assert result.succeeded
    assert json.loads(result.output) == {"sum": 5}


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", "", None, "[1, 2]", '"text"', "42"])
async def test_invalid_arguments_never_reach_handler(handler, counting, raw):
    result = await handler.execute("count", raw)

    assert not result.succeeded
    assert json.loads(result.output) == {"error": INVALID_ARGUMENTS_ERROR}
    assert counting.calls == []


@pytest.mark.asyncio
async def test_unknown_function(handler):
    output = await handler.dispatch("missing", "{}")

    assert json.loads(output) == {
        "error": "Error running function missing: No handler found for function: missing"
    }


@pytest.mark.asyncio
async def test_unknown_function_checked_before_arguments(handler):
    output = await handler.dispatch("missing", "{not json")

    assert "No handler found" in json.loads(output)["error"]


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_output():
    async def explode(args):
        raise RuntimeError("boom")

    handler = FunctionHandler([FunctionDescriptor(schema=make_tool("explode"), handler=explode)])

    result = await handler.execute("explode", "{}")

    assert result.error == {"error": "Error running function explode: boom"}
    assert json.loads(result.output) == result.error


@pytest.mark.asyncio
async def test_unserializable_result_becomes_error_output():
    handler = FunctionHandler(
        [FunctionDescriptor(schema=make_tool("bad"), handler=lambda args: {1, 2})]
    )

    result = await handler.execute("bad", "{}")

    assert not result.succeeded
    assert result.error["error"].startswith("Error running function bad: ")
    assert "not JSON serializable" in result.error["error"]
    assert json.loads(await handler.dispatch("bad", "{}")) == result.error


@pytest.mark.asyncio
async def test_first_registered_name_wins():
    first, second = CountingHandler("first"), CountingHandler("second")
    handler = FunctionHandler(
        [
            FunctionDescriptor(schema=make_tool("dup"), handler=first),
            FunctionDescriptor(schema=make_tool("dup"), handler=second),
        ]
    )

    assert await handler.dispatch("dup", "{}") == "first"
    assert second.calls == []


def test_schemas_in_registration_order():
    handler = FunctionHandler()
    handler.register(FunctionDescriptor(schema=make_tool("b"), handler=CountingHandler()))
    handler.register(FunctionDescriptor(schema=make_tool("a"), handler=CountingHandler()))

    assert handler.get_registered_functions() == ["b", "a"]
    assert [schema["name"] for schema in handler.schemas()] == ["b", "a"]
    assert handler.schemas()[0] == {
        "type": "function",
        "name": "b",
        "description": "b tool",
        "parameters": {"type": "object", "properties": {}, "required": []},
    }


def test_default_functions_registered():
    handler = create_default_function_handler()

    assert handler.get_registered_functions() == [
        "get_weather_from_coords",
        "schedule_calendly_meeting",
    ]
    weather = handler.schemas()[0]
    assert weather["parameters"]["required"] == ["latitude", "longitude"]
    assert weather["parameters"]["properties"]["latitude"] == {"type": "number"}
