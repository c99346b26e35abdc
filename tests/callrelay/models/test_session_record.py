from datetime import datetime

from callrelay.listeners import LoggingSessionListener
from callrelay.models.openai_api import default_session_config, merge_session_config
from callrelay.models.session_state import ConnectionStats, ConnectionType, Session
from conftest import FakePeer


def test_clear_call_keeps_observer():
    observer = FakePeer("logs")
    session = Session(
        telephony_peer=FakePeer("call"),
        observer_peer=observer,
        model_peer=FakePeer("model"),
        stream_sid="MZ1",
        api_key="sk",
        saved_config={"voice": "alloy"},
        last_assistant_item="i1",
        response_start_timestamp=10,
        latest_media_timestamp=99,
    )
    session.mark_call_started()

    session.clear_call()

    assert session == Session(observer_peer=observer)
    assert session.has_active_connections()


def test_utterance_tracking():
    session = Session()
    assert not session.has_active_utterance

    session.last_assistant_item = "i1"
    assert not session.has_active_utterance
    session.response_start_timestamp = 0
    assert session.has_active_utterance

    session.clear_utterance()
    assert session.last_assistant_item is None
    assert session.response_start_timestamp is None


def test_snapshot_is_a_copy():
    session = Session(stream_sid="MZ1")
    copy = session.snapshot()
    copy.stream_sid = "other"

    assert session.stream_sid == "MZ1"


def test_connection_stats_to_dict():
    stats = ConnectionStats(3, 1, 1500, datetime(2024, 1, 1, 12, 0))

    assert stats.to_dict() == {
        "total_connections": 3,
        "active_connections": 1,
        "connection_duration_ms": 1500,
        "last_activity": "2024-01-01T12:00:00",
    }


def test_merge_session_config_replaces_top_level_keys():
    merged = merge_session_config({"turn_detection": None, "instructions": "Be brief"}, "ash")

    assert merged["turn_detection"] is None
    assert merged["instructions"] == "Be brief"
    assert merged["voice"] == "ash"
    assert merge_session_config(None, "verse") == default_session_config("verse")


def test_logging_listener_accepts_every_callback():
    listener = LoggingSessionListener()

    listener.on_connection_established(ConnectionType.TELEPHONY)
    listener.on_connection_closed(ConnectionType.MODEL, 1006, "gone")
    listener.on_function_call_started("f", "c1")
    listener.on_function_call_completed("f", "c1", "{}")
    listener.on_function_call_error("f", "c1", {"error": "x"})
    listener.on_session_reset()
    listener.on_error("json_send", RuntimeError("x"), ConnectionType.OBSERVER)
