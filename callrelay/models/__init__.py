"""
Wire and state models for the call relay.

- ``twilio_api``: Twilio Media Streams frames
- ``openai_api``: Realtime API client and server events
- ``tool_models``: function tool schemas
- ``session_state``: the per-call session record
"""
