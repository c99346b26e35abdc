"""
FastAPI server relaying Twilio Media Streams calls to the OpenAI Realtime API.

Twilio fetches ``/twiml`` when a call comes in and is told to open a media
stream to ``wss://<public host>/call``. That WebSocket becomes the telephony
leg of the session; a browser or CLI observer connected to ``/logs`` receives a
live mirror of the model traffic and can push ``session.update`` overrides.
"""

from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from twilio.twiml.voice_response import VoiceResponse

from callrelay.config import get_config
from callrelay.config.env_loader import load_env_file
from callrelay.config.logging_config import configure_logging
from callrelay.listeners import LoggingSessionListener
from callrelay.peers import StarlettePeer
from callrelay.registry import ConnectionKind, ConnectionRegistry, kind_for_path
from callrelay.session_manager import WebSocketSessionManager

# Load environment variables before accessing configuration
load_env_file()

config = get_config()

logger = configure_logging("main")

session_manager = WebSocketSessionManager(
    relay_config=config.relay,
    openai_config=config.openai,
    listeners=[LoggingSessionListener()],
)
registry = ConnectionRegistry(close_timeout=config.relay.close_timeout)

app = FastAPI(
    title="Call Relay",
    description="Bridges Twilio Media Streams calls to the OpenAI Realtime API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.server.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def stream_url(public_url: str) -> str:
    """WebSocket URL Twilio should stream the call to."""
    parsed = urlparse(public_url)
    return urlunparse(("wss", parsed.netloc, f"/{ConnectionKind.CALL.value}", "", "", ""))


@app.get("/public-url")
async def public_url():
    return {"publicUrl": config.server.public_url}


@app.api_route("/twiml", methods=["GET", "POST"])
async def twiml():
    """Answer an incoming call with instructions to stream it to ``/call``."""
    response = VoiceResponse()
    connect = response.connect()
    connect.stream(url=stream_url(config.server.public_url))
    return Response(content=str(response), media_type="text/xml")


@app.get("/tools")
async def tools():
    return session_manager.function_handler.schemas()


@app.get("/health")
async def health_check():
    """Health of the relay and the legs of the current call."""
    return await session_manager.health_check()


@app.websocket("/{path:path}")
async def websocket_router(websocket: WebSocket, path: str):
    """Route ``/call`` to the telephony leg and ``/logs`` to the observer leg.

    Any other path is accepted and closed straight away.
    """
    await websocket.accept()
    kind = kind_for_path(path)
    if kind is None:
        logger.warning(f"Rejecting WebSocket on unknown path: /{path}")
        await websocket.close()
        return

    client = websocket.client
    logger.info(f"------ {kind.value} connection accepted from {client} ------")
    peer = StarlettePeer(websocket, kind.value)
    await registry.register(kind, peer)
    try:
        if kind is ConnectionKind.CALL:
            await session_manager.handle_call_connection(peer, config.openai.api_key)
        else:
            await session_manager.handle_frontend_connection(peer)
    finally:
        registry.release(kind, peer)
        logger.info(f"------ {kind.value} connection from {client} finished ------")


@app.on_event("shutdown")
async def shutdown_event():
    """Close every leg on application shutdown."""
    logger.info("Application shutting down, closing all connections...")
    try:
        await session_manager.destroy()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on http://{config.server.host}:{config.server.port}")
    uvicorn.run(app, host=config.server.host, port=config.server.port, http="h11")
