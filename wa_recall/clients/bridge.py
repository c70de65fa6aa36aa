"""
WhatsApp bridge client and bot bootstrap.

The WhatsApp session itself runs in a sidecar bridge process that speaks
JSON-RPC 2.0 over a websocket. Requests carry an ``id`` and receive a matching
response; notifications (no ``id``) carry session events such as
``messages.upsert`` and ``messages.update``. :class:`BridgeClient` implements
:class:`~wa_recall.clients.transport.Transport` on top of that socket.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

import aiohttp

from wa_recall.clients.transport import (
    MESSAGES_UPDATE,
    MESSAGES_UPSERT,
    Listener,
    MessageKey,
    normalize_jid,
    parse_updates,
    parse_upsert,
)

logger = logging.getLogger(__name__)

MAX_MESSAGE_BYTES = 100 * 1024 * 1024

# Bridge notifications decoded into transport models before listeners see them.
_DECODERS: Dict[str, Callable[[Any], Any]] = {
    MESSAGES_UPSERT: parse_upsert,
    MESSAGES_UPDATE: parse_updates,
}


class BridgeError(RuntimeError):
    """Raised when the bridge answers a request with an error."""


def _log_listener_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Event listener failed", exc_info=exc)


class BridgeClient:
    """JSON-RPC websocket client for the WhatsApp bridge."""

    def __init__(self, url: str, *, session: aiohttp.ClientSession | None = None) -> None:
        self.url = url
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._recv_task: asyncio.Task | None = None
        self._req_id = 0
        self._pending: Dict[int, asyncio.Future] = {}
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._self_jid = ""
        self.closed = asyncio.Event()

    # ------------------------------------------------------------------ #
    # CONNECTION
    # ------------------------------------------------------------------ #

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        logger.info("Connecting to bridge at %s", self.url)
        if self._session is None:
            self._session = aiohttp.ClientSession()
        self._ws = await self._session.ws_connect(
            self.url, heartbeat=30, max_msg_size=MAX_MESSAGE_BYTES
        )
        self.closed.clear()
        self._recv_task = asyncio.create_task(self._recv())

        me = await self.call("get_self")
        self._self_jid = normalize_jid((me or {}).get("id"))
        logger.info("Bridge connected as %s", self._self_jid)

    async def close(self) -> None:
        if self._recv_task:
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
            self._recv_task = None
        if self._ws is not None:
            await self._ws.close()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
        self._fail_pending(ConnectionError("Bridge connection closed"))
        self.closed.set()

    async def _recv(self) -> None:
        assert self._ws is not None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        self._route(msg.json())
                    except (ValueError, AttributeError, TypeError):
                        logger.warning("Malformed bridge frame dropped: %.200s", msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error("Bridge socket error: %s", self._ws.exception())
                    break
        finally:
            logger.warning("Bridge connection closed")
            self._fail_pending(ConnectionError("Bridge connection closed"))
            self.closed.set()

    def _fail_pending(self, exc: Exception) -> None:
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(exc)
        self._pending.clear()

    def _route(self, data: Dict[str, Any]) -> None:
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
        req_id = data.get("id")
        if req_id is not None and req_id in self._pending:
            fut = self._pending.pop(req_id)
            if fut.done():
                return
            if "error" in data:
                error = data["error"] or {}
                message = error.get("message") if isinstance(error, dict) else error
                fut.set_exception(BridgeError(str(message or "bridge error")))
            else:
                fut.set_result(data.get("result"))
        elif "method" in data and req_id is None:
            self._emit(data["method"], data.get("params"))

    # ------------------------------------------------------------------ #
    # EVENTS
    # ------------------------------------------------------------------ #

    def on(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def _emit(self, event: str, params: Any) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        decode = _DECODERS.get(event)
        try:
            payload = decode(params) if decode else params
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.exception("Malformed %s event dropped", event)
            return
        # Each listener runs as its own task so a slow one never blocks the socket.
        for listener in listeners:
            task = asyncio.create_task(listener(payload))
            task.add_done_callback(_log_listener_failure)

    # ------------------------------------------------------------------ #
    # RPC
    # ------------------------------------------------------------------ #

    async def call(self, method: str, **params: Any) -> Any:
        if not self.connected:
            raise ConnectionError("Bridge is not connected")
        self._req_id += 1
        req_id = self._req_id
        fut = asyncio.get_running_loop().create_future()
        self._pending[req_id] = fut
        try:
            await self._ws.send_json(
                {"jsonrpc": "2.0", "id": req_id, "method": method, "params": params}
            )
        except Exception:
            self._pending.pop(req_id, None)
            raise
        return await fut

    def self_jid(self) -> str:
        return self._self_jid

    async def send_message(self, jid: str, content: Dict[str, Any]) -> Any:
        wire = dict(content)
        for field in ("audio", "image", "video", "document", "sticker"):
            if isinstance(wire.get(field), (bytes, bytearray)):
                wire[field] = base64.b64encode(wire[field]).decode("ascii")
        return await self.call("send_message", jid=jid, content=wire)

    async def send_reaction(self, jid: str, key: MessageKey, emoji: str) -> Any:
        return await self.call("send_reaction", jid=jid, key=key.to_dict(), emoji=emoji)

    async def group_metadata(self, jid: str) -> Dict[str, Any]:
        return await self.call("group_metadata", jid=jid)

    async def download_media(self, descriptor: Dict[str, Any], media_type: str) -> bytes:
        result = await self.call("download_media", message=descriptor, type=media_type)
        return base64.b64decode((result or {}).get("data", ""))


# ---------------------------------------------------------------------- #
# Bootstrap
# ---------------------------------------------------------------------- #


async def _serve() -> None:
    from wa_recall.config import antidelete, core
    from wa_recall.context import BotContext
    from wa_recall.event_hooks import message_hook, ready_hook
    from wa_recall.memory.cache import ExpiringCache, SnapshotStore
    from wa_recall.recovery import RecoveryEngine

    client = BridgeClient(core.BRIDGE_URL)
    store = SnapshotStore(antidelete.DB_FILE, antidelete.TTL_MS)
    cache = ExpiringCache(
        store,
        ttl_ms=antidelete.TTL_MS,
        max_entries=antidelete.MAX_ENTRIES,
        sweep_batch=antidelete.SWEEP_BATCH,
    )
    engine = RecoveryEngine(client, cache, core, antidelete)
    ctx = BotContext(transport=client, engine=engine, core=core)

    async def _on_upsert(event) -> None:
        await message_hook.handle(ctx, event)

    client.on(MESSAGES_UPSERT, _on_upsert)

    try:
        await client.connect()
        await ready_hook.handle(ctx)
        await client.closed.wait()
    finally:
        await engine.shutdown()
        await client.close()


def run() -> None:
    """Connect to the bridge and serve until the connection drops."""

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down")
    except aiohttp.ClientError as exc:
        logger.error("Bridge connection failed: %s", exc)
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.exception("Unexpected error while running client: %s", exc)
