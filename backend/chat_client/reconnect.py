"""
Client connection driver for /ws/chat.

Runs one logical chat session over a sequence of WebSocket transports.
Every transport must join explicitly; a reconnect never assumes the old
join survived.

States:

    IDLE -> CONNECTING -> JOINED
                 ^          |
                 |          v  (abnormal disconnect or connect error)
                 +---- RECONNECTING
                            |
                            v  (attempts exhausted)
                          FAILED

close() moves to CLOSED from any state and stops reconnecting.

Usage:
    client = ReconnectingClient("ws://localhost:8000/ws/chat?token=...", user_id=1)
    client.add_listener(view.apply_event)
    await client.run()
"""

from __future__ import annotations

import asyncio
import json
import random
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Final, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from shared.config.logging import get_logger

logger = get_logger(__name__)


# Default jitter range: +/-25% of calculated delay
DEFAULT_JITTER_FACTOR: Final[float] = 0.25

# Application-level ping keeps the server's receive timeout from firing
DEFAULT_HEARTBEAT_INTERVAL: Final[float] = 25.0


# =============================================================================
# Policy
# =============================================================================


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """
    Configuration for reconnect behavior.

    Attributes:
        max_attempts: Reconnect attempts before giving up (default: 5).
        reconnect_delay: Fixed delay before every attempt (default: 1.0s).
        transport_base_delay: First step of the increasing transport delay
            (default: 1.0s). Doubles on every further attempt.
        max_delay: Cap on the total wait before an attempt (default: 5.0s).
        jitter_factor: Random jitter range as fraction (default: 0.25).
    """

    max_attempts: int = 5
    reconnect_delay: float = 1.0
    transport_base_delay: float = 1.0
    max_delay: float = 5.0
    jitter_factor: float = DEFAULT_JITTER_FACTOR

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.reconnect_delay < 0 or self.transport_base_delay < 0:
            raise ValueError("delays must not be negative")
        if self.max_delay < self.reconnect_delay:
            raise ValueError("max_delay must be >= reconnect_delay")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    def delay_for(self, attempt: int) -> float:
        """
        Wait before reconnect attempt number `attempt` (1-indexed).

        The delay is calculated as:
            backoff = transport_base_delay * (2 ^ (attempt - 1) - 1)
            delay = reconnect_delay + backoff, +/- jitter_factor
            final = clamp(delay, 0, max_delay)

        Example:
            >>> policy = ReconnectPolicy(jitter_factor=0)
            >>> [policy.delay_for(n) for n in range(1, 6)]
            [1.0, 2.0, 4.0, 5.0, 5.0]
        """
        backoff = self.transport_base_delay * (2 ** (max(attempt, 1) - 1) - 1)
        delay = self.reconnect_delay + backoff

        jitter_range = delay * self.jitter_factor
        delay += random.uniform(-jitter_range, jitter_range)

        return min(max(0.0, delay), self.max_delay)


# =============================================================================
# Transport
# =============================================================================


class ClientState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    JOINED = "joined"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"
    FAILED = "failed"


class Transport(Protocol):
    """What the driver needs from a connection. websockets' client satisfies it."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


ConnectFactory = Callable[[str], Awaitable[Transport]]
EventListener = Callable[[dict[str, Any]], Any]

# Failures while opening a transport that count as a connect error
CONNECT_ERRORS: Final[tuple[type[BaseException], ...]] = (
    OSError,
    asyncio.TimeoutError,
    WebSocketException,
)


async def websockets_connect(url: str) -> Transport:
    """Default connect factory."""
    return await websockets.connect(url, open_timeout=20, close_timeout=5)


class NotJoinedError(RuntimeError):
    """send() was called while no transport is joined."""


# =============================================================================
# Driver
# =============================================================================


class ReconnectingClient:
    """
    Chat connection that survives transport loss.

    An abnormal disconnect (anything but close() from this side) or a
    connect error schedules a reconnect. A "connected" acknowledgement
    resets the attempt counter. After max_attempts consecutive failures the
    client is FAILED and run() returns.

    Incoming events are passed to every listener. Listener errors are
    logged and never break the connection.
    """

    def __init__(
        self,
        url: str,
        user_id: int,
        policy: ReconnectPolicy | None = None,
        connect: ConnectFactory = websockets_connect,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        heartbeat_interval: float | None = DEFAULT_HEARTBEAT_INTERVAL,
    ) -> None:
        self._url = url
        self._user_id = user_id
        self._policy = policy or ReconnectPolicy()
        self._connect = connect
        self._sleep = sleep
        self._heartbeat_interval = heartbeat_interval

        self._state = ClientState.IDLE
        self._attempts = 0
        self._closing = False
        self._transport: Transport | None = None
        self._listeners: list[EventListener] = []
        self._state_history: list[ClientState] = [ClientState.IDLE]
        self.last_close_code: int | None = None

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def attempts(self) -> int:
        """Consecutive reconnect attempts since the last successful join."""
        return self._attempts

    @property
    def state_history(self) -> list[ClientState]:
        return list(self._state_history)

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, state: ClientState) -> None:
        if state is self._state:
            return
        logger.debug("Client state change", old=self._state.value, new=state.value)
        self._state = state
        self._state_history.append(state)

    # =========================================================================
    # Public API
    # =========================================================================

    async def run(self) -> ClientState:
        """
        Connect, join and read events until closed or failed.

        Returns:
            The final state, CLOSED or FAILED.
        """
        while not self._closing:
            self._set_state(ClientState.CONNECTING)
            try:
                transport = await self._connect(self._url)
            except CONNECT_ERRORS as e:
                logger.warning("Connect failed", url=self._redacted_url(), error=str(e))
                if not await self._schedule_reconnect():
                    break
                continue

            if self._closing:
                # close() ran while the connect was pending
                await self._close_transport(transport)
                break

            self._transport = transport
            try:
                await self._session(transport)
            finally:
                self._transport = None

            if self._closing:
                break
            logger.info("Connection lost", close_code=self.last_close_code)
            if not await self._schedule_reconnect():
                break

        if self._closing:
            self._set_state(ClientState.CLOSED)
        return self._state

    async def send(self, event: dict[str, Any]) -> None:
        """
        Send an event on the joined transport.

        Raises:
            NotJoinedError: No joined transport right now.
        """
        if self._state is not ClientState.JOINED or self._transport is None:
            raise NotJoinedError(f"Cannot send while {self._state.value}")
        await self._transport.send(json.dumps(event))

    async def send_direct(
        self,
        receiver_id: int,
        content: str,
        timestamp: int,
        client_token: str | None = None,
    ) -> None:
        event: dict[str, Any] = {
            "type": "direct_message",
            "receiver_id": receiver_id,
            "content": content,
            "timestamp": timestamp,
        }
        if client_token:
            event["client_token"] = client_token
        await self.send(event)

    async def send_group(
        self,
        group_id: int,
        content: str,
        timestamp: int,
        client_token: str | None = None,
    ) -> None:
        event: dict[str, Any] = {
            "type": "group_message",
            "group_id": group_id,
            "content": content,
            "timestamp": timestamp,
        }
        if client_token:
            event["client_token"] = client_token
        await self.send(event)

    async def close(self) -> None:
        """Client-initiated close. Never followed by a reconnect."""
        self._closing = True
        self._set_state(ClientState.CLOSED)
        if self._transport is not None:
            await self._close_transport(self._transport)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _session(self, transport: Transport) -> None:
        """Join on a fresh transport and read until it closes."""
        self.last_close_code = None
        heartbeat: asyncio.Task | None = None
        try:
            await transport.send(json.dumps({"type": "join", "user_id": self._user_id}))
            if self._heartbeat_interval:
                heartbeat = asyncio.create_task(self._heartbeat(transport))
            while True:
                raw = await transport.recv()
                await self._handle_frame(raw)
        except ConnectionClosed as e:
            self.last_close_code = e.rcvd.code if e.rcvd is not None else None
        except OSError as e:
            logger.warning("Transport error", error=str(e))
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                with suppress(asyncio.CancelledError):
                    await heartbeat

    async def _heartbeat(self, transport: Transport) -> None:
        while True:
            await self._sleep(self._heartbeat_interval)
            try:
                await transport.send("ping")
            except (ConnectionClosed, OSError):
                return

    async def _close_transport(self, transport: Transport) -> None:
        try:
            await transport.close(code=1000, reason="Client closed")
        except Exception as e:
            logger.debug("Close failed", error=str(e))

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            event = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-JSON frame")
            return
        if not isinstance(event, dict):
            return

        event_type = event.get("type")
        if event_type == "pong":
            return
        if event_type == "connected" and not self._closing:
            self._attempts = 0
            self._set_state(ClientState.JOINED)
            logger.info("Joined", user_id=self._user_id)
        elif event_type == "error":
            logger.warning("Server error event", message=(event.get("data") or {}).get("message"))

        for listener in self._listeners:
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Event listener failed", event_type=event_type, error=str(e), exc_info=True)

    async def _schedule_reconnect(self) -> bool:
        """
        Count an attempt and wait before it.

        Returns:
            False when attempts are exhausted or the client was closed.
        """
        if self._closing:
            return False
        self._attempts += 1
        if self._attempts > self._policy.max_attempts:
            logger.error("Giving up reconnecting", attempts=self._policy.max_attempts)
            self._set_state(ClientState.FAILED)
            return False

        self._set_state(ClientState.RECONNECTING)
        delay = self._policy.delay_for(self._attempts)
        logger.info("Reconnecting", attempt=self._attempts, delay=round(delay, 2))
        await self._sleep(delay)
        return not self._closing

    def _redacted_url(self) -> str:
        return self._url.split("?", 1)[0]
