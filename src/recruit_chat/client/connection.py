"""Connection Manager: one authenticated transport per client session."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any

from recruit_chat.application.exceptions import (
    AppError,
    AuthenticationError,
    ConnectInProgressError,
    ConnectTimeoutError,
    NotConnectedError,
    TransportError,
    ValidationError,
)
from recruit_chat.application.ports.auth import TokenProvider
from recruit_chat.application.ports.transport import Transport, TransportClosed
from recruit_chat.client.backoff import ExponentialBackoff
from recruit_chat.client.events import Signal
from recruit_chat.domain.value_objects.enums import TransportState
from recruit_chat.infrastructure.ws.protocol import (
    AUTH_FAILED_CLOSE_CODE,
    PING,
    PONG,
    WsFrame,
)

logger = logging.getLogger(__name__)

CLIENT_DISCONNECT = "client disconnect"


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    """Read-only snapshot for status banners."""

    state: TransportState
    reconnect_attempt: int
    next_retry_delay: float
    last_error: str | None = None


@dataclass(frozen=True, slots=True)
class ConnectionErrorInfo:
    attempt: int
    next_delay: float
    error: Exception


class ConnectionManager:
    """Owns the transport of one session and recovers it after drops.

    States: ``disconnected -> connecting -> connected``,
    ``connected -> reconnecting -> connected``, and any state back to
    ``disconnected`` through :meth:`disconnect`. Unexpected drops are retried
    forever with exponential backoff; only an authentication failure or an
    explicit disconnect stops the retry loop.

    Server-pushed frames are delivered through :meth:`on` in arrival order.
    Handlers run on the reader task, so they must not await :meth:`request`.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        backoff: ExponentialBackoff | None = None,
        token_provider: TokenProvider | None = None,
        connect_timeout: float = 10.0,
        heartbeat_interval: float | None = None,
    ) -> None:
        self._transport = transport
        self._backoff = backoff or ExponentialBackoff()
        self._token_provider = token_provider
        self._connect_timeout = connect_timeout
        self._heartbeat_interval = heartbeat_interval

        self._token: str | None = None
        self._state = TransportState.DISCONNECTED
        self._attempt = 0
        self._next_delay = 0.0
        self._last_error: str | None = None

        self._connecting = False
        # Bumped by disconnect(); stale tasks compare and bail out.
        self._generation = 0
        self._retry_now = asyncio.Event()
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._heartbeat_task: asyncio.Task[None] | None = None
        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._channels: dict[str, Signal[Any]] = {}

        self.on_connect: Signal[ConnectionStatus] = Signal("on_connect")
        self.on_disconnect: Signal[str] = Signal("on_disconnect")
        self.on_connection_error: Signal[ConnectionErrorInfo] = Signal("on_connection_error")
        self.on_reconnecting: Signal[int] = Signal("on_reconnecting")
        self.on_reconnect: Signal[ConnectionStatus] = Signal("on_reconnect")
        self.on_state_change: Signal[ConnectionStatus] = Signal("on_state_change")

    # -- status -----------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return ConnectionStatus(
            state=self._state,
            reconnect_attempt=self._attempt,
            next_retry_delay=self._next_delay,
            last_error=self._last_error,
        )

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def reconnect_attempt(self) -> int:
        return self._attempt

    @property
    def next_retry_delay(self) -> float:
        return self._next_delay

    @property
    def is_connected(self) -> bool:
        return self._state == TransportState.CONNECTED

    def on(self, event_type: str) -> Signal[Any]:
        """Signal fired with the ``data`` of every pushed frame of ``event_type``."""
        signal = self._channels.get(event_type)
        if signal is None:
            signal = self._channels[event_type] = Signal(event_type)
        return signal

    # -- lifecycle --------------------------------------------------------

    async def connect(self, token: str | None = None) -> None:
        """Open the transport. Errors are raised to the caller.

        A call while another connect or a reconnect sequence is running is
        rejected with ``ConnectInProgressError``.
        """
        token = token or self._latest_token()
        if not token:
            raise ValidationError("An auth token is required to connect")
        if self._state == TransportState.CONNECTED:
            return
        if self._connecting or self._state == TransportState.RECONNECTING:
            raise ConnectInProgressError("A connection attempt is already in progress")

        self._connecting = True
        self._token = token
        generation = self._generation
        try:
            await self._set_state(TransportState.CONNECTING)
            try:
                await self._open(token)
            except AppError as exc:
                self._last_error = str(exc)
                logger.warning("Connect failed: %s", exc)
                if generation == self._generation:
                    await self._set_state(TransportState.DISCONNECTED)
                await self.on_connection_error.emit(
                    ConnectionErrorInfo(attempt=1, next_delay=0.0, error=exc)
                )
                raise
        finally:
            self._connecting = False

        if generation != self._generation:
            await self._transport.close()
            raise NotConnectedError("Connection cancelled by disconnect()")
        await self._opened(reconnected=False)

    async def disconnect(self) -> None:
        """Tear the transport down. Safe to call in any state, any number of times."""
        self._generation += 1
        previous = self._state
        current = asyncio.current_task()
        for task in (self._reconnect_task, self._heartbeat_task, self._reader_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._reconnect_task = self._heartbeat_task = self._reader_task = None

        self._fail_pending(NotConnectedError("Disconnected"))
        await self._transport.close()
        self._attempt = 0
        self._next_delay = 0.0
        self._retry_now.clear()

        if previous != TransportState.DISCONNECTED:
            logger.info("Disconnected by client")
            await self._set_state(TransportState.DISCONNECTED)
            await self.on_disconnect.emit(CLIENT_DISCONNECT)

    async def reconnect(self) -> None:
        """User-triggered retry: skip the backoff wait or start a fresh connect."""
        if self._state == TransportState.RECONNECTING:
            logger.info("Manual reconnect requested (attempt %d)", self._attempt)
            self._retry_now.set()
        elif self._state == TransportState.DISCONNECTED:
            await self.connect()

    # -- messaging --------------------------------------------------------

    async def emit(self, event_type: str, data: Any = None) -> bool:
        """Fire-and-forget send. Returns False when the frame was dropped."""
        if not self.is_connected:
            logger.warning("Cannot emit %s: not connected", event_type)
            return False
        try:
            await self._send(WsFrame(type=event_type, data=data))
        except TransportError:
            logger.warning("Emit of %s failed", event_type, exc_info=True)
            return False
        return True

    async def request(
        self,
        event_type: str,
        data: Any = None,
        *,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        """Send a frame and wait for the matching ``ack`` payload."""
        if not self.is_connected:
            raise NotConnectedError("Transport is not connected")

        request_id = uuid.uuid4().hex
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._send(WsFrame(type=event_type, data=data, id=request_id))
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"No acknowledgement for {event_type} within {timeout}s"
            ) from exc
        finally:
            self._pending.pop(request_id, None)

    # -- internals --------------------------------------------------------

    def _latest_token(self) -> str | None:
        if self._token_provider is not None:
            token = self._token_provider()
            if token:
                return token
        return self._token

    async def _set_state(self, state: TransportState) -> None:
        if state != self._state:
            logger.info("Transport state %s -> %s", self._state, state)
        self._state = state
        await self.on_state_change.emit(self.status)

    async def _open(self, token: str) -> None:
        try:
            await asyncio.wait_for(self._transport.open(token), self._connect_timeout)
        except asyncio.TimeoutError as exc:
            await self._transport.close()
            raise ConnectTimeoutError(
                f"Connection not established within {self._connect_timeout}s"
            ) from exc
        except AppError:
            raise
        except (OSError, TransportClosed) as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    async def _send(self, frame: WsFrame) -> None:
        try:
            await self._transport.send(frame)
        except AppError:
            raise
        except (OSError, TransportClosed) as exc:
            raise TransportError(f"Send of {frame.type} failed: {exc}") from exc

    async def _opened(self, *, reconnected: bool) -> None:
        self._attempt = 0
        self._next_delay = 0.0
        self._last_error = None
        self._retry_now.clear()
        await self._set_state(TransportState.CONNECTED)

        generation = self._generation
        self._reader_task = asyncio.create_task(
            self._read_loop(generation), name="recruit-chat-reader",
        )
        if self._heartbeat_interval:
            self._heartbeat_task = asyncio.create_task(
                self._heartbeat(generation), name="recruit-chat-heartbeat",
            )

        status = self.status
        await self.on_connect.emit(status)
        if reconnected:
            logger.info("Reconnected")
            await self.on_reconnect.emit(status)

    async def _read_loop(self, generation: int) -> None:
        code: int | None = None
        try:
            while True:
                frame = await self._transport.receive()
                await self._dispatch(frame)
        except TransportClosed as exc:
            reason, code = exc.reason, exc.code
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Transport reader failed")
            reason = str(exc) or exc.__class__.__name__

        if generation != self._generation or self._state != TransportState.CONNECTED:
            return
        await self._dropped(reason, code)

    async def _dispatch(self, frame: WsFrame) -> None:
        if frame.is_ack():
            future = self._pending.pop(frame.id, None)  # type: ignore[arg-type]
            if future is not None and not future.done():
                future.set_result(frame.data or {})
            return
        if frame.type == PONG:
            return
        signal = self._channels.get(frame.type)
        if signal is None:
            logger.debug("No subscribers for %s", frame.type)
            return
        await signal.emit(frame.data)

    async def _dropped(self, reason: str, code: int | None) -> None:
        logger.warning("Connection lost: %s", reason)
        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None
        self._fail_pending(TransportError("Connection lost"))
        await self._transport.close()

        if code == AUTH_FAILED_CLOSE_CODE:
            self._last_error = reason
            await self._set_state(TransportState.DISCONNECTED)
            await self.on_disconnect.emit(reason)
            await self.on_connection_error.emit(
                ConnectionErrorInfo(attempt=0, next_delay=0.0, error=AuthenticationError(reason))
            )
            return

        # Published with attempt 1 by the retry loop.
        self._state = TransportState.RECONNECTING
        await self.on_disconnect.emit(reason)
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(self._generation), name="recruit-chat-reconnect",
        )

    async def _reconnect_loop(self, generation: int) -> None:
        while generation == self._generation:
            self._attempt += 1
            self._next_delay = self._backoff.delay(self._attempt)
            self._state = TransportState.RECONNECTING
            await self.on_state_change.emit(self.status)
            await self.on_reconnecting.emit(self._attempt)
            logger.warning(
                "Reconnecting (attempt %d) in %.2fs", self._attempt, self._next_delay,
            )

            await self._wait_retry(self._next_delay)
            if generation != self._generation:
                return

            token = self._latest_token()
            try:
                if not token:
                    raise AuthenticationError("No auth token available")
                await self._open(token)
            except AuthenticationError as exc:
                logger.error("Reconnect rejected: %s", exc)
                self._last_error = str(exc)
                self._attempt = 0
                self._next_delay = 0.0
                await self._set_state(TransportState.DISCONNECTED)
                await self.on_connection_error.emit(
                    ConnectionErrorInfo(attempt=0, next_delay=0.0, error=exc)
                )
                return
            except AppError as exc:
                await self._retry_failed(exc)
                continue
            except Exception as exc:
                logger.exception("Reconnect attempt %d raised", self._attempt)
                await self._retry_failed(
                    TransportError(str(exc) or exc.__class__.__name__)
                )
                continue

            if generation != self._generation:
                await self._transport.close()
                return
            self._reconnect_task = None
            await self._opened(reconnected=True)
            return

    async def _retry_failed(self, exc: AppError) -> None:
        self._last_error = str(exc)
        await self.on_connection_error.emit(
            ConnectionErrorInfo(
                attempt=self._attempt,
                next_delay=self._backoff.delay(self._attempt + 1),
                error=exc,
            )
        )

    async def _wait_retry(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._retry_now.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        self._retry_now.clear()

    async def _heartbeat(self, generation: int) -> None:
        interval = self._heartbeat_interval
        if not interval:
            return
        while True:
            await asyncio.sleep(interval)
            if generation != self._generation or not self.is_connected:
                return
            try:
                await self._transport.send(WsFrame(type=PING))
            except Exception:
                logger.debug("Heartbeat send failed", exc_info=True)
                return

    def _fail_pending(self, exc: Exception) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)
