"""
Sync channel between the narrator's device and the players' devices.

One device hosts the combat: its SyncHost watches the writable state machine
and, after every change, writes the whole encoded snapshot to the advertised
characteristic. Followers never write back. A SyncFollower reads the same
characteristic on a fixed interval and replaces its read-only mirror with
what it reads. States the host holds for less than one poll interval may
never reach a follower; the latest state always does.

Transport failures never stop a combat: they are reported on the notice board
and the channel drops to DISCONNECTED, leaving the host playing locally.
"""

import asyncio
from typing import Any

from catchery import log_debug, log_warning

from skirmish.combat.snapshot import CombatSnapshot
from skirmish.combat.state_machine import CombatStateMachine
from skirmish.core.config import SyncSettings
from skirmish.core.constants import CombatPhase, NiceEnum
from skirmish.core.error_handling import (
    NOTICE_BOARD,
    ErrorKind,
    ErrorSeverity,
    MalformedPayloadError,
    NoticeBoard,
    TransportError,
)
from skirmish.core.logging import get_logger
from skirmish.sync.transport import DeviceInfo, Transport
from skirmish.sync.wire import decode_snapshot, encode_snapshot

logger = get_logger(__name__)


class LinkMode(NiceEnum):
    """State of a device's link."""

    OFFLINE = "OFFLINE"
    CONNECTING = "CONNECTING"
    HOSTING = "HOSTING"
    FOLLOWING = "FOLLOWING"
    DISCONNECTED = "DISCONNECTED"

    @property
    def color(self) -> str:
        return {
            LinkMode.OFFLINE: "dim white",
            LinkMode.CONNECTING: "yellow",
            LinkMode.HOSTING: "bold green",
            LinkMode.FOLLOWING: "bold cyan",
            LinkMode.DISCONNECTED: "bold red",
        }.get(self, "dim white")

    @property
    def colored_name(self) -> str:
        return f"[{self.color}]{self.display_name}[/]"


class _Link:
    """Shared plumbing of host and follower."""

    def __init__(
        self,
        transport: Transport,
        settings: SyncSettings | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.transport = transport
        self.settings = settings or SyncSettings()
        self.notices = notices or NOTICE_BOARD
        self.mode = LinkMode.OFFLINE

    def _fail(self, message: str, error: Exception | None, **context: Any) -> None:
        self.mode = LinkMode.DISCONNECTED
        self.notices.handle(
            message,
            ErrorKind.TRANSPORT_FAILURE,
            ErrorSeverity.HIGH,
            context,
            error,
        )


class SyncHost(_Link):
    """Publishes the narrator's combat state.

    The endpoint opens when the attached machine enters an active combat and
    closes on reset. Writes run in a background task; when the machine changes
    faster than the transport writes, only the newest snapshot is sent.
    """

    def __init__(
        self,
        transport: Transport,
        settings: SyncSettings | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        super().__init__(transport, settings, notices)
        self.machine: CombatStateMachine | None = None
        self.writes = 0
        self._pending: bytes | None = None
        self._writing = False
        self._wakeup = asyncio.Event()
        self._starter: asyncio.Task | None = None
        self._writer: asyncio.Task | None = None
        self._teardown: asyncio.Task | None = None

    # ============================================================================
    # MACHINE HOOK
    # ============================================================================

    def attach(self, machine: CombatStateMachine) -> None:
        """Publishes every future change of the given machine."""
        if machine.read_only:
            raise ValueError("Only a writable state machine can be hosted")
        self.machine = machine
        machine.subscribe(self._on_change)

    def _on_change(self, machine: CombatStateMachine) -> None:
        if machine.phase == CombatPhase.NOT_STARTED:
            if self.mode != LinkMode.OFFLINE:
                self.stop()
            return
        if self.mode == LinkMode.OFFLINE:
            self._start_in_background()
        if self.mode in (LinkMode.CONNECTING, LinkMode.HOSTING) and machine.snapshot:
            self.publish(machine.snapshot)

    def _start_in_background(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._fail("No event loop to run the combat channel, playing locally.", None)
            return
        self.mode = LinkMode.CONNECTING
        self._starter = loop.create_task(self.start())

    # ============================================================================
    # LIFECYCLE
    # ============================================================================

    async def start(self) -> bool:
        """
        Opens the broadcast endpoint and starts the writer task.

        Returns:
            bool: Whether the endpoint is up.

        """
        self.mode = LinkMode.CONNECTING
        try:
            await self.transport.initialize()
            await self.transport.start_server(
                self.settings.service_id,
                self.settings.characteristic_id,
            )
        except TransportError as e:
            self._fail("Could not open the combat channel, playing locally.", e)
            return False
        if self.mode != LinkMode.CONNECTING:
            # Stopped while the endpoint was opening.
            await self.transport.stop_server()
            return False
        self.mode = LinkMode.HOSTING
        self._writer = asyncio.get_running_loop().create_task(self._pump())
        if self._pending is not None:
            self._wakeup.set()
        log_debug("Combat channel open.", {"service_id": self.settings.service_id})
        return True

    def publish(self, snapshot: CombatSnapshot) -> None:
        """Queues a snapshot for writing, replacing any snapshot not yet written."""
        self._pending = encode_snapshot(snapshot)
        self._wakeup.set()

    async def _pump(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            payload, self._pending = self._pending, None
            if payload is None:
                continue
            self._writing = True
            try:
                await self.transport.write(
                    self.settings.service_id,
                    self.settings.characteristic_id,
                    payload,
                )
            except TransportError as e:
                self._fail("Lost the combat channel, playing locally.", e)
                return
            finally:
                self._writing = False
            self.writes += 1

    async def flush(self) -> None:
        """Waits until every queued snapshot has been written."""
        if self._starter is not None and not self._starter.done():
            await asyncio.wait({self._starter})
        while self.mode == LinkMode.HOSTING and (self._pending is not None or self._writing):
            await asyncio.sleep(0)

    def stop(self) -> None:
        """
        Tears the endpoint down.

        Cancels the background tasks right away; closing the endpoint itself is
        scheduled on the running loop, and close() waits for it.
        """
        for task in (self._starter, self._writer):
            if task is not None and not task.done():
                task.cancel()
        self._starter = None
        self._writer = None
        self._pending = None
        self._wakeup.clear()
        self.mode = LinkMode.OFFLINE
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log_debug("No running loop, the endpoint is left to the transport.")
            return
        self._teardown = loop.create_task(self._stop_server())

    async def _stop_server(self) -> None:
        try:
            await self.transport.stop_server()
        except TransportError as e:
            log_warning("Could not close the combat channel.", {"error": str(e)}, e)

    async def close(self) -> None:
        """Stops hosting and waits until the endpoint is closed."""
        self.stop()
        if self._teardown is not None:
            await self._teardown
            self._teardown = None


class SyncFollower(_Link):
    """Mirrors the combat hosted by another device."""

    def __init__(
        self,
        transport: Transport,
        settings: SyncSettings | None = None,
        notices: NoticeBoard | None = None,
        machine: CombatStateMachine | None = None,
    ) -> None:
        super().__init__(transport, settings, notices)
        self.machine = machine or CombatStateMachine(read_only=True, notices=self.notices)
        if not self.machine.read_only:
            raise ValueError("A follower needs a read-only state machine")
        self.host_id: str | None = None
        self.polls = 0
        self.applied = 0
        self.discarded = 0
        self._poller: asyncio.Task | None = None

    @property
    def is_polling(self) -> bool:
        return self._poller is not None and not self._poller.done()

    async def scan(self) -> list[DeviceInfo]:
        """Looks for devices hosting a combat."""
        try:
            await self.transport.initialize()
            return await self.transport.scan(self.settings.service_id, self.settings.scan_timeout)
        except TransportError as e:
            self._fail("Could not look for the narrator's device.", e)
            return []

    async def connect(self, host_id: str) -> bool:
        """
        Connects to a host. Polling starts separately, with start_polling().

        Args:
            host_id (str): The host device id.

        Returns:
            bool: Whether the connection is up.

        """
        self.mode = LinkMode.CONNECTING
        try:
            await self.transport.initialize()
            await self.transport.connect(host_id)
        except TransportError as e:
            self._fail(f"Could not connect to {host_id}.", e, host_id=host_id)
            return False
        self.host_id = host_id
        self.mode = LinkMode.FOLLOWING
        return True

    def start_polling(self) -> None:
        """Starts the poll timer. Must be called from a running event loop."""
        if self.mode != LinkMode.FOLLOWING:
            self.notices.handle(
                "Connect to a narrator before following the combat.",
                ErrorKind.INVALID_ACTION,
                ErrorSeverity.LOW,
                {"mode": str(self.mode)},
            )
            return
        if self.is_polling:
            return
        self._poller = asyncio.get_running_loop().create_task(self._poll_loop())

    def stop_polling(self) -> None:
        if self._poller is not None and not self._poller.done():
            self._poller.cancel()
        self._poller = None

    async def _poll_loop(self) -> None:
        while self.mode == LinkMode.FOLLOWING:
            await self.poll_once()
            if self.mode != LinkMode.FOLLOWING:
                return
            await asyncio.sleep(self.settings.poll_interval)

    async def poll_once(self) -> bool:
        """
        Reads the host's characteristic once.

        Returns:
            bool: Whether the local mirror changed.

        """
        try:
            payload = await self.transport.read(
                self.settings.service_id,
                self.settings.characteristic_id,
            )
        except TransportError as e:
            self._fail("Lost the connection to the narrator.", e, host_id=self.host_id)
            return False
        self.polls += 1
        if not payload:
            logger.debug("Nothing published yet")
            return False
        return self.apply_payload(payload)

    def apply_payload(self, payload: bytes) -> bool:
        """
        Replaces the local mirror with a received snapshot.

        A payload that cannot be decoded is discarded and the current mirror
        is kept.

        Args:
            payload (bytes): The received bytes.

        Returns:
            bool: Whether the local mirror changed.

        """
        try:
            snapshot = decode_snapshot(payload)
        except MalformedPayloadError as e:
            self.discarded += 1
            self.notices.handle(
                "Discarded a malformed combat update.",
                ErrorKind.MALFORMED_PAYLOAD,
                ErrorSeverity.MEDIUM,
                {"size": len(payload)},
                e,
            )
            return False
        if snapshot == self.machine.snapshot:
            return False
        self.machine.mirror(snapshot)
        self.applied += 1
        return True

    async def disconnect(self) -> None:
        """Stops polling and drops the connection."""
        self.stop_polling()
        try:
            await self.transport.disconnect()
        except TransportError as e:
            log_warning("Could not disconnect cleanly.", {"host_id": self.host_id}, e)
        self.host_id = None
        self.mode = LinkMode.OFFLINE
