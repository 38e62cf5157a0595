"""
Transport module for the sync channel.

The engine sees the short-range link only as an opaque byte channel keyed by
a service id and a characteristic id. Transport is the seam a real radio
driver implements; LoopbackTransport is an in-memory implementation where
every device attached to the same LoopbackAir can see each other.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

from skirmish.core.error_handling import TransportError
from skirmish.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DeviceInfo:
    """A device found while scanning."""

    id: str
    name: str

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class Transport(Protocol):
    """Connection primitive used by the sync channel.

    Every method raises TransportError when the operation fails.
    """

    async def initialize(self) -> None:
        """Powers up the adapter."""
        ...

    async def scan(self, service_id: str, timeout: float) -> list[DeviceInfo]:
        """Returns the devices advertising the given service."""
        ...

    async def connect(self, device_id: str) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    async def start_server(self, service_id: str, characteristic_id: str) -> None:
        """Advertises a service exposing one readable characteristic."""
        ...

    async def stop_server(self) -> None:
        ...

    async def write(self, service_id: str, characteristic_id: str, data: bytes) -> None:
        """Sets the value of a characteristic."""
        ...

    async def read(self, service_id: str, characteristic_id: str) -> bytes:
        """Reads the value of a characteristic of the connected device."""
        ...


@dataclass
class _Endpoint:
    name: str
    service_id: str
    characteristic_id: str
    value: bytes = b""


@dataclass
class LoopbackAir:
    """The shared medium of the loopback transports."""

    endpoints: dict[str, _Endpoint] = field(default_factory=dict)

    def endpoint(self, device_id: str) -> _Endpoint:
        endpoint = self.endpoints.get(device_id)
        if endpoint is None:
            raise TransportError(f"Device {device_id} is not reachable")
        return endpoint


class LoopbackTransport:
    """
    In-memory transport.

    Attributes:
        available (bool):
            When False, initialize() fails as if the adapter were off.
        latency (float):
            Seconds every operation waits before completing.
        fail_writes (bool):
            When True, write() fails.
        fail_reads (bool):
            When True, read() fails.

    """

    def __init__(
        self,
        air: LoopbackAir,
        device_id: str,
        name: str | None = None,
        latency: float = 0.0,
    ) -> None:
        self.air = air
        self.device_id = device_id
        self.name = name or device_id
        self.latency = latency
        self.available = True
        self.fail_writes = False
        self.fail_reads = False
        self.peer_id: str | None = None
        self._ready = False
        self._serving = False

    async def _wait(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    def _require_ready(self) -> None:
        if not self._ready:
            raise TransportError("Transport not initialized")

    async def initialize(self) -> None:
        await self._wait()
        if not self.available:
            raise TransportError(f"No adapter available on {self.name}")
        self._ready = True

    async def scan(self, service_id: str, timeout: float) -> list[DeviceInfo]:
        self._require_ready()
        await asyncio.sleep(min(self.latency, timeout))
        return [
            DeviceInfo(id=device_id, name=endpoint.name)
            for device_id, endpoint in self.air.endpoints.items()
            if endpoint.service_id == service_id and device_id != self.device_id
        ]

    async def connect(self, device_id: str) -> None:
        self._require_ready()
        await self._wait()
        self.air.endpoint(device_id)
        self.peer_id = device_id
        logger.debug("%s connected to %s", self.name, device_id)

    async def disconnect(self) -> None:
        self.peer_id = None

    async def start_server(self, service_id: str, characteristic_id: str) -> None:
        self._require_ready()
        await self._wait()
        self.air.endpoints[self.device_id] = _Endpoint(
            name=self.name,
            service_id=service_id,
            characteristic_id=characteristic_id,
        )
        self._serving = True
        logger.debug("%s advertises %s", self.name, service_id)

    async def stop_server(self) -> None:
        self.air.endpoints.pop(self.device_id, None)
        self._serving = False

    def _target(self, service_id: str, characteristic_id: str) -> _Endpoint:
        if self._serving:
            device_id = self.device_id
        elif self.peer_id is not None:
            device_id = self.peer_id
        else:
            raise TransportError(f"{self.name} is neither serving nor connected")
        endpoint = self.air.endpoint(device_id)
        if (endpoint.service_id, endpoint.characteristic_id) != (service_id, characteristic_id):
            raise TransportError(f"Unknown characteristic {service_id}/{characteristic_id}")
        return endpoint

    async def write(self, service_id: str, characteristic_id: str, data: bytes) -> None:
        await self._wait()
        if self.fail_writes:
            raise TransportError(f"Write failed on {self.name}")
        self._target(service_id, characteristic_id).value = bytes(data)

    async def read(self, service_id: str, characteristic_id: str) -> bytes:
        await self._wait()
        if self.fail_reads:
            raise TransportError(f"Read failed on {self.name}")
        return self._target(service_id, characteristic_id).value
