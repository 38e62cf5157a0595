"""
One-way replication of the combat state from the narrator to the players.
"""

from skirmish.sync.channel import LinkMode, SyncFollower, SyncHost
from skirmish.sync.transport import DeviceInfo, LoopbackAir, LoopbackTransport, Transport
from skirmish.sync.wire import decode_snapshot, encode_snapshot

__all__ = [
    "DeviceInfo",
    "LinkMode",
    "LoopbackAir",
    "LoopbackTransport",
    "SyncFollower",
    "SyncHost",
    "Transport",
    "decode_snapshot",
    "encode_snapshot",
]
