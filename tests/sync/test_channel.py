"""
Tests for the host/follower sync channel over the loopback transport.
"""

import asyncio

import pytest

from skirmish.combat.state_machine import CombatStateMachine
from skirmish.core.config import SyncSettings
from skirmish.core.constants import CombatPhase
from skirmish.core.error_handling import ErrorKind
from skirmish.sync.channel import LinkMode, SyncFollower, SyncHost
from skirmish.sync.transport import LoopbackAir, LoopbackTransport
from skirmish.sync.wire import encode_snapshot


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(poll_interval=0.01, scan_timeout=0.1)


@pytest.fixture
def air() -> LoopbackAir:
    return LoopbackAir()


@pytest.fixture
def host(air, settings, notices, machine) -> SyncHost:
    host = SyncHost(LoopbackTransport(air, "narrator", "Narrator"), settings, notices)
    host.attach(machine)
    return host


@pytest.fixture
def follower(air, settings, notices) -> SyncFollower:
    return SyncFollower(LoopbackTransport(air, "player-1", "Player"), settings, notices)


async def _host_combat(host: SyncHost, machine: CombatStateMachine, roster) -> None:
    machine.start(roster)
    await host.flush()


async def _join(follower: SyncFollower) -> None:
    hosts = await follower.scan()
    assert [device.id for device in hosts] == ["narrator"]
    assert await follower.connect(hosts[0].id)


# ============================================================================
# HOST
# ============================================================================


@pytest.mark.asyncio
async def test_follower_mirrors_the_host(host, follower, machine, roster):
    await _host_combat(host, machine, roster)
    assert host.mode == LinkMode.HOSTING
    assert host.writes == 1

    await _join(follower)
    assert follower.mode == LinkMode.FOLLOWING
    assert await follower.poll_once()
    assert follower.machine.snapshot == machine.snapshot

    # An unchanged state is not applied twice.
    assert not await follower.poll_once()
    assert follower.applied == 1

    machine.resolve_attack("hero", "goblin")
    await host.flush()
    assert await follower.poll_once()
    assert follower.machine.snapshot.find("goblin").hp == 1

    await follower.disconnect()
    await host.close()


@pytest.mark.asyncio
async def test_only_the_latest_state_is_written(host, follower, machine, roster):
    await _host_combat(host, machine, roster)
    for _ in range(3):
        machine.next_turn()
    await host.flush()

    assert host.writes == 2
    await _join(follower)
    await follower.poll_once()
    assert follower.machine.snapshot.acting.id == "hero"
    assert follower.machine.snapshot.round == 2

    await host.close()


@pytest.mark.asyncio
async def test_unavailable_adapter_keeps_the_combat_local(host, machine, roster, notices):
    host.transport.available = False
    await _host_combat(host, machine, roster)

    assert host.mode == LinkMode.DISCONNECTED
    assert len(notices.of_kind(ErrorKind.TRANSPORT_FAILURE)) == 1
    assert machine.resolve_attack("hero", "goblin").ok
    assert machine.snapshot.find("goblin").hp == 1


@pytest.mark.asyncio
async def test_write_failure_disconnects_the_host(host, machine, roster, notices):
    await _host_combat(host, machine, roster)
    host.transport.fail_writes = True

    machine.next_turn()
    await host.flush()

    assert host.mode == LinkMode.DISCONNECTED
    assert len(notices.of_kind(ErrorKind.TRANSPORT_FAILURE)) == 1
    assert machine.is_active


@pytest.mark.asyncio
async def test_reset_closes_the_endpoint(host, follower, air, machine, roster):
    await _host_combat(host, machine, roster)
    assert "narrator" in air.endpoints

    machine.reset()
    await host.close()
    assert host.mode == LinkMode.OFFLINE
    assert "narrator" not in air.endpoints
    assert await follower.scan() == []

    # The next combat opens the endpoint again.
    await _host_combat(host, machine, roster)
    assert host.mode == LinkMode.HOSTING
    assert "narrator" in air.endpoints

    await host.close()


def test_host_without_event_loop_plays_locally(host, machine, roster, notices):
    assert machine.start(roster).ok

    assert host.mode == LinkMode.DISCONNECTED
    assert len(notices.of_kind(ErrorKind.TRANSPORT_FAILURE)) == 1
    assert machine.next_turn().ok


def test_only_writable_machines_can_be_hosted(air, settings, notices):
    host = SyncHost(LoopbackTransport(air, "narrator"), settings, notices)

    with pytest.raises(ValueError):
        host.attach(CombatStateMachine(read_only=True, notices=notices))


# ============================================================================
# FOLLOWER
# ============================================================================


@pytest.mark.asyncio
async def test_nothing_published_yet(air, settings, follower):
    transport = LoopbackTransport(air, "narrator")
    await transport.initialize()
    await transport.start_server(settings.service_id, settings.characteristic_id)

    await _join(follower)
    assert not await follower.poll_once()
    assert follower.polls == 1
    assert follower.machine.snapshot is None


@pytest.mark.asyncio
async def test_malformed_update_keeps_the_previous_state(host, follower, air, machine, roster, notices):
    await _host_combat(host, machine, roster)
    await _join(follower)
    await follower.poll_once()
    before = follower.machine.snapshot

    air.endpoint("narrator").value = b'{"round": 1}'
    assert not await follower.poll_once()

    assert follower.machine.snapshot is before
    assert follower.discarded == 1
    assert len(notices.of_kind(ErrorKind.MALFORMED_PAYLOAD)) == 1

    await host.close()


def test_apply_payload_mirrors_the_outcome(follower, machine, roster):
    outcomes = []
    follower.machine.on_resolved(lambda m: outcomes.append(m.phase))
    machine.start(roster)
    machine.apply_area_damage(["goblin", "orc"], 50)

    assert follower.apply_payload(encode_snapshot(machine.snapshot))
    assert follower.machine.phase == CombatPhase.VICTORY
    assert outcomes == [CombatPhase.VICTORY]


@pytest.mark.asyncio
async def test_polling_runs_until_stopped(host, follower, machine, roster, notices):
    follower.start_polling()
    assert not follower.is_polling
    assert len(notices.of_kind(ErrorKind.INVALID_ACTION)) == 1

    await _host_combat(host, machine, roster)
    await _join(follower)
    follower.start_polling()
    assert follower.is_polling
    await asyncio.sleep(0.05)

    assert follower.polls >= 2
    assert follower.applied == 1
    assert follower.machine.snapshot == machine.snapshot

    follower.stop_polling()
    assert not follower.is_polling
    await follower.disconnect()
    assert follower.mode == LinkMode.OFFLINE
    await host.close()


@pytest.mark.asyncio
async def test_read_failure_stops_polling(host, follower, machine, roster, notices):
    await _host_combat(host, machine, roster)
    await _join(follower)
    follower.transport.fail_reads = True

    follower.start_polling()
    await asyncio.sleep(0.02)

    assert follower.mode == LinkMode.DISCONNECTED
    assert not follower.is_polling
    assert len(notices.of_kind(ErrorKind.TRANSPORT_FAILURE)) == 1

    await host.close()


@pytest.mark.asyncio
async def test_connecting_to_an_unknown_host_fails(follower, notices):
    assert not await follower.connect("ghost")

    assert follower.mode == LinkMode.DISCONNECTED
    assert len(notices.of_kind(ErrorKind.TRANSPORT_FAILURE)) == 1


def test_follower_needs_a_read_only_machine(air, settings, notices):
    with pytest.raises(ValueError):
        SyncFollower(LoopbackTransport(air, "player-1"), settings, notices, CombatStateMachine())
