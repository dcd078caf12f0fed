"""Tests for keep-alive comment frames."""

from __future__ import annotations

import asyncio

import pytest

from turnstream.streaming.heartbeat import Heartbeat
from turnstream.streaming.protocol import ProtocolWriter
from turnstream.streaming.transport import SSEChannel

from .conftest import collect_frames


class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_ping_count_tracks_elapsed_time(self):
        channel = SSEChannel()
        heartbeat = Heartbeat(ProtocolWriter(channel), interval=0.02)

        heartbeat.start()
        assert heartbeat.running
        await asyncio.sleep(0.11)
        await heartbeat.stop()
        channel.close()

        frames = await collect_frames(channel)
        # 0.11s / 0.02s = 5.5 beats, allow one either way plus scheduler jitter
        assert 3 <= len(frames) <= 6
        assert set(frames) == {": ping\n\n"}
        assert heartbeat.beats == len(frames)

    @pytest.mark.asyncio
    async def test_no_pings_after_stop(self):
        channel = SSEChannel()
        heartbeat = Heartbeat(ProtocolWriter(channel), interval=0.01)

        heartbeat.start()
        await heartbeat.stop()
        beats = heartbeat.beats
        await asyncio.sleep(0.05)

        assert heartbeat.beats == beats
        assert not heartbeat.running

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        heartbeat = Heartbeat(ProtocolWriter(SSEChannel()), interval=1.0)
        await heartbeat.stop()
        assert heartbeat.beats == 0

    @pytest.mark.asyncio
    async def test_start_twice_runs_one_loop(self):
        channel = SSEChannel()
        heartbeat = Heartbeat(ProtocolWriter(channel), interval=0.02)

        heartbeat.start()
        heartbeat.start()
        await asyncio.sleep(0.05)
        await heartbeat.stop()

        assert heartbeat.beats <= 3
