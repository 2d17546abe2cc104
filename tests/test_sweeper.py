"""
Tests for the housekeeping sweeper.
"""

import asyncio
import os
import time

from pdf_relay_backend.staging import StagingStore
from pdf_relay_backend.sweeper import HousekeepingSweeper


def write_aged(directory, name, age_seconds):
    path = directory / name
    path.write_bytes(b"%PDF-1.4")
    stamp = time.time() - age_seconds
    os.utime(path, (stamp, stamp))
    return path


class TestHousekeepingSweeper:
    """Tests for HousekeepingSweeper."""

    def test_run_once_removes_expired_files(self, staging_dir):
        """One cycle removes files older than the TTL only."""
        store = StagingStore(staging_dir, max_size_mb=1)
        expired = write_aged(staging_dir, "1-aaaa-old.pdf", 45 * 60)
        fresh = write_aged(staging_dir, "2-bbbb-new.pdf", 5 * 60)

        sweeper = HousekeepingSweeper(store, interval_seconds=1800, max_age_seconds=1800)
        removed = asyncio.run(sweeper.run_once())

        assert removed == [expired.name]
        assert fresh.exists()

    def test_run_once_logs_and_swallows_errors(self, staging_dir, monkeypatch):
        """A failing sweep is reported as an empty result, not an exception."""
        store = StagingStore(staging_dir, max_size_mb=1)

        def broken_sweep(max_age_seconds):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(store, "sweep", broken_sweep)
        sweeper = HousekeepingSweeper(store, interval_seconds=1800, max_age_seconds=1800)
        assert asyncio.run(sweeper.run_once()) == []

    def test_loop_sweeps_periodically_until_stopped(self, staging_dir):
        """The background loop keeps sweeping on its interval until stopped."""
        store = StagingStore(staging_dir, max_size_mb=1)
        sweeper = HousekeepingSweeper(store, interval_seconds=0.01, max_age_seconds=60)

        async def scenario():
            sweeper.start()
            assert sweeper.running
            write_aged(staging_dir, "1-aaaa-first.pdf", 120)
            await asyncio.sleep(0.3)
            first_gone = not (staging_dir / "1-aaaa-first.pdf").exists()
            write_aged(staging_dir, "2-bbbb-second.pdf", 120)
            await asyncio.sleep(0.3)
            second_gone = not (staging_dir / "2-bbbb-second.pdf").exists()
            await sweeper.stop()
            return first_gone, second_gone

        assert asyncio.run(scenario()) == (True, True)
        assert not sweeper.running

    def test_stop_without_start(self, staging_dir):
        sweeper = HousekeepingSweeper(StagingStore(staging_dir, max_size_mb=1), 1800, 1800)
        asyncio.run(sweeper.stop())
        assert not sweeper.running
