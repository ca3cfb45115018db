"""Unit tests for the map location signal race."""

import sys
from pathlib import Path

# Add parent directory to path to import project modules
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio

import pytest
from schools.location import (
    GEOCODE,
    MAP_MOVED,
    MARKER,
    STATIC_CENTER,
    LocationSignalRace,
    as_latlng,
    parse_nominatim_body,
)

START = (51.5, -0.12)


class ScriptedProbe:
    """Returns one scripted map state per poll, repeating the last."""

    def __init__(self, states):
        self.states = states
        self.calls = 0

    async def __call__(self):
        state = self.states[min(self.calls, len(self.states) - 1)]
        self.calls += 1
        return state


async def no_sleep(seconds):
    return None


def race(states, **kwargs):
    probe = ScriptedProbe(states)
    kwargs.setdefault("sleep", no_sleep)
    return LocationSignalRace(probe, **kwargs), probe


class TestHelpers:
    def test_parse_nominatim(self):
        body = '[{"lat": "51.5034", "lon": "-0.1276", "display_name": "Downing Street"}]'
        assert parse_nominatim_body(body) == (51.5034, -0.1276)

    def test_parse_nominatim_jsonp(self):
        assert parse_nominatim_body('cb([{"lat": "1.5", "lon": "2.5"}])') == (1.5, 2.5)

    def test_parse_nominatim_empty(self):
        assert parse_nominatim_body("[]") is None
        assert parse_nominatim_body("") is None

    def test_as_latlng(self):
        assert as_latlng({"lat": 1, "lng": 2}) == (1.0, 2.0)
        assert as_latlng({"lat": 1}) is None
        assert as_latlng(None) is None


class TestLocationSignalRace:
    """Test signal priority and the poll budget."""

    def test_marker_wins(self):
        runner, _ = race([{"marker": None, "center": {"lat": 51.5, "lng": -0.12}},
                          {"marker": {"lat": 51.51, "lng": -0.13}, "center": {"lat": 51.6, "lng": -0.2}}])
        signal = asyncio.run(runner.run(START))
        assert signal.source == MARKER
        assert (signal.lat, signal.lng) == (51.51, -0.13)
        assert signal.iteration == 2

    def test_moved_center(self):
        runner, _ = race([{"marker": None, "center": {"lat": 51.52, "lng": -0.12}}])
        signal = asyncio.run(runner.run(START))
        assert signal.source == MAP_MOVED
        assert signal.iteration == 1

    def test_unknown_start_center_counts_any_real_center_as_moved(self):
        runner, probe = race([{"marker": None, "center": None}, {"marker": None, "center": {"lat": 51.5, "lng": -0.12}}])
        signal = asyncio.run(runner.run(None))
        assert signal.source == MAP_MOVED
        assert signal.iteration == 2
        assert probe.calls == 2

    def test_tiny_drift_is_not_a_move(self):
        runner, _ = race([{"marker": None, "center": {"lat": 51.50005, "lng": -0.12}}], iterations=3)
        assert asyncio.run(runner.run(START)) is None

    def test_static_center_accepted_late(self):
        runner, probe = race([{"marker": None, "center": {"lat": 51.5, "lng": -0.12}}])
        signal = asyncio.run(runner.run(START))
        assert signal.source == STATIC_CENTER
        assert signal.iteration == 11
        assert probe.calls == 11

    def test_zero_center_never_accepted(self):
        runner, _ = race([{"marker": None, "center": {"lat": 0, "lng": 0}}])
        assert asyncio.run(runner.run((0.0, 0.0))) is None
        assert runner.resolved

    def test_geocode_beats_probe(self):
        runner, probe = race([{"marker": {"lat": 1, "lng": 1}, "center": None}])
        runner.offer_geocode(51.503, -0.127)
        signal = asyncio.run(runner.run(START))
        assert signal.source == GEOCODE
        assert probe.calls == 0

    def test_geocode_arriving_mid_race(self):
        holder = {}

        async def sleep(seconds):
            if holder.get("polls", 0) == 2:
                holder["runner"].offer_geocode(52.0, -1.0)
            holder["polls"] = holder.get("polls", 0) + 1

        runner, probe = race([{"marker": None, "center": None}], sleep=sleep)
        holder["runner"] = runner
        signal = asyncio.run(runner.run(START))
        assert signal.source == GEOCODE
        assert signal.iteration == 3
        assert probe.calls == 2

    def test_late_geocode_ignored(self):
        runner, _ = race([{"marker": {"lat": 1, "lng": 2}}])
        asyncio.run(runner.run(START))
        runner.offer_geocode(9.0, 9.0)
        assert runner._geocoded is None

    def test_exhaustion(self):
        runner, probe = race([{}], iterations=5)
        assert asyncio.run(runner.run(START)) is None
        assert probe.calls == 5
