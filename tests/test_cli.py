"""
Tests for the Typer CLI.
"""

import json

import pytest
from typer.testing import CliRunner

from chargeslot import __version__
from chargeslot.cli.app import app

runner = CliRunner()

# Far enough in the future that no slot has passed; no operating hours are
# configured, so the station is open around the clock.
FUTURE_DATE = "2099-06-01"


@pytest.fixture
def config_file(tmp_path):
    data_file = tmp_path / "reservations.json"
    data_file.write_text(
        json.dumps(
            [
                {"stationId": "ktm-01", "portId": "p1", "bookingId": "BK-1", "startTime": "09:00", "endTime": "10:00"},
                {"stationId": "ktm-01", "portId": "p1", "bookingId": "BK-2", "startTime": "18:00", "endTime": "17:00"},
            ]
        ),
        encoding="utf-8",
    )

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                'timezone: "+05:45"',
                "mock_data_file: reservations.json",
                "stations:",
                "  - id: ktm-01",
                "    name: Kathmandu",
                "    ports:",
                "      - {id: p1, number: 1, connector_type: CCS2}",
                "      - {id: p2, number: 2, is_operational: false}",
            ]
        ),
        encoding="utf-8",
    )
    return config_path


def test_slots_command(config_file):
    result = runner.invoke(
        app,
        ["slots", "ktm-01", "--port", "p1", "--date", FUTURE_DATE, "--mock", "--config", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "274/288 slots available" in result.output
    assert "1 malformed reservation(s) ignored" in result.output
    assert "10:05" in result.output
    assert "09:30" not in result.output


def test_slots_command_all_includes_booked(config_file):
    result = runner.invoke(
        app,
        ["slots", "ktm-01", "--date", FUTURE_DATE, "--mock", "--all", "--config", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "booked" in result.output
    assert "Port 2" not in result.output


def test_durations_command(config_file):
    result = runner.invoke(
        app,
        ["durations", "ktm-01", "08:00", "--date", FUTURE_DATE, "--mock", "--config", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "30m, 55m (max)" in result.output


def test_durations_for_blocked_start(config_file):
    result = runner.invoke(
        app,
        ["durations", "ktm-01", "09:30", "--date", FUTURE_DATE, "--mock", "--config", str(config_file)],
    )

    assert result.exit_code == 0, result.output
    assert "not bookable" in result.output


def test_unknown_station_exits_with_error(config_file):
    result = runner.invoke(app, ["slots", "nope", "--mock", "--config", str(config_file)])

    assert result.exit_code == 1
    assert "Unknown station" in result.output


def test_stations_command(config_file):
    result = runner.invoke(app, ["stations", "--config", str(config_file)])

    assert result.exit_code == 0, result.output
    assert "ktm-01" in result.output
    assert "1/2" in result.output


def test_version_command():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output
