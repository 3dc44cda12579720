"""
Tests for the command line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from bookingcore import __version__
from bookingcore.cli.app import app

runner = CliRunner()

# 2099-01-05 is a Monday, far enough ahead for past-date checks.
FIXTURES = {
    "doctor_schedules": [
        {
            "id": "sched-1",
            "doctor_id": "dr-a",
            "location_id": "loc-1",
            "day_of_week": 1,
            "start_time": "09:00:00",
            "end_time": "10:00:00",
            "is_active": True,
            "doctor_name": "Dr. Jansen",
        }
    ],
    "appointment_types": [
        {"id": "consult", "name": "Consult", "duration_minutes": 15, "is_active": True}
    ],
    "appointments": [
        {
            "id": "appt-1",
            "patient_id": "p1",
            "doctor_id": "dr-a",
            "appointment_type_id": "consult",
            "scheduled_at": "2099-01-05T09:15:00+01:00",
            "end_time": "2099-01-05T09:30:00+01:00",
            "status": "confirmed",
        }
    ],
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("timezone: Europe/Amsterdam\nlog_level: WARNING\n", encoding="utf-8")
    return path


@pytest.fixture
def fixtures_file(tmp_path):
    path = tmp_path / "practice.json"
    path.write_text(json.dumps(FIXTURES), encoding="utf-8")
    return path


class TestSlotsCommand:
    """Tests for `bookingcore slots`."""

    def test_lists_slots_from_fixtures(self, config_file, fixtures_file):
        result = runner.invoke(
            app,
            ["slots", "2099-01-05", "--type", "consult", "--config", str(config_file), "--fixtures", str(fixtures_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Dr. Jansen" in result.output
        assert "09:45" in result.output
        assert "3 of 4 slot(s) available." in result.output

    def test_day_without_schedules(self, config_file, fixtures_file):
        result = runner.invoke(
            app,
            ["slots", "2099-01-06", "-t", "consult", "-c", str(config_file), "--fixtures", str(fixtures_file)],
        )

        assert result.exit_code == 0, result.output
        assert "No working schedules on 2099-01-06." in result.output

    def test_unknown_type_exits_with_error(self, config_file, fixtures_file):
        result = runner.invoke(
            app,
            ["slots", "2099-01-05", "-t", "surgery", "-c", str(config_file), "--fixtures", str(fixtures_file)],
        )

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_bad_date_exits_with_error(self, config_file, fixtures_file):
        result = runner.invoke(
            app,
            ["slots", "05.01.2099", "-t", "consult", "-c", str(config_file), "--fixtures", str(fixtures_file)],
        )

        assert result.exit_code == 1
        assert "Could not parse date" in result.output

    def test_store_section_required_without_fixtures(self, config_file):
        result = runner.invoke(app, ["slots", "2099-01-05", "-t", "consult", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "no 'store' section" in result.output


class TestSeriesCommand:
    """Tests for `bookingcore series`."""

    def test_weekly_preview(self, config_file):
        result = runner.invoke(
            app,
            ["series", "2025-01-06 18:00", "2025-01-06 19:30", "--repeat", "weekly", "--until", "2025-01-27", "-c", str(config_file)],
        )

        assert result.exit_code == 0, result.output
        assert "27.01.2025" in result.output
        assert "3 recurring session(s) after the first." in result.output

    def test_non_recurring_preview(self, config_file):
        result = runner.invoke(
            app,
            ["series", "2025-01-06 18:00", "2025-01-06 19:30", "-r", "none", "-c", str(config_file)],
        )

        assert result.exit_code == 0, result.output
        assert "only the first session is created" in result.output

    def test_missing_end_date(self, config_file):
        result = runner.invoke(
            app,
            ["series", "2025-01-06 18:00", "2025-01-06 19:30", "-r", "monthly", "-c", str(config_file)],
        )

        assert result.exit_code == 1
        assert "end date" in result.output

    def test_unknown_recurrence(self, config_file):
        result = runner.invoke(
            app,
            ["series", "2025-01-06 18:00", "2025-01-06 19:30", "-r", "yearly", "-u", "2025-02-01", "-c", str(config_file)],
        )

        assert result.exit_code == 1
        assert "Unknown recurrence type" in result.output


class TestBookCommand:
    """Tests for `bookingcore book`."""

    def test_books_free_time(self, config_file, fixtures_file):
        result = runner.invoke(
            app,
            ["book", "2099-01-05 09:30", "-p", "p2", "-t", "consult", "--doctor", "dr-a", "-c", str(config_file), "--fixtures", str(fixtures_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Booked" in result.output
        assert "09:30 - 09:45" in result.output

    def test_conflict_is_reported(self, config_file, fixtures_file):
        result = runner.invoke(
            app,
            ["book", "2099-01-05 09:10", "-p", "p2", "-t", "consult", "--doctor", "dr-a", "-c", str(config_file), "--fixtures", str(fixtures_file)],
        )

        assert result.exit_code == 1
        assert "Not booked" in result.output


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.output
