"""Tests for DAL persistence models."""

import pytest
from pydantic import ValidationError

from shared.dal.models import GameRecord, GameStatus, GuessRecord, QueuedRecord
from shared.tests.factories import make_guesses, make_record


class TestGuessRecord:
    def test_match_count_cannot_exceed_code_length(self):
        with pytest.raises(ValidationError, match="exceeds code length"):
            GuessRecord(turn_number=1, guess_value="1234", match_count=5, timestamp_ms=0, elapsed_since_start_ms=0)

    def test_rejects_non_digit_guess(self):
        with pytest.raises(ValidationError):
            GuessRecord(turn_number=1, guess_value="12a4", match_count=0, timestamp_ms=0, elapsed_since_start_ms=0)


class TestGameRecord:
    def test_status_derived_from_completed(self):
        assert make_record(completed=True).status is GameStatus.COMPLETED
        assert make_record(completed=False).status is GameStatus.ABANDONED

    def test_supplied_status_is_ignored(self):
        wire = make_record(completed=False).to_wire()
        wire["status"] = "completed"

        assert GameRecord.model_validate(wire).status is GameStatus.ABANDONED

    def test_wire_format_uses_flat_field_names(self):
        wire = make_record(guess_history=make_guesses(["5678", "1234"], "1234")).to_wire()

        assert wire["status"] == "completed"
        assert wire["session_id"] == "session_1768478400000_abc123def"
        assert wire["game_started_at"] == "2026-01-15T12:00:00Z"
        assert wire["guess_history"][1] == {
            "turn_number": 2,
            "guess_value": "1234",
            "match_count": 4,
            "timestamp_ms": 1768478410000,
            "elapsed_since_start_ms": 10000,
        }

    def test_rejects_completed_and_abandoned_together(self):
        with pytest.raises(ValidationError, match="either completed or abandoned"):
            make_record(completed=True, abandoned=True)

    def test_rejects_neither_completed_nor_abandoned(self):
        with pytest.raises(ValidationError, match="either completed or abandoned"):
            make_record(completed=False, abandoned=False, abandon_reason=None)

    def test_abandoned_game_cannot_score(self):
        with pytest.raises(ValidationError, match="score 0"):
            make_record(completed=False, score=100)

    def test_abandoned_game_hides_secret(self):
        with pytest.raises(ValidationError, match="only recorded for completed"):
            make_record(completed=False, secret_code="1234")

    def test_abandon_reason_requires_abandoned(self):
        with pytest.raises(ValidationError, match="abandon_reason"):
            make_record(completed=True, abandon_reason="user_quit")

    @pytest.mark.parametrize("difficulty", [3, 8])
    def test_difficulty_bounds(self, difficulty):
        with pytest.raises(ValidationError):
            make_record(difficulty=difficulty)

    def test_session_id_length_bound(self):
        with pytest.raises(ValidationError):
            make_record("s" * 101)


class TestQueuedRecord:
    def test_round_trip_keeps_record(self):
        record = make_record(guess_history=make_guesses(["1234"], "1234"), attempts=1)

        queued = QueuedRecord.from_record(record, backup_timestamp=1768478500000)

        assert queued.backup_timestamp == 1768478500000
        assert queued.to_record() == record
