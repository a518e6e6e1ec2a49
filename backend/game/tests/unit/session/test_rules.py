"""Tests for digit-code rules and scoring."""

import random

import pytest

from game.session.errors import GameValidationError, InvalidDifficultyError, InvalidGuessError
from game.session.rules import (
    calculate_score,
    count_exact_matches,
    generate_secret,
    sanitize_guess,
    validate_code_length,
)


class TestCodeLength:
    @pytest.mark.parametrize("length", [4, 5, 6, 7])
    def test_supported_lengths(self, length):
        validate_code_length(length)

    @pytest.mark.parametrize("length", [0, 3, 8])
    def test_unsupported_lengths(self, length):
        with pytest.raises(InvalidDifficultyError):
            validate_code_length(length)


class TestGenerateSecret:
    def test_length_and_digits(self):
        secret = generate_secret(6, random.Random(1))
        assert len(secret) == 6
        assert secret.isdigit()

    def test_seeded_rng_is_deterministic(self):
        assert generate_secret(5, random.Random(42)) == generate_secret(5, random.Random(42))


class TestSanitizeGuess:
    def test_strips_non_digits(self):
        assert sanitize_guess(" 1-2 3a4 ", 4) == "1234"

    def test_rejects_wrong_length(self):
        with pytest.raises(InvalidGuessError, match="exactly 4 digits"):
            sanitize_guess("123", 4)

    def test_input_is_capped_before_length_check(self):
        with pytest.raises(InvalidGuessError):
            sanitize_guess("123456789", 4)

    def test_is_a_validation_error(self):
        with pytest.raises(GameValidationError):
            sanitize_guess("", 4)


class TestExactMatches:
    @pytest.mark.parametrize(
        ("secret", "guess", "expected"),
        [("1234", "1234", 4), ("1234", "4321", 0), ("1234", "1200", 2), ("1122", "2211", 0)],
    )
    def test_counts_positions(self, secret, guess, expected):
        assert count_exact_matches(secret, guess) == expected

    def test_length_mismatch(self):
        with pytest.raises(InvalidGuessError):
            count_exact_matches("1234", "12345")


class TestScore:
    def test_zero_when_not_completed(self):
        assert calculate_score(7, 3, 10, completed=False) == 0

    def test_perfect_fast_game(self):
        # 4*250 + 4*100, no penalties
        assert calculate_score(4, 4, 0, completed=True) == 1400

    def test_extra_attempts_and_time_are_penalised(self):
        # 1000 - 2*50 - 30*2 + 400
        assert calculate_score(4, 6, 30, completed=True) == 1240

    def test_time_penalty_is_capped(self):
        assert calculate_score(4, 4, 10_000, completed=True) == 1100

    def test_floor_for_completed_games(self):
        assert calculate_score(4, 100, 10_000, completed=True) == 100
