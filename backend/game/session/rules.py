"""Digit-code rules: secret generation, guess input, exact-match count and scoring."""

import random
import re
import secrets

from game.session.errors import InvalidDifficultyError, InvalidGuessError
from shared.dal.models import MAX_DIFFICULTY, MIN_DIFFICULTY

_NON_DIGITS = re.compile(r"[^0-9]")

# Score components for a won game.
BASE_POINTS_PER_DIGIT = 250
BONUS_POINTS_PER_DIGIT = 100
EXTRA_ATTEMPT_PENALTY = 50
TIME_PENALTY_PER_SECOND = 2
MAX_TIME_PENALTY = 300
MIN_WIN_SCORE = 100


def validate_code_length(code_length: int) -> None:
    if not (MIN_DIFFICULTY <= code_length <= MAX_DIFFICULTY):
        raise InvalidDifficultyError(f"Code length must be {MIN_DIFFICULTY}-{MAX_DIFFICULTY}, got {code_length}")


def generate_secret(code_length: int, rng: random.Random | None = None) -> str:
    """Return a random digit string; digits may repeat."""
    validate_code_length(code_length)
    rng = rng or secrets.SystemRandom()
    return "".join(str(rng.randrange(10)) for _ in range(code_length))


def sanitize_guess(raw: str, code_length: int) -> str:
    """Strip everything but digits and require exactly code_length of them."""
    digits = _NON_DIGITS.sub("", raw)[:MAX_DIFFICULTY]
    if len(digits) != code_length:
        raise InvalidGuessError(f"Please enter exactly {code_length} digits.")
    return digits


def count_exact_matches(secret: str, guess: str) -> int:
    """Number of positions where guess and secret hold the same digit."""
    if len(secret) != len(guess):
        raise InvalidGuessError(f"Guess length {len(guess)} does not match code length {len(secret)}")
    return sum(1 for s, g in zip(secret, guess, strict=True) if s == g)


def calculate_score(difficulty: int, attempts: int, time_seconds: int, *, completed: bool) -> int:
    if not completed:
        return 0
    base = difficulty * BASE_POINTS_PER_DIGIT
    attempt_penalty = max(0, (attempts - difficulty) * EXTRA_ATTEMPT_PENALTY)
    time_penalty = min(time_seconds * TIME_PENALTY_PER_SECOND, MAX_TIME_PENALTY)
    bonus = difficulty * BONUS_POINTS_PER_DIGIT
    return max(base - attempt_penalty - time_penalty + bonus, MIN_WIN_SCORE)
