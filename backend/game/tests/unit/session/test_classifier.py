"""Tests for GameClassifier: outcome decisions and GameRecord construction."""

import pytest

from game.saving.stats_cache import SessionTally
from game.session.classifier import GameClassifier, classify
from game.session.models import AbandonReason, Outcome, PlayerIdentity
from game.tests.helpers.guesses import shifted_guess, wrong_guess
from shared.dal.models import GameStatus


def _play(tracker, clock, guesses: int, *, win: bool):
    secret = tracker.session.secret_code
    last = None
    for shift in range(1, guesses + (0 if win else 1)):
        clock.advance(10)
        last = tracker.record_guess(shifted_guess(secret, shift))
    if win:
        clock.advance(10)
        last = tracker.record_guess(secret)
    return last


class TestClassify:
    def test_in_progress_until_solved(self, tracker):
        tracker.start(4)
        assert classify(tracker.session) is Outcome.IN_PROGRESS
        tracker.record_guess(tracker.session.secret_code)
        assert classify(tracker.session) is Outcome.COMPLETED


class TestOnGuess:
    def test_non_winning_guess_builds_nothing(self, tracker, classifier):
        tracker.start(4)
        guess = tracker.record_guess(wrong_guess(tracker.session.secret_code, keep=3))

        assert classifier.on_guess(guess) is None
        assert classify(tracker.session) is Outcome.IN_PROGRESS

    def test_winning_guess_completes_session(self, tracker, classifier, clock):
        tracker.start(4)
        winning = _play(tracker, clock, 4, win=True)

        record = classifier.on_guess(winning)

        assert record is not None
        assert tracker.session.outcome is Outcome.COMPLETED
        assert record.status is GameStatus.COMPLETED
        assert record.completed is True
        assert record.abandoned is False
        assert record.attempts == 4
        assert record.time_taken == 40
        assert record.score == 1400 - 80
        assert record.secret_code == tracker.session.secret_code
        assert record.final_guess == tracker.session.secret_code
        assert record.abandon_reason is None
        assert [g.turn_number for g in record.guess_history] == [1, 2, 3, 4]
        assert record.average_time_per_guess == 10.0
        assert record.total_game_time == 40
        assert record.win_rate_this_session == 100.0

    def test_record_carries_device_and_identity(self, tracker, clock, session_storage):
        classifier = GameClassifier(
            tracker,
            PlayerIdentity(user_id="u-42"),
            tally=SessionTally(session_storage, clock),
            clock=clock,
        )
        tracker.start(5)
        record = classifier.on_guess(_play(tracker, clock, 1, win=True))

        assert record.user_id == "u-42"
        assert record.is_guest is False
        assert record.difficulty == 5
        assert record.browser_language == "en-GB"
        assert record.timezone == "Europe/London"
        assert record.device_info["screen_width"] == 1920

    def test_second_win_notification_is_ignored(self, tracker, classifier, clock):
        tracker.start(4)
        winning = _play(tracker, clock, 1, win=True)
        classifier.on_guess(winning)

        assert classifier.on_guess(winning) is None


class TestAbandon:
    def test_unload_with_guesses_builds_abandoned_record(self, tracker, classifier, clock):
        tracker.start(4)
        _play(tracker, clock, 3, win=False)

        record = classifier.on_page_unload()

        assert record is not None
        assert record.status is GameStatus.ABANDONED
        assert record.abandoned is True
        assert record.completed is False
        assert record.score == 0
        assert record.secret_code is None
        assert record.final_guess is None
        assert record.attempts == 3
        assert record.abandon_reason == AbandonReason.PAGE_UNLOAD
        assert record.win_rate_this_session == 0.0

    def test_zero_guess_unload_builds_nothing(self, tracker, classifier):
        tracker.start(4)

        assert classifier.on_page_unload() is None
        assert tracker.session.outcome is Outcome.ABANDONED

    @pytest.mark.parametrize(
        ("trigger", "reason"),
        [
            ("on_visibility_hidden", AbandonReason.VISIBILITY_HIDDEN),
            ("on_abandon", AbandonReason.USER_QUIT),
        ],
    )
    def test_other_triggers_record_their_reason(self, tracker, classifier, clock, trigger, reason):
        tracker.start(4)
        _play(tracker, clock, 2, win=False)

        record = getattr(classifier, trigger)()

        assert record.abandon_reason == reason

    def test_at_most_one_record_per_session(self, tracker, classifier, clock):
        tracker.start(4)
        _play(tracker, clock, 2, win=False)

        assert classifier.on_visibility_hidden() is not None
        assert classifier.on_page_unload() is None
        assert classifier.on_abandon() is None

    def test_completed_session_is_never_abandoned(self, tracker, classifier, clock):
        tracker.start(4)
        classifier.on_guess(_play(tracker, clock, 2, win=True))

        assert classifier.on_page_unload() is None
        assert tracker.session.outcome is Outcome.COMPLETED

    def test_no_session_builds_nothing(self, classifier):
        assert classifier.on_page_unload() is None

    def test_session_tally_counts_each_record(self, tracker, classifier, clock):
        tracker.start(4)
        classifier.on_guess(_play(tracker, clock, 1, win=True))
        tracker.start(4)
        _play(tracker, clock, 1, win=False)

        record = classifier.on_abandon()

        assert record.win_rate_this_session == 50.0
