import pytest

from learnkit import scheduler
from learnkit.db import Difficulty
from learnkit.errors import InvalidConfiguration


DEFAULT = {Difficulty.HARD: 6, Difficulty.NORMAL: 3, Difficulty.EASY: 1}


@pytest.mark.parametrize("hard,normal,easy", [
    (6, 3, 1),
    (3, 2, 1),
    (20, 19, 18),
    (10, 5, 2),
])
def test_valid_ratios_accepted(hard: int, normal: int, easy: int) -> None:
    scheduler.validate_frequency_ratios(hard, normal, easy)


@pytest.mark.parametrize("hard,normal,easy", [
    (2, 2, 1),     # hard below minimum
    (3, 1, 0),     # normal and easy below minimum
    (21, 3, 1),    # hard above maximum
    (6, 6, 1),     # hard == normal
    (6, 3, 3),     # normal == easy
    (3, 6, 1),     # hard < normal
    (5, 3, 4),     # normal < easy
])
def test_invalid_ratios_rejected(hard: int, normal: int, easy: int) -> None:
    with pytest.raises(InvalidConfiguration):
        scheduler.validate_frequency_ratios(hard, normal, easy)


def test_base_score() -> None:
    assert scheduler.base_score(0) == 0
    assert scheduler.base_score(10) == 10000


def test_intervals_for_ten_cards() -> None:
    score = scheduler.base_score(10)
    assert scheduler.interval_for(score, DEFAULT, Difficulty.HARD) == 1666
    assert scheduler.interval_for(score, DEFAULT, Difficulty.NORMAL) == 3333
    assert scheduler.interval_for(score, DEFAULT, Difficulty.EASY) == 10000


def test_interval_accepts_plain_strings() -> None:
    assert scheduler.interval_for(1000, DEFAULT, "HARD") == 166


@pytest.mark.parametrize("ratios", [(6, 3, 1), (3, 2, 1), (20, 19, 18), (12, 7, 4)])
@pytest.mark.parametrize("total_cards", [1, 7, 250])
def test_hard_comes_back_before_normal_before_easy(ratios: tuple, total_cards: int) -> None:
    hard, normal, easy = ratios
    table = {Difficulty.HARD: hard, Difficulty.NORMAL: normal, Difficulty.EASY: easy}
    score = scheduler.base_score(total_cards)
    assert (
        scheduler.interval_for(score, table, Difficulty.HARD)
        < scheduler.interval_for(score, table, Difficulty.NORMAL)
        < scheduler.interval_for(score, table, Difficulty.EASY)
    )
