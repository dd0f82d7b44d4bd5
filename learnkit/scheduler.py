from typing import Mapping

from .db import Difficulty
from .errors import InvalidConfiguration

DEFAULT_RATIOS = (6, 3, 1)
MAX_RATIO = 20
MIN_HARD_RATIO = 3
MIN_NORMAL_RATIO = 2
MIN_EASY_RATIO = 1
SCORE_PER_CARD = 1000


def validate_frequency_ratios(hard: int, normal: int, easy: int) -> None:
    """
    Check a word-book's review frequency ratios.

    A ratio says how many times more often a card of that difficulty comes
    back compared with an EASY card. Rules:
      - hard >= 3, normal >= 2, easy >= 1
      - every ratio <= 20
      - hard > normal > easy

    Raises InvalidConfiguration on the first violated rule. Values are never clamped.
    """
    if hard < MIN_HARD_RATIO:
        raise InvalidConfiguration(f"hard frequency ratio must be at least {MIN_HARD_RATIO} (got {hard})")
    if normal < MIN_NORMAL_RATIO:
        raise InvalidConfiguration(f"normal frequency ratio must be at least {MIN_NORMAL_RATIO} (got {normal})")
    if easy < MIN_EASY_RATIO:
        raise InvalidConfiguration(f"easy frequency ratio must be at least {MIN_EASY_RATIO} (got {easy})")
    if max(hard, normal, easy) > MAX_RATIO:
        raise InvalidConfiguration(f"frequency ratios must not exceed {MAX_RATIO}")
    if not hard > normal > easy:
        raise InvalidConfiguration(
            f"frequency ratios must satisfy hard > normal > easy (got {hard}, {normal}, {easy})"
        )


def base_score(total_cards: int) -> int:
    return total_cards * SCORE_PER_CARD


def interval_for(score: int, ratios: Mapping[Difficulty, int], difficulty: Difficulty) -> int:
    """Priority increment for a card graded ``difficulty``.

    Higher ratio -> smaller increment -> the card comes back sooner, so for a
    valid ratio triple interval(HARD) < interval(NORMAL) < interval(EASY).
    """
    return score // ratios[Difficulty(difficulty)]
