"""
Tests for word-books, cards and the review-priority scheduler.
"""

from typing import Any

import pytest
from pydantic import ValidationError

from learnkit import cards, db, sessions
from learnkit.db import Card, Difficulty, WordBook
from learnkit.errors import InvalidConfiguration, NotFound
from learnkit.schemas import CardUpdate, WordBookCreate, WordBookUpdate

from conftest import count_rows, make_cards, make_word_book


class TestWordBooks:
    def test_create_uses_default_ratios(self, user: Any) -> None:
        book = cards.create_word_book(user.id, WordBookCreate(title="Core 2k"))
        assert (book.hard_frequency_ratio, book.normal_frequency_ratio, book.easy_frequency_ratio) == (6, 3, 1)
        assert book.created_at is not None

    def test_create_rejects_bad_ratios(self, user: Any) -> None:
        with pytest.raises(InvalidConfiguration):
            make_word_book(user.id, ratios=(3, 3, 1))
        assert count_rows(WordBook) == 0

    def test_create_for_unknown_user(self, temp_db: Any) -> None:
        with pytest.raises(NotFound):
            make_word_book(999)

    def test_description_limited_to_500_chars(self) -> None:
        with pytest.raises(ValidationError):
            WordBookCreate(title="t", description="x" * 501)

    def test_partial_ratio_patch_is_merged(self, user: Any) -> None:
        book = make_word_book(user.id)
        updated = cards.update_word_book(book.id, WordBookUpdate(normal_frequency_ratio=5))
        assert (updated.hard_frequency_ratio, updated.normal_frequency_ratio, updated.easy_frequency_ratio) == (6, 5, 1)

    def test_rejected_patch_changes_nothing(self, user: Any) -> None:
        book = make_word_book(user.id)
        with pytest.raises(InvalidConfiguration):
            cards.update_word_book(book.id, WordBookUpdate(title="Renamed", normal_frequency_ratio=7))
        stored = cards.get_word_book(book.id)
        assert stored.title == "JLPT N3"
        assert (stored.hard_frequency_ratio, stored.normal_frequency_ratio, stored.easy_frequency_ratio) == (6, 3, 1)

    def test_patch_applies_only_sent_fields(self, user: Any) -> None:
        book = cards.create_word_book(user.id, WordBookCreate(title="Kanji", description="daily"))
        updated = cards.update_word_book(book.id, WordBookUpdate(title="Kanji N2"))
        assert updated.title == "Kanji N2"
        assert updated.description == "daily"
        cleared = cards.update_word_book(book.id, WordBookUpdate(description=None))
        assert cleared.description is None

    def test_patch_rejects_null_title(self) -> None:
        with pytest.raises(ValidationError):
            WordBookUpdate(title=None)

    def test_delete_removes_cards_and_detaches_sessions(self, user: Any) -> None:
        book = make_word_book(user.id)
        make_cards(book.id, 3)
        study = sessions.start_word_book_study_session(user.id, book.id)

        cards.delete_word_book(book.id)

        assert count_rows(Card) == 0
        with pytest.raises(NotFound):
            cards.get_word_book(book.id)
        assert sessions.get_session_record(db.WordBookStudySession, study.id).word_book_id is None

    def test_list_is_per_user(self, user: Any) -> None:
        make_word_book(user.id, title="a")
        make_word_book(user.id, title="b")
        assert [b.title for b in cards.list_word_books(user.id)] == ["a", "b"]


class TestCards:
    def test_new_card_starts_at_zero(self, user: Any) -> None:
        book = make_word_book(user.id)
        card = make_cards(book.id, 1)[0]
        assert card.review_priority == 0
        assert card.view_count == 0
        assert card.difficulty is None
        assert card.last_reviewed_at is None

    def test_update_card_content(self, user: Any) -> None:
        book = make_word_book(user.id)
        card = make_cards(book.id, 1)[0]
        updated = cards.update_card(card.id, CardUpdate(back_text="cat", difficulty=Difficulty.NORMAL))
        assert updated.front_text == "front 0"
        assert updated.back_text == "cat"
        assert updated.difficulty == Difficulty.NORMAL

    def test_delete_card(self, user: Any) -> None:
        book = make_word_book(user.id)
        card = make_cards(book.id, 1)[0]
        cards.delete_card(card.id)
        with pytest.raises(NotFound):
            cards.get_card(card.id)

    def test_statistics_ignore_ungraded_cards(self, user: Any) -> None:
        book = make_word_book(user.id)
        make_cards(book.id, 2, Difficulty.HARD)
        make_cards(book.id, 1, Difficulty.EASY)
        make_cards(book.id, 4)
        other = make_word_book(user.id, title="other")
        make_cards(other.id, 1, Difficulty.NORMAL)

        assert cards.word_book_card_statistics(book.id) == {"easy_count": 1, "normal_count": 0, "hard_count": 2}
        assert cards.user_card_statistics(user.id) == {"easy_count": 1, "normal_count": 1, "hard_count": 2}


class TestReview:
    def test_review_arithmetic(self, user: Any, clock: Any) -> None:
        book = make_word_book(user.id)
        card = make_cards(book.id, 4)[0]
        reviewed = cards.review_card(card.id, Difficulty.NORMAL)
        # 4 cards -> base 4000, NORMAL ratio 3
        assert reviewed.review_priority == 1333
        assert reviewed.view_count == 1
        assert reviewed.difficulty == Difficulty.NORMAL
        assert reviewed.last_reviewed_at == clock.current

        clock.advance(minutes=5)
        again = cards.review_card(card.id, "EASY")
        assert again.review_priority == 1333 + 4000
        assert again.view_count == 2
        assert again.last_reviewed_at == clock.current

    def test_review_unknown_card(self, temp_db: Any) -> None:
        with pytest.raises(NotFound):
            cards.review_card(12345, Difficulty.HARD)

    def test_hard_twice_beats_easy_once(self, user: Any) -> None:
        book = make_word_book(user.id, ratios=(6, 3, 1))
        deck = make_cards(book.id, 10)
        hard_card, easy_card, rest = deck[0], deck[1], deck[2:]

        cards.review_card(hard_card.id, Difficulty.HARD)
        assert cards.review_card(hard_card.id, Difficulty.HARD).review_priority == 3332
        assert cards.review_card(easy_card.id, Difficulty.EASY).review_priority == 10000

        for card in rest:
            cards.reset_priority(card.id, 20000)
        assert cards.next_due_card(book.id).id == hard_card.id

    def test_interval_uses_current_card_count(self, user: Any) -> None:
        book = make_word_book(user.id)
        card = make_cards(book.id, 1)[0]
        assert cards.review_card(card.id, Difficulty.EASY).review_priority == 1000
        make_cards(book.id, 1)
        assert cards.review_card(card.id, Difficulty.EASY).review_priority == 1000 + 2000


class TestNextDue:
    def test_lowest_priority_wins(self, user: Any) -> None:
        book = make_word_book(user.id)
        a, b, c = make_cards(book.id, 3)
        cards.reset_priority(a.id, 50)
        cards.reset_priority(b.id, 10)
        cards.reset_priority(c.id, 30)
        assert cards.next_due_card(book.id).id == b.id

    def test_ties_go_to_lowest_id(self, user: Any) -> None:
        book = make_word_book(user.id)
        a, b = make_cards(book.id, 2)
        first = cards.next_due_card(book.id)
        assert first.id == a.id
        assert cards.next_due_card(book.id).id == first.id
        cards.reset_priority(a.id, 1)
        assert cards.next_due_card(book.id).id == b.id

    def test_empty_book(self, user: Any) -> None:
        book = make_word_book(user.id)
        with pytest.raises(NotFound):
            cards.next_due_card(book.id)

    def test_missing_book(self, temp_db: Any) -> None:
        with pytest.raises(NotFound):
            cards.next_due_card(77)


def test_reset_word_book_priorities(user: Any) -> None:
    book = make_word_book(user.id)
    fresh = make_cards(book.id, 1)[0]
    hard = make_cards(book.id, 1, Difficulty.HARD)[0]
    normal = make_cards(book.id, 1, Difficulty.NORMAL)[0]
    easy = make_cards(book.id, 1, Difficulty.EASY)[0]
    cards.reset_priority(fresh.id, 999999)

    assert cards.reset_word_book_priorities(book.id) == 4

    # 4 cards -> base 4000
    assert cards.get_card(fresh.id).review_priority == 0
    assert cards.get_card(hard.id).review_priority == 666
    assert cards.get_card(normal.id).review_priority == 1333
    assert cards.get_card(easy.id).review_priority == 4000
