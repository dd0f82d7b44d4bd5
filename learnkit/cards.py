"""Word-books, their cards, and the review-priority card scheduler."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import db, scheduler
from .db import Card, Difficulty, User, WordBook, WordBookStudySession
from .errors import NotFound
from .schemas import CardCreate, CardUpdate, WordBookCreate, WordBookUpdate

logger = structlog.get_logger()

RATIO_FIELDS = ("hard_frequency_ratio", "normal_frequency_ratio", "easy_frequency_ratio")


# ---------------------------------------------------------------------------
# Word-books
# ---------------------------------------------------------------------------

def create_word_book(user_id: int, data: WordBookCreate) -> WordBook:
    scheduler.validate_frequency_ratios(
        data.hard_frequency_ratio, data.normal_frequency_ratio, data.easy_frequency_ratio
    )
    with db.get_session() as session:
        db.require(session, User, user_id)
        book = WordBook(user_id=user_id, **data.model_dump())
        session.add(book)
        session.commit()
        logger.info("word_book_created", word_book_id=book.id, user_id=user_id)
        return book


def list_word_books(user_id: int) -> List[WordBook]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return session.query(WordBook).filter(WordBook.user_id == user_id).order_by(WordBook.id).all()


def get_word_book(word_book_id: int) -> WordBook:
    with db.get_session() as session:
        return db.require(session, WordBook, word_book_id)


def update_word_book(word_book_id: int, patch: WordBookUpdate) -> WordBook:
    """Apply the fields the caller sent.

    Ratio fields are merged with the stored ratios and the merged triple is
    validated before anything is written, so a rejected patch changes nothing.
    """
    changes = patch.changes()
    with db.get_session() as session:
        book = db.require(session, WordBook, word_book_id)
        if any(field in changes for field in RATIO_FIELDS):
            merged = [changes.get(field, getattr(book, field)) for field in RATIO_FIELDS]
            scheduler.validate_frequency_ratios(*merged)
        for field, value in changes.items():
            setattr(book, field, value)
        session.commit()
        logger.info("word_book_updated", word_book_id=word_book_id, fields=sorted(changes))
        return book


def delete_word_book(word_book_id: int) -> None:
    with db.get_session() as session:
        book = db.require(session, WordBook, word_book_id)
        session.query(WordBookStudySession).filter(
            WordBookStudySession.word_book_id == word_book_id
        ).update({WordBookStudySession.word_book_id: None}, synchronize_session=False)
        deleted = session.query(Card).filter(Card.word_book_id == word_book_id).delete(synchronize_session=False)
        session.delete(book)
        session.commit()
        logger.info("word_book_deleted", word_book_id=word_book_id, cards_deleted=deleted)


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------

def create_card(word_book_id: int, data: CardCreate) -> Card:
    with db.get_session() as session:
        db.require(session, WordBook, word_book_id)
        card = Card(
            word_book_id=word_book_id,
            front_text=data.front_text,
            back_text=data.back_text,
            difficulty=data.difficulty,
            review_priority=0,
            view_count=0,
        )
        session.add(card)
        session.commit()
        logger.debug("card_created", card_id=card.id, word_book_id=word_book_id)
        return card


def list_cards(word_book_id: int) -> List[Card]:
    with db.get_session() as session:
        db.require(session, WordBook, word_book_id)
        return session.query(Card).filter(Card.word_book_id == word_book_id).order_by(Card.id).all()


def get_card(card_id: int) -> Card:
    with db.get_session() as session:
        return db.require(session, Card, card_id)


def update_card(card_id: int, patch: CardUpdate) -> Card:
    changes = patch.changes()
    with db.get_session() as session:
        card = db.require(session, Card, card_id)
        for field, value in changes.items():
            setattr(card, field, value)
        session.commit()
        return card


def delete_card(card_id: int) -> None:
    with db.get_session() as session:
        card = db.require(session, Card, card_id)
        session.delete(card)
        session.commit()
        logger.debug("card_deleted", card_id=card_id)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

def count_cards(session: Session, word_book_id: int) -> int:
    return session.query(func.count(Card.id)).filter(Card.word_book_id == word_book_id).scalar() or 0


def review_card(card_id: int, difficulty: Difficulty | str) -> Card:
    """Grade a card and push it back in its book's queue.

    review_priority grows by interval(difficulty), computed from the book's
    card count at this moment, so HARD cards resurface first.
    """
    difficulty = Difficulty(difficulty)
    with db.get_session() as session:
        card = db.require(session, Card, card_id)
        book = db.require(session, WordBook, card.word_book_id)
        score = scheduler.base_score(count_cards(session, book.id))
        increment = scheduler.interval_for(score, book.ratios, difficulty)

        card.difficulty = difficulty
        card.last_reviewed_at = db.now()
        card.view_count = card.view_count + 1
        card.review_priority = card.review_priority + increment
        session.commit()
        logger.info(
            "card_reviewed",
            card_id=card_id,
            difficulty=difficulty.value,
            increment=increment,
            review_priority=card.review_priority,
        )
        return card


def reset_priority(card_id: int, priority: int) -> Card:
    with db.get_session() as session:
        card = db.require(session, Card, card_id)
        card.review_priority = priority
        session.commit()
        return card


def rebaseline_priorities(session: Session, book: WordBook) -> int:
    """Reset every card of ``book`` inside the caller's session.

    Ungraded cards go to 0; graded cards go to interval(difficulty), so the
    queue starts as ungraded, then HARD, NORMAL, EASY.
    """
    cards = session.query(Card).filter(Card.word_book_id == book.id).all()
    score = scheduler.base_score(len(cards))
    for card in cards:
        if card.difficulty is None:
            card.review_priority = 0
        else:
            card.review_priority = scheduler.interval_for(score, book.ratios, card.difficulty)
    return len(cards)


def reset_word_book_priorities(word_book_id: int) -> int:
    with db.get_session() as session:
        book = db.require(session, WordBook, word_book_id)
        count = rebaseline_priorities(session, book)
        session.commit()
        logger.info("word_book_priorities_reset", word_book_id=word_book_id, cards=count)
        return count


def next_due_card(word_book_id: int) -> Card:
    """Card with the lowest review_priority; equal priorities go to the lowest id."""
    with db.get_session() as session:
        db.require(session, WordBook, word_book_id)
        card: Optional[Card] = (
            session.query(Card)
            .filter(Card.word_book_id == word_book_id)
            .order_by(Card.review_priority, Card.id)
            .first()
        )
        if card is None:
            raise NotFound(f"WordBook {word_book_id} has no cards")
        return card


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def difficulty_counts(
    session: Session, user_id: Optional[int] = None, word_book_id: Optional[int] = None
) -> Dict[str, int]:
    """Count graded cards per difficulty, for a whole user or a single book."""
    query = (
        session.query(Card.difficulty, func.count(Card.id))
        .join(WordBook, Card.word_book_id == WordBook.id)
        .filter(Card.difficulty.isnot(None))
    )
    if user_id is not None:
        query = query.filter(WordBook.user_id == user_id)
    if word_book_id is not None:
        query = query.filter(Card.word_book_id == word_book_id)

    counts = {"easy_count": 0, "normal_count": 0, "hard_count": 0}
    for difficulty, count in query.group_by(Card.difficulty).all():
        counts[f"{Difficulty(difficulty).value.lower()}_count"] = count
    return counts


def user_card_statistics(user_id: int) -> Dict[str, Any]:
    with db.get_session() as session:
        db.require(session, User, user_id)
        return difficulty_counts(session, user_id=user_id)


def word_book_card_statistics(word_book_id: int) -> Dict[str, Any]:
    with db.get_session() as session:
        db.require(session, WordBook, word_book_id)
        return difficulty_counts(session, word_book_id=word_book_id)
