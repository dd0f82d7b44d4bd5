import json
from typing import Any

from click.testing import CliRunner
from sqlalchemy import inspect

from learnkit import cards, db
from learnkit.cli import cli
from learnkit.db import Difficulty, WeeklyCardBaseline

from conftest import count_rows, make_cards, make_goal, make_word_book


def test_init_db(temp_db: Any) -> None:
    db.Base.metadata.drop_all(bind=db.engine)
    result = CliRunner().invoke(cli, ["init-db"])
    assert result.exit_code == 0
    assert "Database initialized." in result.output
    assert "weekly_card_baselines" in inspect(db.engine).get_table_names()
    assert db.is_db_initialized()


def test_ensure_baselines_twice(user: Any) -> None:
    runner = CliRunner()
    first = runner.invoke(cli, ["ensure-baselines", str(user.id)])
    assert first.exit_code == 0
    assert "created" in first.output
    second = runner.invoke(cli, ["ensure-baselines", str(user.id)])
    assert "skipped" in second.output
    assert count_rows(WeeklyCardBaseline) == 1


def test_unknown_user_fails(temp_db: Any, clock: Any) -> None:
    result = CliRunner().invoke(cli, ["weekly-stats", "77"])
    assert result.exit_code == 1
    assert "User not found: 77" in result.output


def test_weekly_stats_json(user: Any) -> None:
    make_goal(user.id, title="Grammar")
    result = CliRunner().invoke(cli, ["weekly-stats", str(user.id)])
    assert result.exit_code == 0
    stats = json.loads(result.output)
    assert stats["goal_progress"][0]["goal_title"] == "Grammar"


def test_weekly_summary_json(user: Any) -> None:
    result = CliRunner().invoke(cli, ["weekly-summary", str(user.id)])
    assert result.exit_code == 0
    assert json.loads(result.output)["week_number"] == 3


def test_reset_priorities(user: Any) -> None:
    book = make_word_book(user.id)
    card = make_cards(book.id, 1, Difficulty.EASY)[0]
    cards.reset_priority(card.id, 7)

    result = CliRunner().invoke(cli, ["reset-priorities", str(book.id)])
    assert result.exit_code == 0
    assert "Reset 1 card(s)" in result.output
    # 1 card -> base 1000, EASY ratio 1
    assert cards.get_card(card.id).review_priority == 1000

    missing = CliRunner().invoke(cli, ["reset-priorities", "404"])
    assert missing.exit_code == 1
    assert "WordBook not found: 404" in missing.output
