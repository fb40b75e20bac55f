"""Tests for bot command parsing and replies."""
import asyncio
import logging

import pytest

from scoring.models import LabScore, ScoreOverride, ValidationError
from scoring.store import StorageError
from tg_bot.commands import (
    ADMIN_HELP,
    LAB_USAGE,
    CommandError,
    lab_command,
    override_command,
    parse_deadline,
    score_command,
)

from conftest import DEADLINE


class TestParseDeadline:
    """Tests for parse_deadline."""

    def test_end_of_day_utc(self):
        assert parse_deadline("2024-12-01") == 1733097599

    def test_quoted(self):
        assert parse_deadline('"2024-12-01"') == 1733097599

    def test_invalid(self):
        with pytest.raises(CommandError):
            parse_deadline("01.12.2024")


class TestLabCommand:
    """Tests for /lab."""

    def test_usage(self, store):
        assert lab_command(store, []) == LAB_USAGE

    def test_add(self, store):
        """Test lab is stored with the deadline at the end of the day."""
        reply = lab_command(store, ["add", "os", "01", "score", "10", "deadline", "2024-12-01"])

        assert "добавлена" in reply
        assert "2024-12-01 23:59" in reply
        assert store.get_lab_score("os", "01") == LabScore("os", "01", base_score=10, deadline=1733097599)

    def test_add_again_updates(self, store):
        lab_command(store, ["add", "os", "01", "score", "10", "deadline", "2024-12-01"])

        reply = lab_command(store, ["add", "os", "01", "score", "12", "deadline", "2024-12-02"])

        assert "обновлена" in reply
        assert store.get_lab_score("os", "01").base_score == 12

    def test_add_options_in_any_order(self, store):
        lab_command(store, ["add", "os", "01", "deadline", "2024-12-01", "score", "10"])

        assert store.get_lab_score("os", "01").base_score == 10

    @pytest.mark.parametrize("args", [
        ["add", "os", "01", "score", "10"],
        ["add", "os", "01", "score", "ten", "deadline", "2024-12-01"],
        ["add", "os", "01", "points", "10", "deadline", "2024-12-01"],
        ["add", "os", "01", "score", "10", "deadline"],
        ["remove", "os"],
        ["list"],
    ])
    def test_bad_arguments(self, store, args):
        with pytest.raises(CommandError):
            lab_command(store, args)

    def test_lab_code_too_long(self, store):
        with pytest.raises(ValidationError):
            lab_command(store, ["add", "os", "0123", "score", "10", "deadline", "2024-12-01"])

    def test_list(self, store):
        lab_command(store, ["add", "os", "02", "score", "20", "deadline", "2024-12-01"])
        lab_command(store, ["add", "os", "01", "score", "10", "deadline", "2024-12-01"])

        reply = lab_command(store, ["list", "os"])

        assert reply.index("📝 01 (баллы: 10)") < reply.index("📝 02 (баллы: 20)")
        assert "2024-Dec-01 Sun 23:59 UTC" in reply

    def test_list_empty(self, store):
        assert lab_command(store, ["list", "os"]) == "Лабораторные работы не найдены"


class TestOverrideCommand:
    """Tests for /override."""

    def test_set(self, store):
        reply = override_command(
            store, ["set", "os", "01", "john.doe", "score", "8", "reason", "Late", "submission", "accepted"]
        )

        assert "добавлен" in reply
        assert store.get_score_override("os", "01", "john.doe") == ScoreOverride(
            "os", "01", "john.doe", score=8, reason="Late submission accepted"
        )

    def test_set_without_reason(self, store):
        override_command(store, ["set", "os", "01", "john.doe", "score", "8"])

        assert store.get_score_override("os", "01", "john.doe").reason is None

    def test_set_again_updates(self, store):
        override_command(store, ["set", "os", "01", "john.doe", "score", "8"])

        reply = override_command(store, ["set", "os", "01", "john.doe", "score", "9", "reason", "regrade"])

        assert "обновлён" in reply
        assert store.get_score_override("os", "01", "john.doe").score == 9

    def test_set_invalid_student(self, store):
        with pytest.raises(ValidationError):
            override_command(store, ["set", "os", "01", "johndoe", "score", "8"])

    @pytest.mark.parametrize("args", [
        ["set", "os", "01", "john.doe"],
        ["set", "os", "01", "john.doe", "points", "8"],
        ["set", "os", "01", "john.doe", "score", "x"],
        ["set", "os", "01", "john.doe", "score", "8", "because", "x"],
        ["list"],
        ["drop"],
    ])
    def test_bad_arguments(self, store, args):
        with pytest.raises(CommandError):
            override_command(store, args)

    def test_list_shows_base_score(self, store):
        store.create_lab_score(LabScore("os", "01", base_score=10, deadline=DEADLINE))
        store.create_score_override(ScoreOverride("os", "01", "john.doe", score=8, reason="late"))

        reply = override_command(store, ["list", "os"])

        assert "👉🏻 john.doe: за лабу 01 ставим 8" in reply
        assert "Базовый скор за эту лабу: 10" in reply
        assert "❓(late)" in reply

    def test_list_empty(self, store):
        assert override_command(store, ["list", "os"]) == "Оверрайды не найдены"


class TestScoreCommand:
    """Tests for /score."""

    def test_score(self, grader, store, make_entry):
        store.create_lab_score(LabScore("os", "01", base_score=10, deadline=DEADLINE))
        store.create_entry(make_entry(timestamp=DEADLINE + 1))

        assert score_command(grader, ["os", "01", "john.doe"]) == "🎯 john.doe: os/01 = 9"

    def test_usage(self, grader):
        with pytest.raises(CommandError):
            score_command(grader, ["os", "01"])


def test_admin_help_lists_commands():
    for name in ("/lab add", "/lab list", "/override set", "/override list", "/score"):
        assert name in ADMIN_HELP


class TestRouter:
    """Tests for the aiogram router factory."""

    def test_create_router(self, service):
        from aiogram import Router
        from tg_bot.handlers import create_router

        router = create_router(service, [1, 2])

        assert isinstance(router, Router)
        assert len(router.message.handlers) == 6

    def test_split_args_keeps_quotes(self):
        from aiogram.filters import CommandObject
        from tg_bot.handlers import split_args

        command = CommandObject(command="override", args='set os 01 john.doe score 8 reason "Late but ok"')

        assert split_args(command)[-1] == "Late but ok"
        assert split_args(CommandObject(command="lab")) == []


class TestRunCommand:
    """Tests for turning command results and failures into replies."""

    def test_reply_passed_through(self):
        from tg_bot.handlers import run_command

        assert asyncio.run(run_command(lambda: "готово")) == "готово"

    def test_usage_error_shown(self):
        """Test CommandError text reaches the admin."""
        from tg_bot.handlers import run_command

        def handler():
            raise CommandError(LAB_USAGE)

        assert asyncio.run(run_command(handler)) == f"Ошибка: {LAB_USAGE}"

    def test_validation_error_shown(self):
        from tg_bot.handlers import run_command

        def handler():
            raise ValidationError("lab must be at most 3 characters")

        assert asyncio.run(run_command(handler)) == "Ошибка: lab must be at most 3 characters"

    def test_storage_error_hidden(self, caplog):
        """Test database details are logged but never sent to the chat."""
        from tg_bot.handlers import COMMAND_FAILED, run_command

        def handler():
            raise StorageError('failed to get lab score: near "SELECT": syntax error')

        with caplog.at_level(logging.ERROR, logger="tg_bot.handlers"):
            reply = asyncio.run(run_command(handler))

        assert reply == COMMAND_FAILED
        assert "SELECT" not in reply
        assert "syntax error" in caplog.text
