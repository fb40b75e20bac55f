import asyncio
import logging
import shlex
from collections.abc import Callable

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from scoring import ScoringService
from scoring.models import ValidationError
from tg_bot import commands

logger = logging.getLogger(__name__)

COMMAND_FAILED = "Не удалось выполнить команду, попробуйте позже."


def split_args(command: CommandObject) -> list[str]:
    """Split command arguments, keeping quoted values together."""
    if not command.args:
        return []
    try:
        return shlex.split(command.args)
    except ValueError:
        return command.args.split()


async def run_command(handler: Callable[[], str]) -> str:
    """
    Run a blocking command handler and return the reply text.

    Usage errors are shown to the admin as is; anything else is logged
    and replaced with a generic message.
    """
    try:
        # store calls block, keep them off the event loop
        return await asyncio.to_thread(handler)
    except (commands.CommandError, ValidationError) as e:
        return f"Ошибка: {e}"
    except Exception:
        logger.exception("Command failed")
        return COMMAND_FAILED


def create_router(service: ScoringService, admin_ids: list[int]) -> Router:
    router = Router()
    admins = set(admin_ids)

    def is_admin(message: Message) -> bool:
        return message.from_user is not None and message.from_user.id in admins

    async def run_admin(message: Message, handler: Callable[[], str]):
        if not is_admin(message):
            await message.answer(commands.STUDENT_HELP)
            return
        await message.answer(await run_command(handler))

    @router.message(Command('start'))
    async def start(message: Message):
        if is_admin(message):
            await message.answer("Привет! Ты администратор бота. Команды:\n" + commands.ADMIN_HELP)
        else:
            await message.answer("Привет!\n\n" + commands.STUDENT_HELP)

    @router.message(Command('help'))
    async def help_command(message: Message):
        await message.answer(commands.ADMIN_HELP if is_admin(message) else commands.STUDENT_HELP)

    @router.message(Command('lab'))
    async def lab(message: Message, command: CommandObject):
        args = split_args(command)
        await run_admin(message, lambda: commands.lab_command(service.store, args))

    @router.message(Command('override'))
    async def override(message: Message, command: CommandObject):
        args = split_args(command)
        await run_admin(message, lambda: commands.override_command(service.store, args))

    @router.message(Command('score'))
    async def score(message: Message, command: CommandObject):
        args = split_args(command)
        await run_admin(message, lambda: commands.score_command(service.grader, args))

    @router.message()
    async def fallback(message: Message):
        await message.answer("Используйте команды для взаимодействия с ботом. Отправьте /help для списка команд.")

    return router
