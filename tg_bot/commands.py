"""
Admin bot commands: argument parsing and reply formatting.

The functions here take the already split command arguments and return
the reply text, so they can be used without a running bot.
"""
import logging
from datetime import datetime, timezone

from scoring import (
    Grader,
    LabScore,
    ScoreOverride,
    ScoreStore,
    validate_lab_score,
    validate_score_override,
)

logger = logging.getLogger(__name__)

STUDENT_HELP = """Доступные команды:
/help - Показать это сообщение"""

ADMIN_HELP = """Доступные команды:
/lab add <course> <lab> score <score> deadline <date> - Добавить лабораторную
/lab list <course> - Список лабораторных работ
/override set <course> <lab> <student> score <score> reason <reason> - Установить оценку вручную
/override list <course> - Список текущих оверрайдов
/score <course> <lab> <student> - Посчитать оценку студента
/help - Показать это сообщение

Примеры:
/lab add DE15 01s score 10 deadline 2024-12-01
/lab list DE15
/override set DE15 01s student.name score 8 reason Late submission accepted
/override list DE15
/score DE15 01s student.name
"""

LAB_USAGE = (
    "Использование:\n"
    "/lab add <course> <lab> score <score> deadline <date> - Добавить лабораторную\n"
    "/lab list <course> - Показать список лабораторных"
)

OVERRIDE_USAGE = (
    "Использование:\n"
    "/override set <course> <lab> <student> score <score> reason <reason> - Установить оценку вручную\n"
    "/override list <course> - Список текущих оверрайдов для курса"
)


class CommandError(Exception):
    """Bad command arguments; the message is shown to the user."""
    pass


def parse_score(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise CommandError(f"некорректная оценка: {value}")


def parse_deadline(value: str) -> int:
    """
    Parse a YYYY-MM-DD date into the last second of that day, UTC.

    Examples:
        >>> parse_deadline("2024-12-01")
        1733097599
    """
    try:
        day = datetime.strptime(value.strip("\"'"), "%Y-%m-%d")
    except ValueError:
        raise CommandError(f"некорректная дата (используйте YYYY-MM-DD): {value}")
    deadline = day.replace(hour=23, minute=59, second=59, tzinfo=timezone.utc)
    return int(deadline.timestamp())


def lab_add(store: ScoreStore, args: list[str]) -> str:
    """Handle `/lab add <course> <lab> score <score> deadline <date>`."""
    if len(args) < 6:
        raise CommandError("использование: add <course> <lab> score <score> deadline <date>")

    course, lab = args[0], args[1]
    score = None
    deadline = None

    for i in range(2, len(args), 2):
        if i + 1 >= len(args):
            raise CommandError(f"пропущено значение для {args[i]}")
        if args[i] == "score":
            score = parse_score(args[i + 1])
        elif args[i] == "deadline":
            deadline = parse_deadline(args[i + 1])
        else:
            raise CommandError(f"неизвестный параметр: {args[i]}")

    if score is None or deadline is None:
        raise CommandError("нужны и score, и deadline")

    lab_score = validate_lab_score(LabScore(course=course, lab=lab, base_score=score, deadline=deadline))
    existing = store.get_lab_score(course, lab)
    store.create_lab_score(lab_score)
    action = "обновлена" if existing is not None else "добавлена"
    logger.info(f"Lab {course}/{lab} {action}: score {score}, deadline {deadline}")

    deadline_str = datetime.fromtimestamp(deadline, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
    return (
        f"✅ Лабораторная {lab} для курса {course} {action}:\n"
        f"Баллы: {score}\n"
        f"Дедлайн: {deadline_str} UTC"
    )


def lab_list(store: ScoreStore, course: str) -> str:
    labs = store.list_lab_scores(course)
    if not labs:
        return "Лабораторные работы не найдены"

    lines = [f"Лабораторные работы курса {course}:\n"]
    for lab in labs:
        deadline = datetime.fromtimestamp(lab.deadline, tz=timezone.utc)
        lines.append(
            f"📝 {lab.lab} (баллы: {lab.base_score})\n"
            f"📅 {deadline.strftime('%Y-%b-%d %a %H:%M')} UTC\n"
        )
    return "\n".join(lines)


def lab_command(store: ScoreStore, args: list[str]) -> str:
    if not args:
        return LAB_USAGE
    if args[0] == "add":
        return lab_add(store, args[1:])
    if args[0] == "list":
        if len(args) < 2:
            raise CommandError("укажи курс: /lab list DE15")
        return lab_list(store, args[1])
    raise CommandError(f"неизвестная подкоманда: {args[0]}")


def override_set(store: ScoreStore, args: list[str]) -> str:
    """Handle `/override set <course> <lab> <student> score <score> reason <reason...>`."""
    if len(args) < 5 or args[3] != "score":
        raise CommandError("использование: set <course> <lab> <student> score <score> reason <reason>")

    course, lab, student = args[0], args[1], args[2]
    score = parse_score(args[4])

    reason = None
    if len(args) > 5:
        if args[5] != "reason":
            raise CommandError(f"неизвестный параметр: {args[5]}")
        reason = " ".join(args[6:]).strip("\"'") or None

    override = validate_score_override(
        ScoreOverride(course=course, lab=lab, student=student, score=score, reason=reason)
    )
    existing = store.get_score_override(course, lab, student)
    store.create_score_override(override)
    action = "обновлён" if existing is not None else "добавлен"
    logger.info(f"Override {course}/{lab}/{student} {action}: {score}")

    return (
        f"✅ Оверрайд для студента {course}/{lab}/{student} {action}:\n"
        f"Баллы: {score}\n"
        f"Причина: {reason or '-'}"
    )


def override_list(store: ScoreStore, course: str) -> str:
    overrides = store.list_course_score_overrides(course)
    if not overrides:
        return "Оверрайды не найдены"

    base_scores = {lab.lab: lab.base_score for lab in store.list_lab_scores(course)}

    lines = [f"Оверрайды курса {course}:\n"]
    for override in overrides:
        lines.append(
            f"👉🏻 {override.student}: за лабу {override.lab} ставим {override.score}\n"
            f"Базовый скор за эту лабу: {base_scores.get(override.lab, '-')}\n"
            f"❓({override.reason or '-'})\n"
        )
    return "\n".join(lines)


def override_command(store: ScoreStore, args: list[str]) -> str:
    if not args:
        return OVERRIDE_USAGE
    if args[0] == "set":
        return override_set(store, args[1:])
    if args[0] == "list":
        if len(args) < 2:
            raise CommandError("укажи курс: /override list DE15")
        return override_list(store, args[1])
    raise CommandError(f"неизвестная подкоманда: {args[0]}")


def score_command(grader: Grader, args: list[str]) -> str:
    """Handle `/score <course> <lab> <student>`."""
    if len(args) != 3:
        raise CommandError("использование: /score <course> <lab> <student>")
    course, lab, student = args
    score = grader.score_for_student(course, lab, student)
    return f"🎯 {student}: {course}/{lab} = {score}"
