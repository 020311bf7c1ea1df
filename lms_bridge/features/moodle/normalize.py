"""Pure mapping helpers for raw Moodle records. No I/O."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Iterable, Optional

from .schemas import Attempt, EnrolledUser, Quiz

QUESTION_TYPES: Dict[str, str] = {
    "multichoice": "Multiple Choice",
    "truefalse": "True/False",
    "shortanswer": "Short Answer",
    "numerical": "Numerical",
    "essay": "Essay",
    "match": "Matching",
    "cloze": "Cloze",
}

# Types whose response is the id of one answer option
SINGLE_CHOICE_TYPES = frozenset({"multichoice", "truefalse"})

ADMIN_ROLES = frozenset({"manager", "coursecreator", "admin"})

DEFAULT_MAX_GRADE = 100.0


def strip_html(text: Any) -> str:
    """Drop ``<...>`` markup and trim.

    Scans the string once; a ``<`` that is never closed is kept as text.
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)
    out: list[str] = []
    pending: list[str] = []
    in_tag = False
    for ch in text:
        if in_tag:
            pending.append(ch)
            if ch == ">":
                in_tag = False
                pending.clear()
        elif ch == "<":
            in_tag = True
            pending.append(ch)
        else:
            out.append(ch)
    if in_tag:
        out.extend(pending)
    return "".join(out).strip()


def classify_question_type(raw: Optional[str]) -> str:
    if not raw:
        return "Unknown"
    return QUESTION_TYPES.get(raw, raw)


def round2(value: float) -> float:
    """Round half-up to two decimals (0.125 -> 0.13)."""
    try:
        return float(Decimal(repr(float(value))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0.0


def percentage(achieved: float, maximum: float) -> float:
    return achieved / maximum * 100 if maximum > 0 else 0.0


def format_score(achieved: float, maximum: float) -> float:
    return round2(percentage(achieved, maximum)) if maximum > 0 else 0.0


def clamp_percent(value: float) -> float:
    return min(100.0, max(0.0, value))


def to_float(value: Any, default: float = 0.0) -> float:
    """Lenient numeric parse: numbers and numeric strings, else ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return default if result != result else result  # NaN


def to_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def full_name(first: Any, last: Any) -> str:
    return f"{first or ''} {last or ''}".strip()


def user_from_moodle(data: Dict[str, Any]) -> EnrolledUser:
    roles = [r.get("shortname", "") for r in data.get("roles") or [] if isinstance(r, dict)]
    return EnrolledUser(
        id=data["id"],
        first_name=data.get("firstname") or "",
        last_name=data.get("lastname") or "",
        name=full_name(data.get("firstname"), data.get("lastname")) or data.get("fullname") or "",
        email=data.get("email") or None,
        username=data.get("username") or "",
        roles=roles,
    )


def is_administrative(user: EnrolledUser) -> bool:
    if "admin" in (user.username or "").lower():
        return True
    return any(role in ADMIN_ROLES for role in user.roles)


def is_student(user: EnrolledUser) -> bool:
    return bool(user.email) and not is_administrative(user)


def quiz_max_grade(raw: Any) -> float:
    """Quiz maximum; 100 when Moodle omits it or reports a non-positive grade."""
    grade = to_float(raw, DEFAULT_MAX_GRADE)
    return grade if grade > 0 else DEFAULT_MAX_GRADE


def question_max_mark(raw: Any) -> float:
    """Question maximum mark; 1 when missing or zero."""
    return to_float(raw, 1.0) or 1.0


def quiz_from_moodle(data: Dict[str, Any]) -> Quiz:
    return Quiz(
        id=data["id"],
        course_id=to_int(data.get("course")),
        name=data.get("name") or "",
        intro=strip_html(data.get("intro")),
        max_grade=quiz_max_grade(data.get("grade")),
        time_limit=to_int(data.get("timelimit")) or 0,
    )


def attempt_from_moodle(data: Dict[str, Any]) -> Attempt:
    return Attempt(
        id=data["id"],
        attempt=to_int(data.get("attempt")) or 0,
        user_id=to_int(data.get("userid")),
        quiz_id=to_int(data.get("quiz")),
        state=data.get("state") or "unknown",
        sum_grades=to_float(data.get("sumgrades")),
        time_start=to_int(data.get("timestart")),
        time_finish=to_int(data.get("timefinish")),
    )


def best_attempt(attempts: Iterable[Attempt]) -> Optional[Attempt]:
    """Highest ``sum_grades``; the first one seen wins a tie."""
    best: Optional[Attempt] = None
    for attempt in attempts:
        if best is None or attempt.sum_grades > best.sum_grades:
            best = attempt
    return best
