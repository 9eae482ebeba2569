"""
Taskana — Entity Normalizer.

Pure helpers that turn loosely-typed values extracted from Arabic/English
messages into canonical forms: ISO dates, time slots, task IDs. None of
these functions raise on bad input; they return None (or pass the value
through) and let the caller decide.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

from taskana.data.models import DAYS_OF_WEEK, TimeSlot

# ---------------------------------------------------------------------------
# Relative dates
# ---------------------------------------------------------------------------

_DAY_OFFSETS: dict[str, int] = {
    # today
    "today": 0, "النهارده": 0, "النهاردة": 0, "اليوم": 0, "انهارده": 0,
    # tomorrow
    "tomorrow": 1, "بكرة": 1, "بكره": 1, "غدا": 1, "غدًا": 1, "غداً": 1,
    # day after tomorrow
    "day after tomorrow": 2, "the day after tomorrow": 2,
    "بعد بكرة": 2, "بعد بكره": 2, "بعد غد": 2, "بعد غدا": 2,
    # yesterday (resolvable; shifting into the past is rejected later)
    "yesterday": -1, "امبارح": -1, "أمبارح": -1, "إمبارح": -1, "أمس": -1, "امس": -1,
}

# Monday == 0, matching date.weekday()
_WEEKDAYS: dict[str, int] = {
    "monday": 0, "mon": 0, "الاثنين": 0, "الإثنين": 0, "الأثنين": 0, "اتنين": 0, "الاتنين": 0,
    "tuesday": 1, "tue": 1, "الثلاثاء": 1, "الثلاث": 1, "التلات": 1, "تلات": 1,
    "wednesday": 2, "wed": 2, "الأربعاء": 2, "الاربعاء": 2, "الأربع": 2, "الاربع": 2, "أربع": 2, "اربع": 2,
    "thursday": 3, "thu": 3, "الخميس": 3, "خميس": 3,
    "friday": 4, "fri": 4, "الجمعة": 4, "الجمعه": 4, "جمعة": 4, "جمعه": 4,
    "saturday": 5, "sat": 5, "السبت": 5, "سبت": 5,
    "sunday": 6, "sun": 6, "الأحد": 6, "الاحد": 6, "أحد": 6, "احد": 6, "الحد": 6,
}

# Tried in order; the first format that parses wins
_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%m/%d/%Y")

_PREFIXES = ("next ", "on ", "this ", "يوم ", "لـ", "ل")
_SUFFIXES = (" الجاي", " الجاية", " الجايه", " اللي جاي", " next")


def _candidates(expression: str) -> list[str]:
    """The expression itself, then variants with filler words stripped."""
    found = [expression]
    for prefix in _PREFIXES:
        if expression.startswith(prefix):
            found.append(expression[len(prefix):].strip())
    for item in list(found):
        for suffix in _SUFFIXES:
            if item.endswith(suffix):
                found.append(item[: -len(suffix)].strip())
    return [c for c in found if c]


def _lookup(expression: str, ref: date) -> date | None:
    if expression in _DAY_OFFSETS:
        return ref + timedelta(days=_DAY_OFFSETS[expression])

    if expression in _WEEKDAYS:
        # Strictly after the reference date: "monday" on a Monday is next week
        ahead = (_WEEKDAYS[expression] - ref.weekday()) % 7 or 7
        return ref + timedelta(days=ahead)

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(expression, fmt).date()
        except ValueError:
            continue
    return None


def resolve_relative_date(expression: str, reference_date: str) -> str | None:
    """Resolve "بكرة", "thursday", "2026-03-01"… to an ISO date.

    Args:
        expression: The raw date words from the user.
        reference_date: ISO date the expression is relative to (usually today).

    Returns:
        ISO date string, or None when the expression isn't recognised.
    """
    if not expression:
        return None

    try:
        ref = date.fromisoformat(reference_date)
    except ValueError:
        return None

    normalized = re.sub(r"\s+", " ", expression.strip().lower())
    for candidate in _candidates(normalized):
        resolved = _lookup(candidate, ref)
        if resolved is not None:
            return resolved.isoformat()
    return None


# ---------------------------------------------------------------------------
# Time slots
# ---------------------------------------------------------------------------

_ARABIC_SLOTS: dict[str, TimeSlot] = {
    "بعد_الفجر": TimeSlot.AFTER_FAJR,
    "بعد_فجر": TimeSlot.AFTER_FAJR,
    "الفجر": TimeSlot.AFTER_FAJR,
    "الصبح": TimeSlot.AFTER_FAJR,
    "قبل_الظهر": TimeSlot.BEFORE_DHUHR,
    "قبل_الضهر": TimeSlot.BEFORE_DHUHR,
    "بعد_الظهر": TimeSlot.AFTER_DHUHR,
    "بعد_الضهر": TimeSlot.AFTER_DHUHR,
    "الظهر": TimeSlot.AFTER_DHUHR,
    "الضهر": TimeSlot.AFTER_DHUHR,
    "قبل_العصر": TimeSlot.BEFORE_ASR,
    "بعد_العصر": TimeSlot.AFTER_ASR,
    "العصر": TimeSlot.AFTER_ASR,
    "قبل_المغرب": TimeSlot.BEFORE_MAGHRIB,
    "بعد_المغرب": TimeSlot.AFTER_MAGHRIB,
    "المغرب": TimeSlot.AFTER_MAGHRIB,
    "قبل_العشاء": TimeSlot.BEFORE_ISHA,
    "قبل_العشا": TimeSlot.BEFORE_ISHA,
    "بعد_العشاء": TimeSlot.AFTER_ISHA,
    "بعد_العشا": TimeSlot.AFTER_ISHA,
    "العشاء": TimeSlot.AFTER_ISHA,
    "بالليل": TimeSlot.AFTER_ISHA,
}


def normalize_time_slot(raw: str | None) -> TimeSlot | None:
    """Map "after dhuhr", "AFTER_DHUHR", "بعد الضهر"… to a TimeSlot."""
    if not raw:
        return None
    key = re.sub(r"\s+", "_", str(raw).strip().lower())
    try:
        return TimeSlot(key)
    except ValueError:
        return _ARABIC_SLOTS.get(key)


# ---------------------------------------------------------------------------
# Task references
# ---------------------------------------------------------------------------

_TASK_REF_RE = re.compile(r"^(?:t-?)?(\d+)$", re.IGNORECASE)


def normalize_task_reference(raw: str | int) -> str:
    """Canonicalize "1", "001", "t1", "T-001" to "t-001".

    Anything non-numeric is returned unchanged; the lookup will simply miss.
    """
    text = str(raw).strip()
    match = _TASK_REF_RE.match(text)
    if match is None:
        return text
    # int() also accepts Arabic-Indic digits
    try:
        number = int(match.group(1))
    except ValueError:
        # Past the interpreter's integer string conversion limit
        return text
    return f"t-{number:03d}"


# ---------------------------------------------------------------------------
# Title similarity
# ---------------------------------------------------------------------------

_NON_WORD_RE = re.compile(r"[^\u0600-\u06FFa-z0-9\s]")


def _tokens(text: str) -> set[str]:
    cleaned = _NON_WORD_RE.sub("", text.lower())
    return {word for word in cleaned.split() if len(word) > 1}


def similarity(a: str, b: str) -> float:
    """Jaccard overlap of the word sets of two titles, in [0, 1].

    Purely lexical: "اشتري خضار" and "شراء خضروات" score 0 even though they
    mean the same thing.
    """
    words_a = _tokens(a)
    words_b = _tokens(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

_ARABIC_DAY_NAMES = ("الاثنين", "الثلاثاء", "الأربعاء", "الخميس", "الجمعة", "السبت", "الأحد")


def weekday_key(day: date) -> str:
    """Weekday key used by habit schedules ("mon" … "sun")."""
    return DAYS_OF_WEEK[day.weekday()]


def format_display_date(iso_date: str, today: date) -> str:
    """Render a date the way the user would say it: النهارده / بكرة / الخميس 02/19."""
    target = date.fromisoformat(iso_date)
    if target == today:
        return "النهارده"
    if target == today + timedelta(days=1):
        return "بكرة"
    return f"{_ARABIC_DAY_NAMES[target.weekday()]} {target:%m/%d}"
