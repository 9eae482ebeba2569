"""Tests for taskana.core.normalizer — dates, slots, task references, similarity."""

from datetime import date

import pytest

from taskana.core.normalizer import (
    format_display_date,
    normalize_task_reference,
    normalize_time_slot,
    resolve_relative_date,
    similarity,
    weekday_key,
)
from taskana.data.models import TimeSlot

# A Monday
REF = "2026-02-16"


class TestResolveRelativeDate:
    def test_tomorrow(self):
        assert resolve_relative_date("tomorrow", REF) == "2026-02-17"

    def test_weekday_later_this_week(self):
        assert resolve_relative_date("thursday", REF) == "2026-02-19"

    def test_same_weekday_is_next_week(self):
        assert resolve_relative_date("monday", REF) == "2026-02-23"

    def test_gibberish_returns_none(self):
        assert resolve_relative_date("gibberish", REF) is None

    def test_empty_returns_none(self):
        assert resolve_relative_date("", REF) is None

    def test_invalid_reference_returns_none(self):
        assert resolve_relative_date("tomorrow", "not-a-date") is None

    @pytest.mark.parametrize("expr", ["بكرة", "بكره", "غدا", "Tomorrow", "  tomorrow  "])
    def test_tomorrow_variants(self, expr):
        assert resolve_relative_date(expr, REF) == "2026-02-17"

    def test_today(self):
        assert resolve_relative_date("النهارده", REF) == REF

    def test_day_after_tomorrow(self):
        assert resolve_relative_date("بعد بكرة", REF) == "2026-02-18"
        assert resolve_relative_date("day after tomorrow", REF) == "2026-02-18"

    def test_yesterday(self):
        assert resolve_relative_date("امبارح", REF) == "2026-02-15"

    def test_arabic_weekday(self):
        assert resolve_relative_date("الخميس", REF) == "2026-02-19"
        assert resolve_relative_date("السبت", REF) == "2026-02-21"

    def test_weekday_with_filler_words(self):
        assert resolve_relative_date("next thursday", REF) == "2026-02-19"
        assert resolve_relative_date("يوم الخميس", REF) == "2026-02-19"
        assert resolve_relative_date("الخميس الجاي", REF) == "2026-02-19"

    def test_iso_date_passthrough(self):
        assert resolve_relative_date("2026-03-01", REF) == "2026-03-01"

    def test_day_month_year(self):
        assert resolve_relative_date("01/03/2026", REF) == "2026-03-01"

    def test_day_month_year_dashed(self):
        assert resolve_relative_date("19-02-2026", REF) == "2026-02-19"

    def test_month_day_year(self):
        # 19 cannot be a month, so this only parses as MM/dd/yyyy
        assert resolve_relative_date("02/19/2026", REF) == "2026-02-19"


class TestNormalizeTimeSlot:
    def test_canonical_value(self):
        assert normalize_time_slot("after_dhuhr") == TimeSlot.AFTER_DHUHR

    def test_spaces_and_case(self):
        assert normalize_time_slot("After Dhuhr") == TimeSlot.AFTER_DHUHR
        assert normalize_time_slot("BEFORE_ISHA") == TimeSlot.BEFORE_ISHA

    def test_arabic(self):
        assert normalize_time_slot("بعد الضهر") == TimeSlot.AFTER_DHUHR
        assert normalize_time_slot("بعد الظهر") == TimeSlot.AFTER_DHUHR
        assert normalize_time_slot("الصبح") == TimeSlot.AFTER_FAJR
        assert normalize_time_slot("قبل المغرب") == TimeSlot.BEFORE_MAGHRIB

    def test_unknown(self):
        assert normalize_time_slot("midnight") is None
        assert normalize_time_slot("") is None
        assert normalize_time_slot(None) is None


class TestNormalizeTaskReference:
    @pytest.mark.parametrize("raw", ["1", "t-1", "t-001", "T1", "001", 1])
    def test_all_forms_agree(self, raw):
        assert normalize_task_reference(raw) == "t-001"

    def test_idempotent(self):
        once = normalize_task_reference("12")
        assert once == "t-012"
        assert normalize_task_reference(once) == once

    def test_large_numbers_not_truncated(self):
        assert normalize_task_reference("1234") == "t-1234"

    def test_oversized_number_passed_through(self):
        raw = "1" * 5000
        assert normalize_task_reference(raw) == raw

    def test_non_numeric_passthrough(self):
        assert normalize_task_reference("groceries") == "groceries"

    def test_strips_whitespace(self):
        assert normalize_task_reference("  t-3 ") == "t-003"


class TestSimilarity:
    def test_identical_titles(self):
        assert similarity("اشتري خضار", "اشتري خضار") == 1.0

    def test_no_shared_tokens(self):
        assert similarity("اشتري خضار", "اتصل بماما") == 0.0

    def test_partial_overlap(self):
        # {buy, milk} vs {buy, milk, eggs} → 2/3
        assert similarity("buy milk", "buy milk eggs") == pytest.approx(2 / 3)

    def test_above_threshold(self):
        # 3 of 4 words shared → 0.75
        assert similarity("call the plumber today", "call the plumber") >= 0.7

    def test_case_and_punctuation_ignored(self):
        assert similarity("Buy Milk!", "buy milk") == 1.0

    def test_single_letter_tokens_ignored(self):
        assert similarity("a b", "a b") == 0.0

    def test_empty(self):
        assert similarity("", "anything") == 0.0


class TestDisplayHelpers:
    def test_weekday_key(self):
        assert weekday_key(date(2026, 2, 16)) == "mon"
        assert weekday_key(date(2026, 2, 22)) == "sun"

    def test_format_today_and_tomorrow(self):
        today = date(2026, 2, 16)
        assert format_display_date("2026-02-16", today) == "النهارده"
        assert format_display_date("2026-02-17", today) == "بكرة"

    def test_format_other_day(self):
        assert format_display_date("2026-02-19", date(2026, 2, 16)) == "الخميس 02/19"
