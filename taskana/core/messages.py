"""
Taskana — User-facing strings (Egyptian Arabic).

Every reply the bot sends is built from this module, so wording lives in
one place.
"""

from __future__ import annotations

from taskana.data.models import Status, TimeSlot

# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------


def habit_done(name: str) -> str:
    return f"✅ تم تسجيل *{name}* كمكتمل"


def habit_skipped(name: str) -> str:
    return f"⏭️ تم تخطي *{name}*"


def habit_not_found(reference: str) -> str:
    return f'العادة "{reference}" مش موجودة.'


def habit_reminder_start(name: str) -> str:
    return f"🕌 حان وقت *{name}*!\nرد بـ ✅ لما تخلص أو ❌ لو معملتش"


def habit_reminder_end(name: str, minutes: int) -> str:
    return f"⏳ *{name}* هيخلص بعد {minutes} دقيقة. عملته؟"


HABIT_ASK_JUSTIFICATION = "ممكن تقولي ليه متعملتش؟"
HABIT_UNRESOLVED = "مش قادر أحدد العادة اللي تقصدها. ممكن توضح أكتر؟"
NO_HABITS_TODAY = "مفيش عادات مجدولة النهارده."

# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def task_created(title: str) -> str:
    return f'✅ تم إضافة مهمة: "{title}"'


def task_completed(title: str) -> str:
    return f'✅ تم إنهاء: "{title}"'


def task_skipped(title: str) -> str:
    return f'⏭️ تم تخطي: "{title}"'


def task_shifted(title: str, when: str) -> str:
    return f'✅ تم نقل "{title}" لـ {when}'


def task_updated(title: str) -> str:
    return f'تم تحديث المهمة "{title}"'


def task_deleted(title: str) -> str:
    return f'🗑️ تم حذف: "{title}"'


def task_not_found(reference: str) -> str:
    return f"المهمة {reference} مش موجودة."


def task_already_completed(title: str) -> str:
    return f'المهمة "{title}" خلصت قبل كده.'


def task_already_completed_skip(title: str) -> str:
    return f'المهمة "{title}" خلصت قبل كده، مينفعش تتخطاها.'


def task_already_completed_shift(title: str) -> str:
    return f'المهمة "{title}" خلصت، مينفعش تتنقل.'


def task_was_shifted(title: str) -> str:
    return f'المهمة "{title}" اتنقلت ليوم تاني.'


def task_already_shifted(title: str) -> str:
    return f'المهمة "{title}" اتنقلت قبل كده.'


def task_duplicate_prompt(title: str, when: str) -> str:
    return f'فيه مهمة شبهها: "{title}" ({when}). تحب تضيف مهمة جديدة برضه؟'


TASK_MISSING_TITLE = "لازم تحدد عنوان المهمة."
TASK_MISSING_REFERENCE = "أنهي مهمة تقصد؟ قولي رقمها."
TASK_NO_UPDATES = "مفيش تعديلات."
TASK_DELETE_FAILED = "حصل خطأ في حذف المهمة."
TASK_ASK_SHIFT_DATE = "لأي يوم تحب تنقل المهمة؟"
TASK_SHIFT_PAST_DATE = "مينفعش تنقل المهمة لتاريخ فات. اختار تاريخ جاي."
TASK_SHIFT_UNKNOWN_DATE = "مش فاهم التاريخ ده. ممكن تقول بكرة، أو الخميس، أو تاريخ معين؟"
TASK_DUPLICATE_CANCELLED = "تمام، مش هضيف المهمة."
NO_TASKS_TODAY = "مفيش مهام النهارده."
NOTHING_TODAY = "مفيش عادات أو مهام النهارده."

# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

IMAGE_ASK_TAG = "الصورة دي تخص أي عادة أو مهمة من اللي فاتوا؟ رد بالرقم:"
IMAGE_TAGGED = "تم ربط الصورة بنجاح ✅"
IMAGE_NO_ITEMS = "مفيش عادات أو مهام النهارده. الصورة اتحفظت."
IMAGE_INVALID_OPTION = "الرقم ده مش في القايمة. اختار رقم من القايمة."
IMAGE_NOTHING_PENDING = "مفيش صورة مستنية تتربط دلوقتي."

# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

GREETING = "أهلاً! 👋 أنا تسكانا، مساعدك لتتبع العادات والمهام. كيف أقدر أساعدك؟"
HELP = """ممكن تقولي:
• *مهامي* — عرض ملخص اليوم
• *ضيف مهمة [اسم المهمة]* — إضافة مهمة جديدة
• *خلصت [رقم]* — تسجيل مهمة كمكتملة
• *نقل [رقم] لـ [يوم]* — تأجيل مهمة
• *ملخص الأسبوع* — ملخص آخر ٧ أيام
• أو ابعت صورة لربطها بعادة أو مهمة"""
UNKNOWN_INTENT = "مش فاهم قصدك. ممكن تقول: مهامي، ضيف مهمة، خلصت، أو ابعت صورة."
ACTION_CANCELLED = "تم إلغاء العملية."
NOTHING_TO_CONFIRM = "مفيش حاجة مستنية تأكيد دلوقتي."
NOTHING_TO_CANCEL = "مفيش حاجة ألغيها دلوقتي."


def confirmation_prompt(action: str) -> str:
    return f"فهمت إنك عايز {action}. صح؟"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

ERROR_GENERIC = "عذراً، حدث خطأ. حاول مرة أخرى."
TRANSCRIPTION_FAILED = "لم أتمكن من فهم الرسالة الصوتية. حاول تاني أو ابعت نص."

# ---------------------------------------------------------------------------
# Display names
# ---------------------------------------------------------------------------

SLOT_NAMES: dict[TimeSlot, str] = {
    TimeSlot.AFTER_FAJR: "بعد الفجر",
    TimeSlot.BEFORE_DHUHR: "قبل الظهر",
    TimeSlot.AFTER_DHUHR: "بعد الظهر",
    TimeSlot.BEFORE_ASR: "قبل العصر",
    TimeSlot.AFTER_ASR: "بعد العصر",
    TimeSlot.BEFORE_MAGHRIB: "قبل المغرب",
    TimeSlot.AFTER_MAGHRIB: "بعد المغرب",
    TimeSlot.BEFORE_ISHA: "قبل العشاء",
    TimeSlot.AFTER_ISHA: "بعد العشاء",
}

STATUS_EMOJI: dict[Status, str] = {
    Status.DONE: "✅",
    Status.PENDING: "⬜",
    Status.SKIPPED: "⏭️",
    Status.SHIFTED: "➡️",
}
