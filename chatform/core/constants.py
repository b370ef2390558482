# Session lifecycle

STATUS_COLLECTING = "collecting"
STATUS_CONFIRMING = "confirming"
STATUS_ENHANCING = "enhancing"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

ACTIVE_STATUSES = (STATUS_COLLECTING, STATUS_CONFIRMING, STATUS_ENHANCING)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

# Allowed status edges. Cancellation is reachable from every active status.
TRANSITIONS = {
    STATUS_COLLECTING: {STATUS_CONFIRMING, STATUS_ENHANCING, STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_CONFIRMING: {STATUS_COMPLETED, STATUS_ENHANCING, STATUS_COLLECTING, STATUS_CANCELLED},
    STATUS_ENHANCING: {STATUS_CONFIRMING, STATUS_COLLECTING, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}

# Field types

FIELD_TEXT = "text"
FIELD_NUMBER = "number"
FIELD_SELECT = "select"

FIELD_TYPE_ALIASES = {
    "text": FIELD_TEXT,
    "string": FIELD_TEXT,
    "textarea": FIELD_TEXT,
    "number": FIELD_NUMBER,
    "numeric": FIELD_NUMBER,
    "integer": FIELD_NUMBER,
    "int": FIELD_NUMBER,
    "float": FIELD_NUMBER,
    "select": FIELD_SELECT,
    "enum": FIELD_SELECT,
}

# Intents

INTENT_PROVIDE_VALUE = "provide_value"
INTENT_QUESTION = "question"
INTENT_SUGGEST = "suggest"
INTENT_SKIP = "skip"
INTENT_UNCLEAR = "unclear"

INTENTS = (INTENT_PROVIDE_VALUE, INTENT_QUESTION, INTENT_SUGGEST, INTENT_SKIP, INTENT_UNCLEAR)

# Markers the composing model may emit

FIELD_MARKER = "FIELD_COLLECTED:"
COMPLETE_SIGNAL = "DATA_COLLECTION_COMPLETE"
CANCEL_SIGNAL = "DATA_COLLECTION_CANCELLED"

# Conversational phrase sets (lowercase)

CANCEL_PHRASES = [
    "cancel", "stop", "quit", "exit", "abort", "nevermind", "never mind",
    "إلغاء", "الغاء", "iptal", "vazgeç",
]

CONFIRM_WORDS = [
    "yes", "y", "confirm", "correct", "ok", "okay", "looks good", "perfect", "submit",
    "نعم", "تأكيد", "تاكيد", "صحيح", "موافق", "اكيد", "أكيد",
    "evet", "onayla", "tamam",
]

REJECT_WORDS = [
    "no", "n", "change", "modify", "edit", "wrong", "incorrect",
    "لا", "تغيير", "تعديل", "خطأ", "غلط",
    "hayır", "hayir", "değiştir", "yanlış",
]

COMPLETION_PHRASES = [
    "done", "finish", "finished", "i'm done", "im done", "i am done", "that's all",
    "thats all", "that is all", "no more changes", "nothing else", "all good",
    "تم", "انتهيت", "bitti", "tamamdır",
]

# Labelled-summary synonyms -> field name
LABEL_SYNONYMS = {
    "name": ["title", "course name"],
    "level": ["difficulty", "difficulty level"],
    "lessons_count": ["lessons", "number of lessons", "lesson count"],
}

# Closed set of keys allowed in SessionState.metadata
META_PENDING_FIELD = "pending_field"
META_OUTPUT_MODIFICATIONS = "output_modifications"
META_SKIPPED_FIELDS = "skipped_fields"
META_LAST_RESPONSE = "last_response"
META_SOURCE = "source"
META_ACTION_PREVIEW = "action_preview"

METADATA_KEYS = frozenset({
    META_PENDING_FIELD,
    META_OUTPUT_MODIFICATIONS,
    META_SKIPPED_FIELDS,
    META_LAST_RESPONSE,
    META_SOURCE,
    META_ACTION_PREVIEW,
})

DEFAULT_LOCALE = "en"
STATE_KEY_PREFIX = "chatform_state_"
CONFIG_KEY_PREFIX = "chatform_config_"
