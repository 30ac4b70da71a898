# User-facing strings. Arabic and English are the two languages the client
# ships with; any other language tag falls back to English.

_MESSAGES: dict[str, dict[str, str]] = {
    "board_updated": {
        "en": "The board has been updated.",
        "ar": "تم تحديث اللوحة.",
    },
    "not_understood": {
        "en": "I didn't understand that. Could you try rephrasing?",
        "ar": "لم أفهم الطلب. هل يمكنك المحاولة مرة أخرى بصيغة مختلفة؟",
    },
    "rate_limited": {
        "en": "I've run out of thinking power (quota exceeded). Please wait a moment and try again.",
        "ar": "نفدت طاقة التفكير لدي (تم تجاوز الحصة). انتظر قليلاً ثم حاول مرة أخرى.",
    },
    "error": {
        "en": "Sorry, an error occurred. ({detail})",
        "ar": "عذراً، حدث خطأ. ({detail})",
    },
    "greeting": {
        "en": "Hi! I'm your visual assistant. What would you like to learn today?",
        "ar": "أهلاً بك! أنا مساعدك البصري. عن ماذا تريد أن نتعلم اليوم؟",
    },
}


def language_code(language: str) -> str:
    """'Arabic', 'ar-EG', 'ar' -> 'ar'; everything else -> 'en'."""
    return "ar" if (language or "").strip().lower().startswith("ar") else "en"


def localized(key: str, language: str, **kwargs) -> str:
    text = _MESSAGES[key][language_code(language)]
    return text.format(**kwargs) if kwargs else text
