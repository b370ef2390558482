from __future__ import annotations

from typing import Any, Dict, List, Optional

from .constants import DEFAULT_LOCALE
from .mapping import is_empty
from .types import CollectionConfig, FieldError, FieldSpec, SessionState
from .validator import validation_hints


# -----------------------------
# Catalogs (English is the fallback for every key)
# -----------------------------
CATALOGS: Dict[str, Dict[str, str]] = {
    "en": {
        "hello": "Hello! I'll help you collect the information for {title}. Let's get started!",
        "already_have": "I already have some information:",
        "provide": "Please provide the {label}",
        "examples": "Examples: {items}",
        "options": "Available options: {items}",
        "requirements": "Requirements: {items}",
        "recorded": "Great! I've recorded {label}: {value}",
        "invalid": "That doesn't work for {label}:",
        "try_again": "Please try again.",
        "question": "I need the {label} next.",
        "unclear": "Sorry, I didn't catch that.",
        "skipped": "No problem, I've skipped {label}.",
        "cannot_skip": "{label} is required, so it can't be skipped.",
        "suggestions_intro": "Here are some suggestions for {label}:",
        "suggestions_pick": "Reply with a number to pick one, or type your own.",
        "no_suggestions": "I don't have suggestions for {label}. Please type your own.",
        "summary_intro": "Here's a summary of your information:",
        "updated_intro": "Here's your updated information:",
        "what_happens": "## What will happen:",
        "please_confirm": "**Please confirm:**",
        "confirm_yes": "- Say **'yes'** or **'confirm'** to proceed",
        "confirm_no": "- Say **'no'** or **'change'** to modify any information",
        "confirm_cancel": "- Say **'cancel'** to stop",
        "confirm_reask": "Please reply **yes** to confirm or **no** to make changes.",
        "enhance_which": "What would you like to change? You can update: {items}",
        "enhance_pending": "What should the new {label} be?",
        "enhance_updated": "Updated {label} to: {value}",
        "enhance_more": "Would you like to make any other changes? Say 'done' when you're finished, or 'yes' to confirm.",
        "enhance_no_change": "I couldn't tell which field to change.",
        "output_updated": "I've updated the structure based on your feedback:",
        "output_more": "Would you like any other changes, or shall we proceed with this?",
        "restart": "No problem, let's start over.",
        "cancelled": "Data collection cancelled.",
        "completed": "Thank you! Your information has been submitted successfully.",
        "completion_failed": "Something went wrong while completing your request: {error}",
        "fix_errors": "Some information needs fixing before I can finish:",
        "no_session": "No active data collection session found.",
        "no_config": "Configuration not found.",
        "finished": "This data collection session has already finished.",
        "summary_title": "## Summary: {title}",
        "optional": " (optional)",
        "not_provided": "(not provided)",
        "default_action": "This will complete the '{title}' process with the information you provided.",
        "extracted": "I extracted the following information from your document:",
    },
    "ar": {
        "hello": "مرحباً! سأساعدك في جمع المعلومات المطلوبة لـ {title}. لنبدأ!",
        "already_have": "لدي بالفعل بعض المعلومات:",
        "provide": "يرجى تقديم {label}",
        "examples": "أمثلة: {items}",
        "options": "الخيارات المتاحة: {items}",
        "requirements": "المتطلبات: {items}",
        "recorded": "رائع! لقد سجلت {label}: {value}",
        "invalid": "هذه القيمة غير صالحة لـ {label}:",
        "try_again": "يرجى المحاولة مرة أخرى.",
        "question": "أحتاج إلى {label} الآن.",
        "unclear": "عذراً، لم أفهم ذلك.",
        "skipped": "لا مشكلة، تم تخطي {label}.",
        "cannot_skip": "{label} مطلوب ولا يمكن تخطيه.",
        "suggestions_intro": "إليك بعض الاقتراحات لـ {label}:",
        "suggestions_pick": "أرسل رقماً لاختيار اقتراح، أو اكتب قيمتك الخاصة.",
        "no_suggestions": "ليس لدي اقتراحات لـ {label}. يرجى كتابة قيمتك.",
        "summary_intro": "إليك ملخص معلوماتك:",
        "updated_intro": "إليك معلوماتك المحدثة:",
        "what_happens": "## ما سيحدث:",
        "please_confirm": "**يرجى التأكيد:**",
        "confirm_yes": "- قل **'نعم'** أو **'تأكيد'** للمتابعة",
        "confirm_no": "- قل **'لا'** أو **'تغيير'** لتعديل أي معلومات",
        "confirm_cancel": "- قل **'إلغاء'** للإيقاف",
        "confirm_reask": "يرجى الرد بـ **نعم** للتأكيد أو **لا** لإجراء تغييرات.",
        "enhance_which": "ما الذي تريد تغييره؟ يمكنك تعديل: {items}",
        "enhance_pending": "ما هي القيمة الجديدة لـ {label}؟",
        "enhance_updated": "تم تحديث {label} إلى: {value}",
        "enhance_more": "هل تريد إجراء أي تغييرات أخرى؟ قل 'تم' عند الانتهاء، أو 'نعم' للتأكيد.",
        "enhance_no_change": "لم أتمكن من تحديد الحقل الذي تريد تغييره.",
        "output_updated": "لقد قمت بتحديث الهيكل بناءً على ملاحظاتك:",
        "output_more": "هل تريد أي تغييرات أخرى، أم نتابع بهذا؟",
        "restart": "لا مشكلة، لنبدأ من جديد.",
        "cancelled": "تم إلغاء جمع البيانات.",
        "completed": "شكراً لك! تم إرسال معلوماتك بنجاح.",
        "completion_failed": "حدث خطأ أثناء إكمال طلبك: {error}",
        "fix_errors": "بعض المعلومات تحتاج إلى تصحيح قبل الإنهاء:",
        "no_session": "لم يتم العثور على جلسة جمع بيانات نشطة.",
        "no_config": "لم يتم العثور على الإعدادات.",
        "finished": "جلسة جمع البيانات هذه انتهت بالفعل.",
        "summary_title": "## ملخص: {title}",
        "optional": " (اختياري)",
        "not_provided": "(غير متوفر)",
        "default_action": "سيتم إكمال عملية '{title}' بالمعلومات التي قدمتها.",
        "extracted": "استخرجت المعلومات التالية من مستندك:",
    },
    "tr": {
        "hello": "Merhaba! {title} için gerekli bilgileri toplamanıza yardımcı olacağım. Başlayalım!",
        "already_have": "Elimde bazı bilgiler zaten var:",
        "provide": "Lütfen {label} bilgisini girin",
        "examples": "Örnekler: {items}",
        "options": "Seçenekler: {items}",
        "requirements": "Gereksinimler: {items}",
        "recorded": "Harika! {label} kaydedildi: {value}",
        "invalid": "{label} için bu değer geçerli değil:",
        "try_again": "Lütfen tekrar deneyin.",
        "question": "Sıradaki bilgi: {label}.",
        "unclear": "Üzgünüm, anlayamadım.",
        "skipped": "Sorun değil, {label} atlandı.",
        "cannot_skip": "{label} zorunlu, atlanamaz.",
        "suggestions_intro": "{label} için bazı öneriler:",
        "suggestions_pick": "Birini seçmek için numarasını yazın ya da kendi değerinizi girin.",
        "no_suggestions": "{label} için önerim yok. Lütfen kendi değerinizi yazın.",
        "summary_intro": "Bilgilerinizin özeti:",
        "updated_intro": "Güncellenmiş bilgileriniz:",
        "what_happens": "## Ne olacak:",
        "please_confirm": "**Lütfen onaylayın:**",
        "confirm_yes": "- Devam etmek için **'evet'** veya **'onayla'** yazın",
        "confirm_no": "- Bir bilgiyi değiştirmek için **'hayır'** veya **'değiştir'** yazın",
        "confirm_cancel": "- Durdurmak için **'iptal'** yazın",
        "confirm_reask": "Onaylamak için **evet**, değişiklik için **hayır** yazın.",
        "enhance_which": "Neyi değiştirmek istersiniz? Güncellenebilir alanlar: {items}",
        "enhance_pending": "Yeni {label} ne olmalı?",
        "enhance_updated": "{label} güncellendi: {value}",
        "enhance_more": "Başka bir değişiklik var mı? Bitirdiğinizde 'bitti', onaylamak için 'evet' yazın.",
        "enhance_no_change": "Hangi alanı değiştirmek istediğinizi anlayamadım.",
        "output_updated": "Yapıyı geri bildiriminize göre güncelledim:",
        "output_more": "Başka değişiklik ister misiniz, yoksa bununla devam edelim mi?",
        "restart": "Sorun değil, baştan başlayalım.",
        "cancelled": "Veri toplama iptal edildi.",
        "completed": "Teşekkürler! Bilgileriniz başarıyla gönderildi.",
        "completion_failed": "İsteğiniz tamamlanırken bir hata oluştu: {error}",
        "fix_errors": "Bitirmeden önce bazı bilgilerin düzeltilmesi gerekiyor:",
        "no_session": "Aktif bir veri toplama oturumu bulunamadı.",
        "no_config": "Yapılandırma bulunamadı.",
        "finished": "Bu veri toplama oturumu zaten tamamlandı.",
        "summary_title": "## Özet: {title}",
        "optional": " (isteğe bağlı)",
        "not_provided": "(girilmedi)",
        "default_action": "'{title}' işlemi verdiğiniz bilgilerle tamamlanacak.",
        "extracted": "Belgenizden şu bilgileri çıkardım:",
    },
}


def t(key: str, locale: Optional[str] = None, **kwargs: Any) -> str:
    catalog = CATALOGS.get((locale or DEFAULT_LOCALE).lower(), CATALOGS[DEFAULT_LOCALE])
    template = catalog.get(key) or CATALOGS[DEFAULT_LOCALE][key]
    return template.format(**kwargs) if kwargs else template


# -----------------------------
# Composed texts
# -----------------------------
def field_prompt(spec: FieldSpec, locale: Optional[str] = None) -> str:
    if spec.prompt:
        return spec.prompt

    lines = [t("provide", locale, label=spec.label)]
    if spec.examples:
        lines.append(t("examples", locale, items=", ".join(spec.examples)))
    if spec.options:
        lines.append(t("options", locale, items=", ".join(spec.options)))
    hints = [h for h in validation_hints(spec) if not h.startswith("one of:")]
    if hints:
        lines.append(t("requirements", locale, items=", ".join(hints)))
    return "\n\n".join(lines)


def greeting_text(
    config: CollectionConfig,
    state: Optional[SessionState],
    next_field: Optional[str],
    locale: Optional[str] = None,
) -> str:
    parts = [t("hello", locale, title=config.display_title)]

    collected = {k: v for k, v in (state.collected_data if state else {}).items() if not is_empty(v)}
    if collected:
        lines = [t("already_have", locale)]
        for name, value in collected.items():
            spec = config.get_field(name)
            lines.append(f"✓ {spec.label if spec else name}: {value}")
        parts.append("\n".join(lines))

    spec = config.get_field(next_field)
    if spec is not None:
        parts.append(field_prompt(spec, locale))
    return "\n\n".join(parts)


def format_errors(errors: Dict[str, List[FieldError]]) -> str:
    return "\n".join(f"- {e.message}" for errs in errors.values() for e in errs)


def confirmation_text(
    summary: str,
    action_summary: str,
    locale: Optional[str] = None,
    *,
    updated: bool = False,
) -> str:
    return "\n".join(
        [
            t("updated_intro" if updated else "summary_intro", locale),
            "",
            summary.strip(),
            "",
            "---",
            "",
            t("what_happens", locale),
            "",
            action_summary.strip(),
            "",
            "---",
            "",
            t("please_confirm", locale),
            t("confirm_yes", locale),
            t("confirm_no", locale),
            t("confirm_cancel", locale),
        ]
    )
