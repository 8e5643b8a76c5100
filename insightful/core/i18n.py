# Status labels and report headings per locale

DEFAULT_LOCALE = "zh"
LOCALES = ("zh", "en")

TRANSLATIONS = {
    "zh": {
        "status": {
            "PENDING": "排队中",
            "PROCESSING": "AI 分析中",
            "COMPLETED": "已完成",
            "FAILED": "失败",
        },
        "report": {
            "created_at": "创建时间",
            "status": "状态",
            "summary": "会议摘要",
            "no_summary": "未能生成摘要。",
            "action_items": "行动项",
            "no_action_items": "暂无行动项",
            "assignee": "负责人",
            "due_date": "截止日期",
            "key_decisions": "关键决策",
            "no_key_decisions": "暂无关键决策",
            "transcript": "会议转录",
        },
    },
    "en": {
        "status": {
            "PENDING": "Pending",
            "PROCESSING": "AI Analyzing",
            "COMPLETED": "Completed",
            "FAILED": "Failed",
        },
        "report": {
            "created_at": "Created at",
            "status": "Status",
            "summary": "Meeting Summary",
            "no_summary": "No summary was generated.",
            "action_items": "Action Items",
            "no_action_items": "No action items",
            "assignee": "Assignee",
            "due_date": "Due date",
            "key_decisions": "Key Decisions",
            "no_key_decisions": "No key decisions",
            "transcript": "Transcript",
        },
    },
}


def resolve_locale(locale: str | None) -> str:
    """Normalise 'en-US', 'EN', None etc. to a supported locale"""
    if not locale:
        return DEFAULT_LOCALE
    short = locale.strip().lower().split("-")[0].split("_")[0]
    return short if short in LOCALES else DEFAULT_LOCALE


def get_translations(locale: str | None) -> dict:
    return TRANSLATIONS[resolve_locale(locale)]


def status_label(status: str, locale: str | None = None) -> str:
    key = getattr(status, "value", status)
    return get_translations(locale)["status"].get(key, key)
