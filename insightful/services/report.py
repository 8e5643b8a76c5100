# Markdown export of a job's analysis result

import re
from typing import Optional

from insightful.core.i18n import get_translations, status_label
from insightful.models import MeetingJob

# Letters, digits, CJK, dash, underscore and whitespace survive; the rest is dropped
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9一-龥\-_\s]")


def export_filename(file_name: Optional[str], job_id: int) -> str:
    """Sanitised download name with a single .md extension"""
    base = file_name or ""
    if base.lower().endswith(".md"):
        base = base[:-3]
    cleaned = _UNSAFE_CHARS.sub("", base).strip()
    if not cleaned:
        cleaned = f"meeting-{job_id}"
    return f"{cleaned}.md"


def render_markdown(job: MeetingJob, locale: Optional[str] = None) -> str:
    t = get_translations(locale)["report"]
    analysis = job.analysis_result

    lines = [f"# {job.file_name or f'Job {job.id}'}", ""]
    if job.created_at:
        lines.append(f"- **{t['created_at']}:** {job.created_at.isoformat()}")
    lines.append(f"- **{t['status']}:** {status_label(job.status, locale)}")
    lines.append("")

    lines += [f"## {t['summary']}", "", (analysis.summary if analysis and analysis.summary else t["no_summary"]), ""]

    lines += [f"## {t['action_items']}", ""]
    action_items = (analysis.action_items if analysis else None) or []
    if action_items:
        for item in action_items:
            if isinstance(item, str):
                lines.append(f"- [ ] {item}")
                continue
            task = item.get("task") or item.get("text") or ""
            extras = []
            if item.get("assignee") or item.get("owner"):
                extras.append(f"{t['assignee']}: {item.get('assignee') or item.get('owner')}")
            if item.get("due_date") or item.get("dueDate"):
                extras.append(f"{t['due_date']}: {item.get('due_date') or item.get('dueDate')}")
            suffix = f" ({'; '.join(extras)})" if extras else ""
            lines.append(f"- [ ] {task}{suffix}")
    else:
        lines.append(t["no_action_items"])
    lines.append("")

    lines += [f"## {t['key_decisions']}", ""]
    decisions = (analysis.key_decisions if analysis else None) or []
    if decisions:
        for decision in decisions:
            if isinstance(decision, str):
                lines.append(f"- {decision}")
                continue
            text = decision.get("text", "")
            context = decision.get("context")
            lines.append(f"- {text}" + (f" ({context})" if context else ""))
    else:
        lines.append(t["no_key_decisions"])
    lines.append("")

    if analysis and analysis.transcript:
        lines += [f"## {t['transcript']}", "", analysis.transcript, ""]

    return "\n".join(lines)
