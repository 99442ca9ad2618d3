"""Pure text helpers for the chat page."""

import html
import re
from datetime import UTC, datetime

# Applied in order after HTML escaping
_MARKDOWN_RULES: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"```(\w*)\n?([\s\S]*?)```"),
        r'<pre class="bg-gray-800 text-gray-100 rounded-lg p-3 my-2 overflow-x-auto '
        r'text-xs"><code>\2</code></pre>',
    ),
    (
        re.compile(r"`([^`\n]+)`"),
        r'<code class="bg-gray-200 text-pink-600 px-1.5 py-0.5 rounded text-xs">\1</code>',
    ),
    (re.compile(r"\*\*(.+?)\*\*"), r"<strong>\1</strong>"),
    (re.compile(r"(?<![\w*])\*([^*\n]+)\*(?![\w*])"), r"<em>\1</em>"),
    (
        re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)"),
        r'<a href="\2" class="text-blue-600 underline" target="_blank">\1</a>',
    ),
]


def markdown_to_html(text: str) -> str:
    """Render the small markdown subset models commonly emit.

    Supports fenced code, inline code, bold, italic and http(s) links.
    Input is HTML-escaped first, so only the generated tags are live.
    """
    text = html.escape(text, quote=False)
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.replace("\n", "<br>")


def format_date(value: datetime, now: datetime | None = None) -> str:
    """Relative day label for the session list."""
    now = now or datetime.now(UTC)
    days = (now - value).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return value.astimezone().strftime("%x")


def format_time(value: datetime) -> str:
    return value.astimezone().strftime("%I:%M %p")
