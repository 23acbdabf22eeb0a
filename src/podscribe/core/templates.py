"""
Placeholder templating for transcript paths and documents.

Templates use ``{{tag}}`` or ``{{tag:arg1,arg2}}`` placeholders. Unknown tags
are left in place verbatim and reported through the notify callback, with a
"did you mean" suggestion when a known tag is close enough.
"""

import html
import re
from datetime import datetime
from difflib import SequenceMatcher
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..utils.logger import get_logger
from .episode import Episode

logger = get_logger(__name__)

TagValue = Union[str, Callable[..., str]]
NotifyCallback = Callable[[str], None]

PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)(:\s*?.+?)?\}\}")
SUGGESTION_THRESHOLD = 0.4
DEFAULT_DATE_FORMAT = "YYYY-MM-DD"

_ILLEGAL_FILENAME_CHARS = re.compile(r"[\\,#%&{}/*<>$'\":@‣|.?]")

# Longest tokens first so "MMMM" wins over "MM".
_MOMENT_TOKENS = re.compile(
    r"\[[^\]]*\]|YYYY|YY|MMMM|MMM|MM|M|DDDD|DD|D|dddd|ddd|HH|H|hh|h|mm|m|ss|s|A|a"
)


def format_moment(value: datetime, fmt: str = DEFAULT_DATE_FORMAT) -> str:
    """Format a datetime using moment.js style tokens (YYYY-MM-DD, MMM D, ...)."""
    hour12 = value.hour % 12 or 12
    tokens = {
        "YYYY": f"{value.year:04d}",
        "YY": f"{value.year % 100:02d}",
        "MMMM": value.strftime("%B"),
        "MMM": value.strftime("%b"),
        "MM": f"{value.month:02d}",
        "M": str(value.month),
        "DDDD": f"{value.timetuple().tm_yday:03d}",
        "DD": f"{value.day:02d}",
        "D": str(value.day),
        "dddd": value.strftime("%A"),
        "ddd": value.strftime("%a"),
        "HH": f"{value.hour:02d}",
        "H": str(value.hour),
        "hh": f"{hour12:02d}",
        "h": str(hour12),
        "mm": f"{value.minute:02d}",
        "m": str(value.minute),
        "ss": f"{value.second:02d}",
        "s": str(value.second),
        "A": "AM" if value.hour < 12 else "PM",
        "a": "am" if value.hour < 12 else "pm",
    }

    def replace(match: re.Match) -> str:
        token = match.group(0)
        if token.startswith("["):
            return token[1:-1]
        return tokens[token]

    return _MOMENT_TOKENS.sub(replace, fmt)


def html_to_markdown(text: str) -> str:
    """Reduce episode show-notes HTML to plain markdown-ish text."""
    if not text:
        return ""
    text = re.sub(r"(?i)<br\s*/?>", "\n", text)
    text = re.sub(r"(?i)</p\s*>", "\n\n", text)
    text = re.sub(r"(?i)<li[^>]*>", "- ", text)
    text = re.sub(r"(?i)</li\s*>", "\n", text)
    text = re.sub(
        r'(?is)<a[^>]*href="([^"]*)"[^>]*>(.*?)</a>',
        lambda m: f"[{m.group(2)}]({m.group(1)})",
        text,
    )
    text = re.sub(r"(?is)<(strong|b)>(.*?)</\1>", r"**\2**", text)
    text = re.sub(r"(?is)<(em|i)>(.*?)</\1>", r"*\2*", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def replace_illegal_filename_characters(value: str) -> str:
    value = _ILLEGAL_FILENAME_CHARS.sub("", value)
    value = value.replace("\n", " ")
    return re.sub(r" {2,}", " ", value)


def suggest_tag(tag_id: str, known_tags) -> Optional[str]:
    """Return the closest known tag, or None when nothing is similar enough."""
    needle = tag_id.strip().lower()
    best, best_score = None, 0.0
    for tag in known_tags:
        score = SequenceMatcher(None, needle, tag).ratio()
        if score > best_score:
            best, best_score = tag, score
    return best if best_score >= SUGGESTION_THRESHOLD else None


class TemplateEngine:
    def __init__(self, notify: Optional[NotifyCallback] = None):
        self._tags: Dict[str, TagValue] = {}
        self._notify = notify

    @property
    def tags(self) -> list:
        return list(self._tags)

    def add_tag(self, tag: str, value: TagValue) -> None:
        self._tags[tag.lower()] = value

    def _report_invalid(self, tag_id: str) -> None:
        similar = suggest_tag(tag_id, self._tags)
        message = f"Tag {tag_id} is invalid."
        if similar:
            message += f" Did you mean {similar}?"
        logger.warning(message)
        if self._notify:
            self._notify(message)

    def render(self, template: str) -> str:
        def replace(match: re.Match) -> str:
            tag_id, params = match.group(1), match.group(2)
            value = self._tags.get(tag_id.lower())

            if value is None:
                self._report_invalid(tag_id)
                return match.group(0)

            if callable(value):
                if params:
                    return value(*params[1:].split(","))
                return value()

            return value

        return PLACEHOLDER_PATTERN.sub(replace, template)


def _name_tag(raw: str) -> Callable[..., str]:
    def render(whitespace_replacement: Optional[str] = None) -> str:
        legal = replace_illegal_filename_characters(raw)
        if whitespace_replacement:
            return re.sub(r"\s+", whitespace_replacement, legal)
        return legal

    return render


def _date_tag(episode: Episode) -> Callable[..., str]:
    def render(fmt: Optional[str] = None) -> str:
        if not episode.episode_date:
            return ""
        return format_moment(episode.episode_date, fmt or DEFAULT_DATE_FORMAT)

    return render


def _description_tag(episode: Episode) -> Callable[..., str]:
    def render(prepend_to_lines: Optional[str] = None) -> str:
        description = html_to_markdown(episode.description)
        if prepend_to_lines:
            return "\n".join(f"{prepend_to_lines}{line}" for line in description.split("\n"))
        return description

    return render


def _path_engine(episode: Episode, notify: Optional[NotifyCallback]) -> TemplateEngine:
    engine = TemplateEngine(notify)
    engine.add_tag("title", _name_tag(episode.title))
    engine.add_tag("podcast", _name_tag(episode.podcast_name))
    engine.add_tag("date", _date_tag(episode))
    return engine


def render_file_path(
    template: str, episode: Episode, notify: Optional[NotifyCallback] = None
) -> str:
    return _path_engine(episode, notify).render(template)


def render_transcript(
    template: str,
    episode: Episode,
    transcript: str,
    notify: Optional[NotifyCallback] = None,
) -> str:
    engine = _path_engine(episode, notify)
    engine.add_tag("transcript", transcript)
    engine.add_tag("description", _description_tag(episode))
    engine.add_tag("url", episode.url)
    engine.add_tag("artwork", episode.artwork_url or "")
    return engine.render(template)


class TranscriptStore:
    """Transcript documents on disk, addressed by paths relative to a root."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()

    def path_for(self, relative_path: str) -> Path:
        return self.root / relative_path

    def exists(self, relative_path: str) -> bool:
        return self.path_for(relative_path).is_file()

    def save(self, relative_path: str, content: str) -> Path:
        """
        Write a new transcript document.

        Raises:
            FileExistsError: If a document already exists at the path.
        """
        path = self.path_for(relative_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "x", encoding="utf-8") as f:
            f.write(content)
        logger.info(f"Saved transcript to {path}")
        return path
