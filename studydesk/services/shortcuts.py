"""Video links gathered from ``.lnk`` shortcut files and a manual list."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional

from ..config import AppConfig

LOGGER = logging.getLogger(__name__)

_URL_PATTERN = re.compile(r"https?://[^\s\"'<>\x00]+")
_YOUTUBE_ID_PATTERN = re.compile(r"(?:v=|youtu\.be/)([\w-]{11})")


@dataclass(frozen=True)
class VideoLink:
    title: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def extract_url(payload: bytes) -> Optional[str]:
    """Return the first http(s) URL embedded in a shortcut file's bytes.

    Shortcut strings are usually UTF-16LE; ANSI shortcuts are covered by the
    Latin-1 pass.
    """

    for encoding in ("utf-16-le", "latin-1"):
        text = payload.decode(encoding, errors="ignore")
        match = _URL_PATTERN.search(text)
        if match:
            return match.group(0)
    return None


def youtube_embed_url(url: str) -> str:
    match = _YOUTUBE_ID_PATTERN.search(url)
    return f"https://www.youtube.com/embed/{match.group(1)}" if match else url


class ShortcutLibrary:
    """Expose the shortcuts folder plus user-added links as one list."""

    def __init__(self, config: AppConfig) -> None:
        self._shortcuts_root = config.shortcuts_root
        self._manual_file = config.videos_file

    def scan(self) -> List[VideoLink]:
        if not self._shortcuts_root.is_dir():
            return []
        links: List[VideoLink] = []
        for shortcut in sorted(self._shortcuts_root.iterdir()):
            if not shortcut.is_file() or shortcut.suffix.lower() != ".lnk":
                continue
            try:
                url = extract_url(shortcut.read_bytes())
            except OSError as error:
                LOGGER.warning("Could not read shortcut '%s': %s", shortcut, error)
                continue
            if url:
                links.append(VideoLink(title=shortcut.stem, url=url))
        return links

    def load_manual(self) -> List[VideoLink]:
        if not self._manual_file.exists():
            return []
        try:
            payload = json.loads(self._manual_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as error:
            LOGGER.warning("Ignoring unreadable video list '%s': %s", self._manual_file, error)
            return []
        links: List[VideoLink] = []
        for entry in payload if isinstance(payload, list) else []:
            if isinstance(entry, dict) and entry.get("url"):
                links.append(VideoLink(title=str(entry.get("title") or entry["url"]), url=str(entry["url"])))
        return links

    def add(self, title: str, url: str) -> VideoLink:
        if not _URL_PATTERN.fullmatch(url.strip()):
            raise ValueError(f"Not an http(s) URL: {url!r}")
        link = VideoLink(title=title.strip() or url.strip(), url=url.strip())
        links = [existing for existing in self.load_manual() if existing.url != link.url]
        links.append(link)
        self._manual_file.parent.mkdir(parents=True, exist_ok=True)
        self._manual_file.write_text(
            json.dumps([entry.to_dict() for entry in links], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        return link

    def list(self) -> List[VideoLink]:
        return self.scan() + self.load_manual()


__all__ = ["ShortcutLibrary", "VideoLink", "extract_url", "youtube_embed_url"]
