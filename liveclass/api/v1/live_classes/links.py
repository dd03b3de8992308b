"""
Stream link helpers.
Admins paste a player link (often "...?url=<encoded m3u8>"); the playable m3u8 and its
default quality are derived from it once on write. Playback URLs point at the external
player: <base>/live/<encoded m3u8> or <base>/rec/<encoded m3u8> for completed classes.
"""

import re
from typing import Dict, List, Optional
from urllib.parse import quote, unquote

DECORATIVE_MARKERS = ("⚡", "âš¡")
DEFAULT_QUALITY = 3
MIN_QUALITY = 1
MAX_QUALITY = 5

LIVE_PATH = "/live/"
RECORDING_PATH = "/rec/"

_QUALITY_RE = re.compile(r"index_(\d+)\.m3u8")
_URL_PARAM_RE = re.compile(r"[?&]url=(.+)")

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"

QUALITY_OPTIONS: List[Dict] = [
    {"value": 1, "label": "240p", "description": "Data Saver • Low bandwidth"},
    {"value": 2, "label": "360p", "description": "Low Quality • Basic streaming"},
    {"value": 3, "label": "480p", "description": "Standard Quality • Recommended"},
    {"value": 4, "label": "720p", "description": "High Quality • Clear video"},
    {"value": 5, "label": "720p HD", "description": "HD Quality • Best experience"},
]


def clean_title(title: Optional[str]) -> str:
    """Strip the decorative marker from a title or batch name. None/empty -> ''."""
    if not title:
        return ""
    text = str(title)
    for marker in DECORATIVE_MARKERS:
        text = text.replace(marker, "")
    return text.strip()


def extract_m3u8_link(streamlink: Optional[str]) -> str:
    """Value of the `url` query parameter (decoded) if present, else the link verbatim."""
    if not streamlink:
        return ""
    match = _URL_PARAM_RE.search(streamlink)
    if not match:
        return streamlink
    return unquote(match.group(1))


def extract_quality(m3u8link: Optional[str]) -> int:
    """Quality N from 'index_<N>.m3u8'; DEFAULT_QUALITY when missing or out of range."""
    if not m3u8link:
        return DEFAULT_QUALITY
    match = _QUALITY_RE.search(m3u8link)
    if not match:
        return DEFAULT_QUALITY
    quality = int(match.group(1))
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        return DEFAULT_QUALITY
    return quality


def quality_label(quality: int) -> str:
    for option in QUALITY_OPTIONS:
        if option["value"] == quality:
            return option["label"]
    return quality_label(DEFAULT_QUALITY)


def with_quality(m3u8link: str, quality: int) -> str:
    """Replace the first 'index_<old>.m3u8' segment with 'index_<quality>.m3u8'."""
    return _QUALITY_RE.sub(f"index_{quality}.m3u8", m3u8link, count=1)


def build_video_url(m3u8link: Optional[str], quality: int, status: str, base_url: str) -> str:
    """External player URL for a stream. Pure string construction, no reachability check."""
    if not m3u8link:
        return ""
    path = RECORDING_PATH if status == "completed" else LIVE_PATH
    encoded = quote(with_quality(m3u8link, quality), safe=_URI_COMPONENT_SAFE)
    return f"{base_url.rstrip('/')}{path}{encoded}"
