"""
YAML front-matter codec.

A note's front-matter is a YAML mapping between a leading ``---`` line and the
next ``---`` (or ``...``) line. Reading is tolerant: malformed YAML yields an
empty mapping instead of an error.
"""

import logging
import re
from typing import Any, Dict, Tuple

import yaml

logger = logging.getLogger(__name__)

FRONTMATTER_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)(?:^|\r?\n)(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE
)


def split_frontmatter(text: str) -> Tuple[Dict[str, Any], str]:
    """
    Split note text into (front-matter, body).

    Args:
        text: Full note content

    Returns:
        Tuple of parsed front-matter mapping and the remaining body
    """
    if text.startswith('\ufeff'):
        text = text[1:]

    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text

    body = text[match.end():]
    try:
        data = yaml.safe_load(match.group('yaml'))
    except yaml.YAMLError as e:
        logger.warning(f"Malformed front-matter ignored: {e}")
        return {}, body

    if data is None:
        return {}, body
    if not isinstance(data, dict):
        logger.warning(f"Front-matter is not a mapping ({type(data).__name__}), ignored")
        return {}, body

    return {str(key): value for key, value in data.items()}, body


def render_frontmatter(frontmatter: Dict[str, Any], body: str) -> str:
    """Render front-matter and body back into note text"""
    if not frontmatter:
        return body

    dumped = yaml.safe_dump(
        frontmatter,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False
    )
    return f"---\n{dumped}---\n{body}"
