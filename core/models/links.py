"""
Reference models and link parsing.

A reference points from an occurrence to another note in the vault. References
are stored in front-matter as wiki links (``[[Target|Alias]]``), markdown links
(``[Alias](Target.md)``) or bare URIs, and parsed back into typed objects here.
"""

import re
from enum import Enum
from typing import Any, List, Optional
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, field_validator


class ReferenceKind(Enum):
    """Textual forms a reference can take"""
    WIKI = "wiki"
    MARKDOWN = "markdown"
    URI = "uri"


WIKI_LINK_PATTERN = re.compile(r"^\[\[([^\[\]]+?)\]\]$")
MARKDOWN_LINK_PATTERN = re.compile(r"^\[([^\[\]]*)\]\(([^()]+)\)$")
URI_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://\S+$")

# Used to find links embedded in longer text (note bodies)
WIKI_LINK_SEARCH = re.compile(r"\[\[([^\[\]]+?)\]\]")
MARKDOWN_LINK_SEARCH = re.compile(r"\[[^\[\]]*\]\(([^()\s]+)\)")


class Reference(BaseModel):
    """Typed reference to another note or resource"""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True
    )

    kind: ReferenceKind = ReferenceKind.WIKI
    target: str
    display_text: Optional[str] = None

    @field_validator('target')
    @classmethod
    def validate_target(cls, v: str) -> str:
        """Reject empty targets"""
        if not v:
            raise ValueError('Reference target cannot be empty')
        return v

    @field_validator('display_text')
    @classmethod
    def validate_display_text(cls, v: Optional[str]) -> Optional[str]:
        """Normalize empty display text to None"""
        return v or None

    def to_text(self) -> str:
        """Render the reference in its front-matter form"""
        if self.kind == ReferenceKind.WIKI:
            if self.display_text:
                return f"[[{self.target}|{self.display_text}]]"
            return f"[[{self.target}]]"
        if self.kind == ReferenceKind.MARKDOWN:
            return f"[{self.display_text or ''}]({self.target})"
        if self.display_text:
            return f"[{self.display_text}]({self.target})"
        return self.target

    def __str__(self) -> str:
        return self.to_text()


def strip_link_target(raw: str) -> str:
    """Drop section/block suffixes from a wiki link target"""
    return raw.split('#', 1)[0].split('^', 1)[0].strip()


def parse_link(value: Any) -> Optional[Reference]:
    """
    Parse a single front-matter value into a Reference.

    Never raises: values that cannot be interpreted return None.

    Args:
        value: Raw front-matter value (usually a string)

    Returns:
        Reference or None
    """
    # Unquoted [[x]] in YAML parses as a nested list [['x']]
    if isinstance(value, list):
        if len(value) == 1 and isinstance(value[0], list) and len(value[0]) == 1:
            value = f"[[{value[0][0]}]]"
        else:
            return None

    if value is None or isinstance(value, (dict, bool)):
        return None

    text = str(value).strip()
    if not text:
        return None

    match = WIKI_LINK_PATTERN.match(text)
    if match:
        inner = match.group(1)
        target, _, alias = inner.partition('|')
        target = strip_link_target(target)
        if not target:
            return None
        return Reference(kind=ReferenceKind.WIKI, target=target, display_text=alias or None)

    match = MARKDOWN_LINK_PATTERN.match(text)
    if match:
        display, target = match.group(1), unquote(match.group(2).strip())
        if not target:
            return None
        kind = ReferenceKind.URI if URI_PATTERN.match(target) else ReferenceKind.MARKDOWN
        return Reference(kind=kind, target=target, display_text=display or None)

    if URI_PATTERN.match(text):
        return Reference(kind=ReferenceKind.URI, target=text)

    # Bare note names are treated as wiki targets
    return Reference(kind=ReferenceKind.WIKI, target=text)


def convert_list_to_links(value: Any) -> List[Reference]:
    """
    Parse a front-matter list (or scalar) into an ordered list of references.

    Entries that cannot be parsed are skipped.
    """
    if value is None:
        return []

    if isinstance(value, list):
        # A single unquoted [[x]] shows up as [['x']]
        if len(value) == 1 and isinstance(value[0], list):
            items = [value[0]]
        else:
            items = value
    else:
        items = [value]

    references = []
    for item in items:
        if isinstance(item, list) and len(item) == 1 and not isinstance(item[0], list):
            item = [item]
        reference = parse_link(item)
        if reference is not None:
            references.append(reference)
    return references


def extract_link_texts(text: str) -> List[str]:
    """
    Find link targets embedded in free text.

    Returns raw targets (wiki targets without alias/section, markdown
    targets URL-decoded); URIs are skipped.
    """
    targets = []
    for match in WIKI_LINK_SEARCH.finditer(text):
        target = strip_link_target(match.group(1).partition('|')[0])
        if target:
            targets.append(target)
    for match in MARKDOWN_LINK_SEARCH.finditer(text):
        target = unquote(match.group(1))
        if target and not URI_PATTERN.match(target):
            targets.append(strip_link_target(target))
    return targets
