"""
Index engine for occurrence search.

Maintains a tag index over the store's records and answers filtered, sorted and
paginated queries. Back-references are computed from the host's link graph on
every call rather than indexed.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models.record import Record
from .fuzzy import matches_title

logger = logging.getLogger(__name__)


LinkGraph = Mapping[str, Mapping[str, int]]


class IndexAction(str, Enum):
    """Direction of an index update"""
    ADD = "add"
    REMOVE = "remove"


class SortOrder(str, Enum):
    """Timestamp sort direction"""
    ASC = "asc"
    DESC = "desc"


class SearchOptions(BaseModel):
    """Filters, ordering and paging for a search"""
    model_config = ConfigDict(str_strip_whitespace=True)

    query: Optional[str] = None
    tags: List[str] = Field(default_factory=list)  # OR across tags
    links_to: Optional[str] = None  # Only records linking to this path
    needs_processing: Optional[bool] = None
    date_from: Optional[datetime] = None  # Inclusive
    date_to: Optional[datetime] = None  # Inclusive

    sort_order: SortOrder = SortOrder.DESC
    offset: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=1)

    @field_validator('tags', mode='before')
    @classmethod
    def validate_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator('date_from', 'date_to')
    @classmethod
    def ensure_aware(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive bounds are local time"""
        if v is not None and v.tzinfo is None:
            return v.astimezone()
        return v

    @model_validator(mode='after')
    def validate_date_range(self) -> 'SearchOptions':
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError('date_from must not be after date_to')
        return self


class SearchResult(BaseModel):
    """One page of search results"""
    items: List[Record] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    offset: int = 0
    limit: int = 0

    def __len__(self) -> int:
        return len(self.items)


class IndexEngine:
    """
    Derived indexes and queries over a record map.

    The engine never owns records: it reads the store's map when hydrating
    ids, and it asks ``link_graph`` for the host's resolved links whenever a
    back-reference filter is used.
    """

    def __init__(
        self,
        records: Mapping[str, Record],
        link_graph: Callable[[], LinkGraph],
        default_limit: int = 100
    ):
        """
        Initialize the index engine.

        Args:
            records: The store's id -> record map (read only)
            link_graph: Returns source path -> {target path -> count}
            default_limit: Page size when a search gives none
        """
        self.records = records
        self.link_graph = link_graph
        self.default_limit = default_limit

        self._tag_index: Dict[str, Set[str]] = {}

    def index(self, record: Record, action: Union[IndexAction, str]) -> None:
        """
        Add or remove a record's tag entries.

        Updates must remove the previous version of a record before adding
        the new one, so stale tags are cleared.
        """
        action = IndexAction(action)

        for tag in record.tags:
            if action == IndexAction.ADD:
                self._tag_index.setdefault(tag, set()).add(record.id)
            else:
                ids = self._tag_index.get(tag)
                if ids is None:
                    continue
                ids.discard(record.id)
                if not ids:
                    del self._tag_index[tag]

    def clear(self) -> None:
        """Drop all derived indexes"""
        self._tag_index.clear()

    @property
    def tag_index(self) -> Dict[str, Set[str]]:
        """Copy of the tag index"""
        return {tag: set(ids) for tag, ids in self._tag_index.items()}

    def ids_with_tags(self, tags: Iterable[str]) -> Set[str]:
        """Ids carrying any of the tags"""
        ids: Set[str] = set()
        for tag in tags:
            ids |= self._tag_index.get(tag, set())
        return ids

    def all_tags(self) -> List[str]:
        """Tags used by at least one record"""
        return sorted(self._tag_index)

    def back_references(self, target: str) -> Set[str]:
        """
        Managed records whose links resolve to ``target``.

        Sources outside the record map are ignored even if they link to the
        target.
        """
        graph = self.link_graph() or {}
        targets = {target}
        if '.' not in target.rsplit('/', 1)[-1]:
            targets.add(f"{target}.md")

        return {
            record_id for record_id in self.records
            if not targets.isdisjoint(graph.get(record_id, {}))
        }

    def _matches(self, record: Record, options: SearchOptions) -> bool:
        if options.needs_processing is not None and record.needs_processing != options.needs_processing:
            return False

        if options.date_from is not None or options.date_to is not None:
            if record.timestamp is None:
                return False
            if options.date_from is not None and record.timestamp < options.date_from:
                return False
            if options.date_to is not None and record.timestamp > options.date_to:
                return False

        if options.query and not matches_title(record.title, options.query):
            return False

        return True

    @staticmethod
    def _sort(records: List[Record], order: SortOrder) -> List[Record]:
        """
        Order by timestamp, ties by title ascending in both directions.

        Undated records always come last.
        """
        by_title = sorted(records, key=lambda record: record.title)
        dated = [record for record in by_title if record.timestamp is not None]
        undated = [record for record in by_title if record.timestamp is None]
        # Stable, so equal timestamps keep the title order even when reversed
        dated.sort(key=lambda record: record.timestamp, reverse=order == SortOrder.DESC)
        return dated + undated

    def search(self, options: Optional[SearchOptions] = None) -> SearchResult:
        """
        Run a query against the current records.

        Args:
            options: Filters, sort order and paging (defaults to everything)

        Returns:
            SearchResult with the requested page and the filtered total
        """
        options = options or SearchOptions()
        limit = options.limit or self.default_limit

        candidates: Optional[Set[str]] = None
        if options.tags:
            candidates = self.ids_with_tags(options.tags)
        if options.links_to:
            linked = self.back_references(options.links_to)
            candidates = linked if candidates is None else candidates & linked

        ids = self.records.keys() if candidates is None else candidates
        matched = []
        for record_id in ids:
            record = self.records.get(record_id)
            if record is not None and self._matches(record, options):
                matched.append(record)

        matched = self._sort(matched, options.sort_order)

        total = len(matched)
        page = matched[options.offset:options.offset + limit]

        logger.debug(f"Search matched {total} records, returning {len(page)} (offset={options.offset}, limit={limit})")

        return SearchResult(
            items=page,
            total=total,
            has_more=options.offset + limit < total,
            offset=options.offset,
            limit=limit
        )
