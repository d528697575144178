"""
Taxonomy Resolver

Pure hierarchy queries over the flattened category table.

Each row carries five level fields (dept, typ, subtyp_1..3); unused levels
hold the EMPTY sentinel. Internally rows are treated as a tree: TaxonomyIndex
maps the 5-tuple to rows so parent/child lookups are dictionary hits rather
than scans. The flattened shape only exists at the persistence/API boundary.

Nothing here touches the database; callers pass the full row set in.
"""
import logging
import re
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from commerce_console.core.exceptions import (
    AmbiguousParentError,
    MaxDepthExceededError,
    ParentNotFoundError,
    TaxonomyIntegrityError,
    TaxonomyNotFoundError,
)
from commerce_console.models.taxonomy import EMPTY

logger = logging.getLogger(__name__)

HIERARCHY_FIELDS = ("dept", "typ", "subtyp_1", "subtyp_2", "subtyp_3")
MAX_DEPTH = len(HIERARCHY_FIELDS)

LEVEL_LABELS = ("Category", "Type", "Subtype 1", "Subtype 2", "Subtype 3")

PATH_SEPARATOR = " > "

# Legacy column names accepted by TaxonomyNode.from_dict
_LEGACY_KEYS = {
    "WEB_TAXONOMY_ID": "id",
    "DEPT": "dept",
    "TYP": "typ",
    "SUBTYP_1": "subtyp_1",
    "SUBTYP_2": "subtyp_2",
    "SUBTYP_3": "subtyp_3",
    "WEB_URL": "web_url",
    "ACTIVE": "active",
    "SHORT_DESC": "short_desc",
    "LONG_DESCRIPTION": "long_description",
    "META_TAGS": "meta_tags",
    "SORT_POSITION": "sort_position",
}

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")

Hierarchy = Tuple[str, str, str, str, str]


def normalize_level(value: Any) -> str:
    """Blank or missing level values become EMPTY."""
    if value is None:
        return EMPTY
    text = str(value).strip()
    return text if text else EMPTY


@dataclass(frozen=True)
class TaxonomyNode:
    """One taxonomy row, detached from the ORM session."""
    id: Optional[int]
    dept: str
    typ: str = EMPTY
    subtyp_1: str = EMPTY
    subtyp_2: str = EMPTY
    subtyp_3: str = EMPTY
    web_url: str = ""
    active: bool = True
    short_desc: Optional[str] = None
    long_description: Optional[str] = None
    meta_tags: Optional[str] = None
    sort_position: Optional[str] = None

    def __post_init__(self):
        for name in HIERARCHY_FIELDS:
            object.__setattr__(self, name, normalize_level(getattr(self, name)))
        object.__setattr__(self, "active", bool(self.active))
        object.__setattr__(self, "web_url", self.web_url or "")

    @property
    def hierarchy(self) -> Hierarchy:
        return (self.dept, self.typ, self.subtyp_1, self.subtyp_2, self.subtyp_3)

    @classmethod
    def from_record(cls, record: Any) -> "TaxonomyNode":
        """Build from an ORM Taxonomy row (or anything with the same attributes)."""
        return cls(
            id=record.id,
            dept=record.dept,
            typ=record.typ,
            subtyp_1=record.subtyp_1,
            subtyp_2=record.subtyp_2,
            subtyp_3=record.subtyp_3,
            web_url=record.web_url,
            active=bool(record.active),
            short_desc=getattr(record, "short_desc", None),
            long_description=getattr(record, "long_description", None),
            meta_tags=getattr(record, "meta_tags", None),
            sort_position=getattr(record, "sort_position", None),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaxonomyNode":
        """Build from a dict keyed by attribute names or legacy column names."""
        values = {}
        for key, value in data.items():
            name = _LEGACY_KEYS.get(key, key)
            if name in cls.__dataclass_fields__:
                values[name] = value
        values.setdefault("id", None)
        values.setdefault("dept", None)
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TaxonomyOption:
    """One entry of the parent-selector list."""
    node: TaxonomyNode
    path_label: str
    level_label: str

    @property
    def value(self) -> Optional[int]:
        return self.node.id

    @property
    def depth(self) -> int:
        return LEVEL_LABELS.index(self.level_label) + 1


NodeLike = Union[TaxonomyNode, Hierarchy]


def _hierarchy_of(node: NodeLike) -> Hierarchy:
    if isinstance(node, tuple):
        return tuple(normalize_level(v) for v in node)
    return node.hierarchy


# =============================================================================
# SINGLE-NODE QUERIES
# =============================================================================

def depth(node: NodeLike) -> int:
    """
    Count of leading occupied levels.

    Raises TaxonomyIntegrityError when every level is EMPTY or when a real
    level follows an EMPTY one.
    """
    hierarchy = _hierarchy_of(node)
    if len(hierarchy) != MAX_DEPTH:
        raise TaxonomyIntegrityError(
            f"Taxonomy hierarchy must have {MAX_DEPTH} levels, got {len(hierarchy)}",
            hierarchy=hierarchy,
        )

    occupied = 0
    for value in hierarchy:
        if value == EMPTY:
            break
        occupied += 1

    if occupied == 0:
        raise TaxonomyIntegrityError(
            "Taxonomy node has no occupied levels", hierarchy=hierarchy
        )

    if any(value != EMPTY for value in hierarchy[occupied:]):
        raise TaxonomyIntegrityError(
            f"Taxonomy levels are not contiguous: {' / '.join(hierarchy)}",
            hierarchy=hierarchy,
        )

    return occupied


validate_hierarchy = depth


def display_name(node: NodeLike) -> str:
    """Deepest occupied level value."""
    return _hierarchy_of(node)[depth(node) - 1]


def path_label(node: NodeLike) -> str:
    """Occupied levels joined root-first, e.g. 'Apparel > Men'."""
    hierarchy = _hierarchy_of(node)
    return PATH_SEPARATOR.join(hierarchy[:depth(node)])


def level_label(node: NodeLike) -> str:
    return LEVEL_LABELS[depth(node) - 1]


def parent_key(node: NodeLike) -> Optional[Hierarchy]:
    """The parent's 5-tuple, or None for a top-level node."""
    hierarchy = _hierarchy_of(node)
    node_depth = depth(node)
    if node_depth == 1:
        return None
    key = list(hierarchy)
    key[node_depth - 1] = EMPTY
    return tuple(key)


def next_level_field(parent: NodeLike) -> str:
    """
    Field a new child of `parent` occupies.

    Raises MaxDepthExceededError when the parent already uses all five levels.
    """
    parent_depth = depth(parent)
    if parent_depth >= MAX_DEPTH:
        raise MaxDepthExceededError(
            f"Cannot add a child below '{display_name(parent)}': "
            f"maximum depth of {MAX_DEPTH} levels reached",
            hierarchy=_hierarchy_of(parent),
        )
    return HIERARCHY_FIELDS[parent_depth]


def hierarchy_for_child(parent: Optional[NodeLike], name: str) -> Hierarchy:
    """Level fields for a new node called `name` attached below `parent`."""
    label = normalize_level(name)
    if label == EMPTY:
        raise TaxonomyIntegrityError("Category name is required")

    if parent is None:
        return (label, EMPTY, EMPTY, EMPTY, EMPTY)

    field = next_level_field(parent)
    hierarchy = list(_hierarchy_of(parent))
    hierarchy[HIERARCHY_FIELDS.index(field)] = label
    return tuple(hierarchy)


def slugify(text: str) -> str:
    """Lowercase, collapse non-alphanumeric runs to '-', trim dashes."""
    return _SLUG_STRIP.sub("-", (text or "").lower()).strip("-")


def build_url(slug: str, parent: Optional[TaxonomyNode] = None) -> str:
    """Storefront URL: the parent's URL dash-joined with `slug`."""
    if parent is not None and parent.web_url:
        return f"{parent.web_url}-{slug}"
    return slug


# =============================================================================
# INDEX
# =============================================================================

class TaxonomyIndex:
    """
    Lookup structure over the full taxonomy row set.

    Rows are keyed by their 5-tuple. Malformed rows are still stored (so they
    can be fetched by id and reported) but never act as parents or children.
    """

    def __init__(self, nodes: Iterable[TaxonomyNode]):
        self._nodes: List[TaxonomyNode] = list(nodes)
        self._by_id: Dict[int, TaxonomyNode] = {}
        self._by_key: Dict[Hierarchy, List[TaxonomyNode]] = {}
        self._by_url: Dict[str, List[TaxonomyNode]] = {}
        self._children: Dict[Hierarchy, List[TaxonomyNode]] = {}

        for node in self._nodes:
            if node.id is not None:
                self._by_id[node.id] = node
            self._by_key.setdefault(node.hierarchy, []).append(node)
            if node.web_url:
                self._by_url.setdefault(node.web_url, []).append(node)

            try:
                key = parent_key(node)
            except TaxonomyIntegrityError as e:
                logger.warning(f"Skipping malformed taxonomy row {node.id}: {e.message}")
                continue
            if key is not None:
                self._children.setdefault(key, []).append(node)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[TaxonomyNode]:
        return iter(self._nodes)

    def get(self, node_id: int) -> TaxonomyNode:
        node = self._by_id.get(node_id)
        if node is None:
            raise TaxonomyNotFoundError(
                f"Category {node_id} not found", details={"id": node_id}
            )
        return node

    def matching(self, hierarchy: Hierarchy) -> List[TaxonomyNode]:
        """All rows stored under exactly this 5-tuple."""
        return list(self._by_key.get(tuple(hierarchy), []))

    def parent_of(self, node: NodeLike) -> Optional[TaxonomyNode]:
        """
        The unique parent row, or None for a top-level node.

        Zero or several matches are integrity failures; no match is ever
        picked arbitrarily.
        """
        key = parent_key(node)
        if key is None:
            return None

        candidates = self._by_key.get(key, [])
        if not candidates:
            raise ParentNotFoundError(
                f"No parent category found for '{path_label(node)}'",
                hierarchy=_hierarchy_of(node),
            )
        if len(candidates) > 1:
            raise AmbiguousParentError(
                f"{len(candidates)} categories match the parent of '{path_label(node)}'",
                hierarchy=_hierarchy_of(node),
                details={"candidate_ids": [c.id for c in candidates]},
            )
        return candidates[0]

    def children_of(self, node: NodeLike, active_only: bool = False) -> List[TaxonomyNode]:
        """Direct children, in row order."""
        depth(node)
        children = self._children.get(_hierarchy_of(node), [])
        if active_only:
            return [c for c in children if c.active]
        return list(children)

    def ancestors(self, node: NodeLike) -> List[TaxonomyNode]:
        """Root-first chain of ancestors, excluding the node itself."""
        chain = []
        current = self.parent_of(node)
        while current is not None:
            chain.append(current)
            current = self.parent_of(current)
        chain.reverse()
        return chain

    def breadcrumbs(self, node: TaxonomyNode) -> List[TaxonomyNode]:
        return self.ancestors(node) + [node]

    def find_by_web_url(self, web_url: str) -> TaxonomyNode:
        matches = self._by_url.get(web_url or "", [])
        if not matches:
            raise TaxonomyNotFoundError(
                f"Category '{web_url}' not found", details={"web_url": web_url}
            )
        if len(matches) > 1:
            raise TaxonomyIntegrityError(
                f"{len(matches)} categories share the URL '{web_url}'",
                details={"web_url": web_url, "ids": [m.id for m in matches]},
            )
        return matches[0]

    def url_taken(self, web_url: str, exclude_id: Optional[int] = None) -> bool:
        return any(n.id != exclude_id for n in self._by_url.get(web_url, []))


def _as_index(all_nodes: Union[TaxonomyIndex, Iterable[TaxonomyNode]]) -> TaxonomyIndex:
    if isinstance(all_nodes, TaxonomyIndex):
        return all_nodes
    return TaxonomyIndex(all_nodes)


def parent_of(node: NodeLike, all_nodes) -> Optional[TaxonomyNode]:
    return _as_index(all_nodes).parent_of(node)


def children_of(node: NodeLike, all_nodes, active_only: bool = False) -> List[TaxonomyNode]:
    return _as_index(all_nodes).children_of(node, active_only=active_only)


def breadcrumbs(node: TaxonomyNode, all_nodes) -> List[TaxonomyNode]:
    return _as_index(all_nodes).breadcrumbs(node)


def find_by_web_url(web_url: str, all_nodes) -> TaxonomyNode:
    return _as_index(all_nodes).find_by_web_url(web_url)


# =============================================================================
# PARENT SELECTOR
# =============================================================================

def _tree_sort_key(hierarchy: Hierarchy):
    # EMPTY sorts ahead of any label so a parent precedes its children;
    # the raw value keeps labels differing only by case in separate subtrees
    return tuple(
        (0, "", "") if value == EMPTY else (1, value.lower(), value) for value in hierarchy
    )


def options_tree(all_nodes: Iterable[TaxonomyNode]) -> Iterator[TaxonomyOption]:
    """
    Yield parent-selector options for active rows, depth-first.

    Rows are grouped by their full 5-tuple. When several active rows share a
    tuple only the first is offered and the collision is logged; the rows
    stay distinct in storage. Malformed rows are left out and logged.
    """
    grouped: Dict[Hierarchy, TaxonomyNode] = {}
    for node in all_nodes:
        if not node.active:
            continue
        try:
            depth(node)
        except TaxonomyIntegrityError as e:
            logger.warning(f"Excluding malformed taxonomy row {node.id} from options: {e.message}")
            continue

        existing = grouped.get(node.hierarchy)
        if existing is not None:
            logger.warning(
                f"Taxonomy rows {existing.id} and {node.id} share the key "
                f"'{path_label(node)}'; offering {existing.id} only"
            )
            continue
        grouped[node.hierarchy] = node

    for key in sorted(grouped, key=_tree_sort_key):
        node = grouped[key]
        yield TaxonomyOption(
            node=node,
            path_label=path_label(node),
            level_label=level_label(node),
        )
