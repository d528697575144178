"""
Taxonomy Service

Database-facing category operations for the admin console and storefront.

Handles:
- Loading the full row set (Redis-cached, invalidated on every write)
- Create/edit with derived hierarchy fields and web URL
- Delete, refused while subcategories still hang off the row
- Parent-selector options and storefront lookups by URL

Writes always resolve against a fresh database read, never the cache.
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from commerce_console.core.exceptions import (
    DuplicateCategoryUrlError,
    TaxonomyIntegrityError,
    TaxonomyNotFoundError,
)
from commerce_console.core.redis_client import (
    get_taxonomy_cached,
    set_taxonomy_cached,
    invalidate_taxonomy_cache,
)
from commerce_console.models.taxonomy import Taxonomy
from commerce_console.schemas.taxonomy import CategoryCreate, CategoryUpdate
from commerce_console.services.taxonomy import (
    HIERARCHY_FIELDS,
    TaxonomyIndex,
    TaxonomyNode,
    TaxonomyOption,
    build_url,
    depth,
    display_name,
    hierarchy_for_child,
    options_tree,
    path_label,
    slugify,
)

logger = logging.getLogger(__name__)

# Descriptive columns copied straight from the request
_DESCRIPTIVE_FIELDS = (
    "short_desc",
    "long_description",
    "meta_tags",
    "sort_position",
    "category_style",
)


class TaxonomyService:
    """Category CRUD and hierarchy lookups."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================
    # Reads
    # =========================================================

    async def _load_from_db(self) -> List[TaxonomyNode]:
        result = await self.db.execute(select(Taxonomy).order_by(Taxonomy.id))
        return [TaxonomyNode.from_record(row) for row in result.scalars().all()]

    async def load_nodes(self) -> List[TaxonomyNode]:
        """Full taxonomy row set, served from Redis when cached."""
        cached = await get_taxonomy_cached()
        if cached is not None:
            return [TaxonomyNode.from_dict(item) for item in cached]

        nodes = await self._load_from_db()
        await set_taxonomy_cached([node.to_dict() for node in nodes])
        return nodes

    async def load_index(self) -> TaxonomyIndex:
        return TaxonomyIndex(await self.load_nodes())

    async def get_row(self, category_id: int) -> Taxonomy:
        result = await self.db.execute(
            select(Taxonomy).where(Taxonomy.id == category_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise TaxonomyNotFoundError(
                f"Category {category_id} not found", details={"id": category_id}
            )
        return row

    async def get_detail(
        self, category_id: int
    ) -> Tuple[TaxonomyNode, Optional[TaxonomyNode], List[TaxonomyNode]]:
        """A category with its resolved parent and direct children."""
        index = await self.load_index()
        node = index.get(category_id)
        return node, index.parent_of(node), index.children_of(node)

    async def options(self) -> List[TaxonomyOption]:
        return list(options_tree(await self.load_nodes()))

    async def storefront_category(
        self, web_url: str
    ) -> Tuple[TaxonomyNode, List[TaxonomyNode], List[TaxonomyNode]]:
        """Category page data: the node, its active children, breadcrumbs."""
        index = await self.load_index()
        node = index.find_by_web_url(web_url)
        if not node.active:
            raise TaxonomyNotFoundError(
                f"Category '{web_url}' not found", details={"web_url": web_url}
            )
        return node, index.children_of(node, active_only=True), index.breadcrumbs(node)

    # =========================================================
    # Writes
    # =========================================================

    def _derive(
        self,
        index: TaxonomyIndex,
        parent: Optional[TaxonomyNode],
        name: str,
        exclude_id: Optional[int] = None,
    ) -> Tuple[tuple, str]:
        """Level fields and web URL for `name` under `parent`; checks collisions."""
        hierarchy = hierarchy_for_child(parent, name)

        clashes = [n for n in index.matching(hierarchy) if n.id != exclude_id]
        if clashes:
            raise TaxonomyIntegrityError(
                f"Category '{path_label(hierarchy)}' already exists",
                hierarchy=hierarchy,
                details={"existing_id": clashes[0].id},
            )

        slug = slugify(name)
        if not slug:
            raise TaxonomyIntegrityError(
                f"Category name '{name}' must contain letters or numbers"
            )

        web_url = build_url(slug, parent)
        if index.url_taken(web_url, exclude_id=exclude_id):
            raise DuplicateCategoryUrlError(web_url)

        return hierarchy, web_url

    async def create(self, data: CategoryCreate) -> TaxonomyNode:
        index = TaxonomyIndex(await self._load_from_db())
        parent = index.get(data.parent_id) if data.parent_id else None

        hierarchy, web_url = self._derive(index, parent, data.name)

        row = Taxonomy(
            web_url=web_url,
            active=1 if data.active else 0,
            **dict(zip(HIERARCHY_FIELDS, hierarchy)),
            **{f: getattr(data, f) for f in _DESCRIPTIVE_FIELDS},
        )
        self.db.add(row)
        await self.db.flush()
        await invalidate_taxonomy_cache()

        logger.info(f"Created category {row.id} '{path_label(hierarchy)}' at /{web_url}")
        return TaxonomyNode.from_record(row)

    async def update(self, category_id: int, data: CategoryUpdate) -> TaxonomyNode:
        """
        Edit a category. Changing the name or parent re-derives the level
        fields and web URL.

        Renaming or moving a category that has subcategories is refused:
        children locate their parent by its level values. Existing child
        URLs are never rewritten.
        """
        row = await self.get_row(category_id)
        index = TaxonomyIndex(await self._load_from_db())
        node = index.get(category_id)
        update_data = data.model_dump(exclude_unset=True)

        if "name" in update_data or "parent_id" in update_data:
            if "parent_id" in update_data:
                parent_id = update_data["parent_id"]
                parent = index.get(parent_id) if parent_id else None
                if parent is not None and _is_same_or_descendant(parent, node):
                    raise TaxonomyIntegrityError(
                        f"Cannot move '{display_name(node)}' below itself",
                        hierarchy=node.hierarchy,
                    )
            else:
                parent = index.parent_of(node)

            name = update_data.get("name") or display_name(node)
            hierarchy, web_url = self._derive(index, parent, name, exclude_id=category_id)

            children = index.children_of(node)
            if hierarchy != node.hierarchy and children:
                raise TaxonomyIntegrityError(
                    f"'{display_name(node)}' has {len(children)} subcategories; "
                    f"move or remove them before renaming or moving it",
                    hierarchy=node.hierarchy,
                    details={"child_ids": [c.id for c in children]},
                )
            if web_url != node.web_url and children:
                logger.warning(
                    f"Category {category_id} URL changed {node.web_url} -> {web_url}; "
                    f"{len(children)} child URLs still use the old prefix"
                )

            for field, value in zip(HIERARCHY_FIELDS, hierarchy):
                setattr(row, field, value)
            row.web_url = web_url

        if "active" in update_data and update_data["active"] is not None:
            row.active = 1 if update_data["active"] else 0
        for field in _DESCRIPTIVE_FIELDS:
            if field in update_data:
                setattr(row, field, update_data[field])

        await self.db.flush()
        await invalidate_taxonomy_cache()

        logger.info(f"Updated category {category_id} '{path_label(row.hierarchy)}'")
        return TaxonomyNode.from_record(row)

    async def delete(self, category_id: int) -> None:
        row = await self.get_row(category_id)
        index = TaxonomyIndex(await self._load_from_db())
        try:
            children = index.children_of(index.get(category_id))
        except TaxonomyIntegrityError as e:
            # Malformed levels never form a parent key, so nothing hangs off the row
            logger.warning(f"Deleting malformed category {category_id}: {e.message}")
            children = []
        if children:
            raise TaxonomyIntegrityError(
                f"Cannot delete '{display_name(row.hierarchy)}' while it has "
                f"{len(children)} subcategories",
                hierarchy=row.hierarchy,
                details={"child_ids": [c.id for c in children]},
            )

        await self.db.delete(row)
        await self.db.flush()
        await invalidate_taxonomy_cache()
        logger.info(f"Deleted category {category_id} ({row.web_url})")


def _is_same_or_descendant(candidate: TaxonomyNode, node: TaxonomyNode) -> bool:
    """True when `candidate` is `node` or sits anywhere below it."""
    if candidate.id == node.id:
        return True
    prefix = node.hierarchy[:depth(node)]
    return candidate.hierarchy[:len(prefix)] == prefix
