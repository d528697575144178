"""
Tests for TaxonomyService (category CRUD over the taxonomy table).
"""
from unittest.mock import AsyncMock, patch

import pytest

from conftest import scalar_result, scalars_result
from commerce_console.core.exceptions import (
    DuplicateCategoryUrlError,
    MaxDepthExceededError,
    TaxonomyIntegrityError,
    TaxonomyNotFoundError,
)
from commerce_console.models.taxonomy import EMPTY, Taxonomy
from commerce_console.schemas.taxonomy import CategoryCreate, CategoryUpdate
from commerce_console.services.taxonomy_service import TaxonomyService


def make_row(row_id, *levels, web_url="", active=1):
    padded = list(levels) + [EMPTY] * (5 - len(levels))
    return Taxonomy(
        id=row_id,
        dept=padded[0],
        typ=padded[1],
        subtyp_1=padded[2],
        subtyp_2=padded[3],
        subtyp_3=padded[4],
        web_url=web_url,
        active=active,
    )


@pytest.fixture
def rows():
    return [
        make_row(1, "Apparel", web_url="apparel"),
        make_row(2, "Apparel", "Men", web_url="apparel-men"),
        make_row(3, "Apparel", "Women", web_url="apparel-women"),
        make_row(4, "Apparel", "Men", "Shirts", web_url="apparel-men-shirts"),
        make_row(5, "Apparel", "Men", "Shirts", "Polo", web_url="apparel-men-shirts-polo"),
        make_row(6, "Apparel", "Men", "Shirts", "Polo", "Short Sleeve",
                 web_url="apparel-men-shirts-polo-short-sleeve"),
        make_row(7, "Home", web_url="home"),
        make_row(8, "Home", "Decor", web_url="home-decor", active=0),
    ]


@pytest.fixture
def service(mock_db):
    return TaxonomyService(mock_db)


class TestCreate:

    @pytest.mark.asyncio
    async def test_child_gets_derived_levels_and_url(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        node = await service.create(CategoryCreate(name="Shoes", parent_id=2, short_desc="Footwear"))

        added = mock_db.add.call_args.args[0]
        assert added.hierarchy == ("Apparel", "Men", "Shoes", EMPTY, EMPTY)
        assert added.web_url == "apparel-men-shoes"
        assert added.active == 1
        assert added.short_desc == "Footwear"
        assert node.web_url == "apparel-men-shoes"
        mock_db.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_top_level_category(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        node = await service.create(CategoryCreate(name="Toys & Games", active=False))

        assert node.hierarchy == ("Toys & Games", EMPTY, EMPTY, EMPTY, EMPTY)
        assert node.web_url == "toys-games"
        assert node.active is False

    @pytest.mark.asyncio
    async def test_duplicate_url_rejected(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with pytest.raises(DuplicateCategoryUrlError) as exc_info:
            await service.create(CategoryCreate(name="Men!", parent_id=1))

        assert exc_info.value.details["web_url"] == "apparel-men"
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_levels_rejected(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with pytest.raises(TaxonomyIntegrityError):
            await service.create(CategoryCreate(name="Women", parent_id=1))

    @pytest.mark.asyncio
    async def test_max_depth(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with pytest.raises(MaxDepthExceededError):
            await service.create(CategoryCreate(name="Kids", parent_id=6))

    @pytest.mark.asyncio
    async def test_name_without_slug_characters(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with pytest.raises(TaxonomyIntegrityError):
            await service.create(CategoryCreate(name="!!!"))

    @pytest.mark.asyncio
    async def test_unknown_parent(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with pytest.raises(TaxonomyNotFoundError):
            await service.create(CategoryCreate(name="Shoes", parent_id=99))

    @pytest.mark.asyncio
    async def test_cache_invalidated(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with patch(
            "commerce_console.services.taxonomy_service.invalidate_taxonomy_cache",
            new_callable=AsyncMock,
        ) as invalidate:
            await service.create(CategoryCreate(name="Garden"))

        invalidate.assert_awaited_once()


class TestUpdate:

    @pytest.mark.asyncio
    async def test_rename_leaf(self, service, mock_db, rows):
        women = rows[2]
        mock_db.execute.side_effect = [scalar_result(women), scalars_result(rows)]

        node = await service.update(3, CategoryUpdate(name="Ladies"))

        assert women.hierarchy == ("Apparel", "Ladies", EMPTY, EMPTY, EMPTY)
        assert women.web_url == "apparel-ladies"
        assert node.web_url == "apparel-ladies"

    @pytest.mark.asyncio
    async def test_move_leaf_to_top_level(self, service, mock_db, rows):
        women = rows[2]
        mock_db.execute.side_effect = [scalar_result(women), scalars_result(rows)]

        await service.update(3, CategoryUpdate(parent_id=None))

        assert women.hierarchy == ("Women", EMPTY, EMPTY, EMPTY, EMPTY)
        assert women.web_url == "women"

    @pytest.mark.asyncio
    async def test_descriptive_fields_only(self, service, mock_db, rows):
        men = rows[1]
        mock_db.execute.side_effect = [scalar_result(men), scalars_result(rows)]

        await service.update(2, CategoryUpdate(meta_tags="men, apparel", active=False))

        assert men.hierarchy == ("Apparel", "Men", EMPTY, EMPTY, EMPTY)
        assert men.web_url == "apparel-men"
        assert men.meta_tags == "men, apparel"
        assert men.active == 0

    @pytest.mark.asyncio
    async def test_rename_with_children_refused(self, service, mock_db, rows):
        men = rows[1]
        mock_db.execute.side_effect = [scalar_result(men), scalars_result(rows)]

        with pytest.raises(TaxonomyIntegrityError) as exc_info:
            await service.update(2, CategoryUpdate(name="Mens"))

        assert exc_info.value.details["child_ids"] == [4]
        assert men.typ == "Men"

    @pytest.mark.asyncio
    async def test_move_below_own_descendant_refused(self, service, mock_db, rows):
        men = rows[1]
        mock_db.execute.side_effect = [scalar_result(men), scalars_result(rows)]

        with pytest.raises(TaxonomyIntegrityError):
            await service.update(2, CategoryUpdate(parent_id=4))

    @pytest.mark.asyncio
    async def test_missing_category(self, service, mock_db):
        mock_db.execute.return_value = scalar_result(None)

        with pytest.raises(TaxonomyNotFoundError):
            await service.update(99, CategoryUpdate(name="x"))


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_leaf(self, service, mock_db, rows):
        mock_db.execute.side_effect = [scalar_result(rows[2]), scalars_result(rows)]

        await service.delete(3)

        mock_db.delete.assert_awaited_once_with(rows[2])

    @pytest.mark.asyncio
    async def test_delete_malformed_row(self, service, mock_db, rows):
        orphan = make_row(9, "Apparel", EMPTY, "Orphan", web_url="orphan")
        mock_db.execute.side_effect = [scalar_result(orphan), scalars_result(rows + [orphan])]

        await service.delete(9)

        mock_db.delete.assert_awaited_once_with(orphan)

    @pytest.mark.asyncio
    async def test_delete_with_children_refused(self, service, mock_db, rows):
        mock_db.execute.side_effect = [scalar_result(rows[0]), scalars_result(rows)]

        with pytest.raises(TaxonomyIntegrityError):
            await service.delete(1)
        mock_db.delete.assert_not_called()


class TestReads:

    @pytest.mark.asyncio
    async def test_load_nodes_prefers_cache(self, service, mock_db):
        cached = [{"id": 1, "dept": "Apparel", "web_url": "apparel", "active": True}]
        with patch(
            "commerce_console.services.taxonomy_service.get_taxonomy_cached",
            new=AsyncMock(return_value=cached),
        ):
            nodes = await service.load_nodes()

        assert [n.web_url for n in nodes] == ["apparel"]
        mock_db.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_load_nodes_fills_cache_on_miss(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)
        with patch(
            "commerce_console.services.taxonomy_service.set_taxonomy_cached",
            new_callable=AsyncMock,
        ) as set_cached:
            nodes = await service.load_nodes()

        assert len(nodes) == 8
        cached_rows = set_cached.await_args.args[0]
        assert cached_rows[1]["typ"] == "Men"

    @pytest.mark.asyncio
    async def test_detail_resolves_parent_and_children(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        node, parent, children = await service.get_detail(2)

        assert parent.id == 1
        assert [c.id for c in children] == [4]

    @pytest.mark.asyncio
    async def test_options_skip_inactive(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        options = await service.options()

        assert 8 not in [o.value for o in options]
        assert options[0].path_label == "Apparel"

    @pytest.mark.asyncio
    async def test_storefront_category(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        node, children, trail = await service.storefront_category("apparel-men")

        assert node.id == 2
        assert [c.id for c in children] == [4]
        assert [n.id for n in trail] == [1, 2]

    @pytest.mark.asyncio
    async def test_storefront_hides_inactive(self, service, mock_db, rows):
        mock_db.execute.return_value = scalars_result(rows)

        with pytest.raises(TaxonomyNotFoundError):
            await service.storefront_category("home-decor")

        mock_db.execute.return_value = scalars_result(rows)
        _, children, _ = await service.storefront_category("home")
        assert children == []
