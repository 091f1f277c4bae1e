from pathlib import Path

import pytest

from conftest import backdate_product, make_repo

from stockdash.domain.errors import NotFoundError, StorageError, ValidationError
from stockdash.domain.models import CATEGORIES
from stockdash.services.inventory_service import InventoryService
from stockdash.services.sales_service import SalesService


@pytest.mark.parametrize(
    "purchase, selling",
    [
        (0, 8.0),
        (-1.0, 8.0),
        (5.0, 0),
        (5.0, -3.0),
        (0, 0),
        (float("nan"), 8.0),
        (5.0, "nan"),
        (float("inf"), 8.0),
        (5.0, True),
    ],
)
def test_create_product_rejects_non_positive_prices(tmp_path: Path, purchase, selling):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)

    with pytest.raises(ValidationError, match="Prices must be greater than zero"):
        inv.create_product("Widget", 1, purchase, selling)
    assert repo.list_products() == []


def test_create_product_defaults_category_to_other(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))

    p = inv.create_product("  Widget  ", 4, 2.5, 4.0)

    assert p.category == "other"
    assert p.name == "Widget"
    assert p.quantity == 4
    assert p.created_at == p.updated_at


def test_create_product_rejects_bad_fields(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))

    with pytest.raises(ValidationError, match="Name is required"):
        inv.create_product("   ", 1, 1.0, 2.0)
    with pytest.raises(ValidationError, match="Quantity"):
        inv.create_product("Widget", -1, 1.0, 2.0)
    with pytest.raises(ValidationError, match="Unknown category"):
        inv.create_product("Widget", 1, 1.0, 2.0, category="weapons")


def test_category_is_normalised(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))

    assert inv.create_product("Cola", 12, 0.5, 1.2, category=" Beverages ").category == "beverages"


def test_list_products_is_newest_first(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    older = inv.create_product("Older", 1, 1.0, 2.0)
    backdate_product(repo, older.id)
    newer = inv.create_product("Newer", 1, 1.0, 2.0)

    assert [p.id for p in inv.list_products()] == [newer.id, older.id]


def test_update_product_refreshes_updated_at(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    p = inv.create_product("Widget", 3, 1.0, 2.0)
    backdate_product(repo, p.id)

    updated = inv.update_product(p.id, quantity=9, category="household")

    assert updated.quantity == 9
    assert updated.category == "household"
    assert updated.created_at.year == 2000
    assert updated.updated_at > updated.created_at


def test_update_product_validates_supplied_fields(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    p = inv.create_product("Widget", 3, 1.0, 2.0)

    with pytest.raises(ValidationError, match="Prices must be greater than zero"):
        inv.update_product(p.id, selling_price=0)
    with pytest.raises(ValidationError, match="Cannot update"):
        inv.update_product(p.id, id="other-id")
    assert inv.get_product(p.id).selling_price == 2.0


def test_update_and_delete_missing_product(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))

    with pytest.raises(NotFoundError):
        inv.update_product("missing", name="x")
    with pytest.raises(NotFoundError):
        inv.delete_product("missing")
    with pytest.raises(NotFoundError):
        inv.get_product("missing")


def test_delete_product_leaves_sales_pointing_at_it(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    p = inv.create_product("Widget", 5, 1.0, 2.0)
    sale = SalesService(repo).record_sale(p.id, 2)

    inv.delete_product(p.id)

    assert repo.get_product(p.id) is None
    assert [s.id for s in repo.list_sales()] == [sale.id]
    assert repo.list_sales()[0].product_id == p.id


def test_list_categories_is_the_sorted_default_set_plus_usage(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    inv.create_product("Bread", 3, 1.0, 2.0, category="food")
    inv.create_product("Cake", 3, 1.0, 2.0, category="food")

    cats = inv.list_categories()

    assert cats == sorted(set(CATEGORIES))
    assert len(cats) == len(set(cats))


def test_low_stock_lists_lowest_first(tmp_path: Path):
    inv = InventoryService(make_repo(tmp_path))
    inv.create_product("Plenty", 50, 1.0, 2.0)
    a = inv.create_product("Few", 3, 1.0, 2.0)
    b = inv.create_product("None left", 0, 1.0, 2.0)

    assert [p.id for p in inv.low_stock(threshold=5)] == [b.id, a.id]


def test_repository_refuses_unknown_columns(tmp_path: Path):
    repo = make_repo(tmp_path)
    p = InventoryService(repo).create_product("Widget", 1, 1.0, 2.0)

    with pytest.raises(StorageError, match="Unknown column"):
        repo.update_product(p.id, {"created_at": "1999-01-01 00:00:00"})


def test_storage_constraint_violations_surface_as_storage_error(tmp_path: Path):
    repo = make_repo(tmp_path)

    with pytest.raises(StorageError):
        repo.create_product("Widget", -5, 1.0, 2.0, "other")
