from datetime import date, datetime
from pathlib import Path

import pytest

from conftest import make_repo

from stockdash.domain.errors import StorageError
from stockdash.repositories.sqlite_repo import SqliteRepository
from stockdash.services import analytics
from stockdash.services.inventory_service import InventoryService
from stockdash.services.sales_service import SalesService


def _seed(tmp_path: Path):
    repo = make_repo(tmp_path)
    inv = InventoryService(repo)
    sales = SalesService(repo)
    a = inv.create_product("Apple", 20, 0.5, 1.25, category="food")
    b = inv.create_product("Pen", 8, 0.2, 1.0, category="stationery")
    inv.create_product("Cable", 4, 3.0, 9.0, category="electronics")
    sales.record_sale(a.id, 4)
    sales.record_sale(b.id, 3)
    sales.record_sale(a.id, 2)
    return repo


def test_init_db_is_idempotent(tmp_path: Path):
    repo = make_repo(tmp_path)
    repo.init_db()

    conn = repo._conn()
    cur = conn.cursor()
    cur.execute("SELECT version FROM schema_migrations ORDER BY version")
    versions = [r[0] for r in cur.fetchall()]
    conn.close()

    assert versions == [1, 2]
    assert repo.integrity_check() == "ok"


def test_init_db_on_current_schema_writes_no_backup(tmp_path: Path):
    repo = make_repo(tmp_path)
    for _ in range(3):
        repo.init_db()

    assert list(tmp_path.glob("*.bak")) == []


def test_pending_migration_backs_up_existing_database(tmp_path: Path):
    repo = make_repo(tmp_path)
    InventoryService(repo).create_product("Apple", 3, 0.5, 1.25)
    conn = repo._conn()
    conn.execute("DELETE FROM schema_migrations WHERE version = 2")
    conn.commit()
    conn.close()

    repo.init_db()

    backups = list(tmp_path.glob("stockdash.pre_migration_*.bak"))
    assert len(backups) == 1
    assert repo.schema_version() == 2
    assert [p.name for p in repo.list_products()] == ["Apple"]


def test_sql_dashboard_stats_match_the_in_memory_engine(tmp_path: Path):
    repo = _seed(tmp_path)
    today = date.today()

    from_sql = repo.get_dashboard_stats(today=today)
    in_memory = analytics.dashboard_stats(repo.list_products(), repo.list_sales(), today=today)

    assert from_sql.total_products == in_memory.total_products == 3
    assert from_sql.total_count == in_memory.total_count == 3
    assert from_sql.today_count == 3
    assert from_sql.total_inventory_value == pytest.approx(in_memory.total_inventory_value)
    assert from_sql.total_sales == pytest.approx(in_memory.total_sales)
    assert from_sql.total_sales == pytest.approx(6 * 1.25 + 3 * 1.0)
    assert from_sql.total_profit == pytest.approx(in_memory.total_profit)
    assert from_sql.profit_margin == pytest.approx(in_memory.profit_margin)
    assert from_sql.categories_count == in_memory.categories_count


def test_sql_dashboard_stats_on_empty_store(tmp_path: Path):
    stats = make_repo(tmp_path).get_dashboard_stats()

    assert stats.total_products == 0
    assert stats.total_sales == 0.0
    assert stats.profit_margin == 0.0
    assert stats.categories_count == {}


def test_sql_daily_sales_match_the_in_memory_engine(tmp_path: Path):
    repo = _seed(tmp_path)

    from_sql = repo.get_daily_sales()
    in_memory = analytics.daily_sales(repo.list_sales())

    assert len(from_sql) == 1
    assert from_sql[0].date == in_memory[0].date
    assert from_sql[0].count == in_memory[0].count == 3
    assert from_sql[0].total == pytest.approx(in_memory[0].total)
    assert from_sql[0].profit == pytest.approx(in_memory[0].profit)


def test_unreachable_store_raises_storage_error(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "missing-dir" / "db.sqlite")

    with pytest.raises(StorageError):
        repo.list_products()


def test_missing_tables_raise_storage_error(tmp_path: Path):
    repo = SqliteRepository(tmp_path / "blank.db")

    with pytest.raises(StorageError, match="no such table"):
        repo.list_sales()


def test_list_sales_since_filters_in_sql(tmp_path: Path):
    repo = _seed(tmp_path)
    old = repo.list_sales()[-1]
    conn = repo._conn()
    conn.execute("UPDATE sales SET created_at='2000-01-01 09:00:00' WHERE id=?", (old.id,))
    conn.commit()
    conn.close()

    recent = SalesService(repo).list_sales_since(7)

    assert len(recent) == 2
    assert old.id not in {s.id for s in recent}
    assert len(SalesService(repo).list_sales_since(7, now=datetime(2000, 1, 2))) == 3
