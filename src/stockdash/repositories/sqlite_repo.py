from __future__ import annotations

import shutil
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Mapping, Optional

from stockdash.domain.errors import DuplicateUsernameError, NotFoundError, StorageError
from stockdash.domain.models import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    DailySalesSummary,
    DashboardStats,
    Product,
    Profile,
    Sale,
    profit_margin,
)
from stockdash.repositories.schema import AUTH_USERS_DDL

# application field -> storage column
PRODUCT_FIELDS: dict[str, str] = {
    "name": "name",
    "quantity": "quantity",
    "purchase_price": "purchase_price",
    "selling_price": "selling_price",
    "category": "category",
}
PROFILE_FIELDS: dict[str, str] = {
    "username": "username",
    "full_name": "full_name",
    "phone_number": "phone_number",
}

_PRODUCT_COLS = "id, name, quantity, purchase_price, selling_price, category, created_at, updated_at"
_SALE_COLS = "id, product_id, quantity, total_amount, profit, created_at, sale_time"
_PROFILE_COLS = "id, username, full_name, phone_number, created_at, updated_at"


def now_iso(dt: Optional[datetime] = None) -> str:
    return (dt or datetime.now()).replace(microsecond=0).isoformat(sep=" ")


def _parse_dt(value: str) -> datetime:
    return datetime.fromisoformat(str(value))


def new_id() -> str:
    return uuid.uuid4().hex


class SqliteRepository:
    def __init__(self, db_path: Path | str):
        self.db_path = str(db_path)

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _cursor(self, write: bool = False) -> Iterator[sqlite3.Cursor]:
        """Yield a cursor; ``write`` runs the block as one IMMEDIATE transaction."""
        try:
            conn = self._conn()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        try:
            cur = conn.cursor()
            if write:
                cur.execute("BEGIN IMMEDIATE")
            yield cur
            if write:
                conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "profiles.username" in str(exc):
                raise DuplicateUsernameError("Username already taken") from exc
            raise StorageError(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # ---------- Schema ----------
    def init_db(self) -> None:
        self.run_migrations()

    def _migrations(self):
        return [
            (1, self._migration_v1_base),
            (2, self._migration_v2_reporting_indexes),
        ]

    def schema_version(self) -> int:
        conn = self._conn()
        try:
            conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)")
            row = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations").fetchone()
            conn.commit()
            return int(row[0])
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def run_migrations(self) -> None:
        current = self.schema_version()
        pending = [(v, step) for v, step in self._migrations() if v > current]
        if not pending:
            return

        backup_path = self._backup_before_migrating()
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN")
            for version, step in pending:
                step(cur)
                cur.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, now_iso()),
                )
            conn.commit()
        except Exception as exc:
            conn.rollback()
            self._restore_backup(backup_path)
            raise StorageError(
                f"Migration to schema v{pending[-1][0]} failed; database restored from backup."
            ) from exc
        finally:
            conn.close()

    def _backup_before_migrating(self) -> Path | None:
        db_file = Path(self.db_path)
        # a brand new database has nothing worth keeping
        if not self._has_user_tables():
            return None
        stamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_file = db_file.with_name(f"{db_file.stem}.pre_migration_{stamp}.bak")
        shutil.copy2(db_file, backup_file)
        return backup_file

    def _has_user_tables(self) -> bool:
        conn = self._conn()
        try:
            row = conn.execute(
                "SELECT COUNT(*) FROM sqlite_master WHERE type='table' AND name != 'schema_migrations'"
            ).fetchone()
            return int(row[0]) > 0
        finally:
            conn.close()

    def _restore_backup(self, backup_path: Path | None) -> None:
        if backup_path is not None and backup_path.exists():
            shutil.copy2(backup_path, self.db_path)

    def _migration_v1_base(self, cur: sqlite3.Cursor) -> None:
        categories = ", ".join(f"'{c}'" for c in CATEGORIES)
        cur.execute(
            f"""
        CREATE TABLE IF NOT EXISTS products (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL CHECK(length(trim(name)) > 0),
            quantity INTEGER NOT NULL DEFAULT 0 CHECK(quantity >= 0),
            purchase_price REAL NOT NULL CHECK(purchase_price > 0),
            selling_price REAL NOT NULL CHECK(selling_price > 0),
            category TEXT NOT NULL DEFAULT '{DEFAULT_CATEGORY}' CHECK(category IN ({categories})),
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
        )

        # product_id is a weak reference: sales outlive their product
        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS sales (
            id TEXT PRIMARY KEY,
            product_id TEXT NOT NULL,
            quantity INTEGER NOT NULL CHECK(quantity > 0),
            total_amount REAL NOT NULL,
            profit REAL NOT NULL,
            sale_time TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
        )

        cur.execute(
            """
        CREATE TABLE IF NOT EXISTS profiles (
            id TEXT PRIMARY KEY,
            username TEXT UNIQUE NOT NULL,
            full_name TEXT,
            phone_number TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
        )

        cur.execute(AUTH_USERS_DDL)

    def _migration_v2_reporting_indexes(self, cur: sqlite3.Cursor) -> None:
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_created_at ON sales(created_at)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_sales_product_id ON sales(product_id)")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_products_category ON products(category)")

    def integrity_check(self) -> str:
        with self._cursor() as cur:
            cur.execute("PRAGMA integrity_check")
            row = cur.fetchone()
        return str(row[0]) if row else "unknown"

    # ---------- Row mapping ----------
    @staticmethod
    def _product(r) -> Product:
        return Product(
            id=str(r[0]),
            name=str(r[1]),
            quantity=int(r[2]),
            purchase_price=float(r[3]),
            selling_price=float(r[4]),
            category=str(r[5]),
            created_at=_parse_dt(r[6]),
            updated_at=_parse_dt(r[7]),
        )

    @staticmethod
    def _sale(r) -> Sale:
        return Sale(
            id=str(r[0]),
            product_id=str(r[1]),
            quantity=int(r[2]),
            total_amount=float(r[3]),
            profit=float(r[4]),
            created_at=_parse_dt(r[5]),
            sale_time=_parse_dt(r[6]),
        )

    @staticmethod
    def _profile(r) -> Profile:
        return Profile(
            id=str(r[0]),
            username=str(r[1]),
            full_name=(r[2] if r[2] is not None else None),
            phone_number=(r[3] if r[3] is not None else None),
            created_at=_parse_dt(r[4]),
            updated_at=_parse_dt(r[5]),
        )

    @staticmethod
    def _assignments(fields: Mapping[str, object], allowed: Mapping[str, str]) -> tuple[str, list]:
        unknown = set(fields) - set(allowed)
        if unknown:
            raise StorageError(f"Unknown column(s): {', '.join(sorted(unknown))}")
        cols = [f"{allowed[k]}=?" for k in fields]
        return ", ".join(cols), list(fields.values())

    # ---------- Products ----------
    def list_products(self) -> list[Product]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_PRODUCT_COLS} FROM products ORDER BY created_at DESC, rowid DESC")
            rows = cur.fetchall()
        return [self._product(r) for r in rows]

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_PRODUCT_COLS} FROM products WHERE id=?", (str(product_id),))
            r = cur.fetchone()
        return self._product(r) if r else None

    def create_product(
        self,
        name: str,
        quantity: int,
        purchase_price: float,
        selling_price: float,
        category: str = DEFAULT_CATEGORY,
    ) -> Product:
        pid = new_id()
        ts = now_iso()
        with self._cursor(write=True) as cur:
            cur.execute(
                f"""
                INSERT INTO products ({_PRODUCT_COLS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (pid, name, int(quantity), float(purchase_price), float(selling_price), category, ts, ts),
            )
            cur.execute(f"SELECT {_PRODUCT_COLS} FROM products WHERE id=?", (pid,))
            r = cur.fetchone()
        return self._product(r)

    def update_product(self, product_id: str, fields: Mapping[str, object]) -> Optional[Product]:
        assignments, values = self._assignments(fields, PRODUCT_FIELDS)
        sets = f"{assignments}, updated_at=?" if assignments else "updated_at=?"
        with self._cursor(write=True) as cur:
            cur.execute(
                f"UPDATE products SET {sets} WHERE id=?",
                (*values, now_iso(), str(product_id)),
            )
            if cur.rowcount == 0:
                return None
            cur.execute(f"SELECT {_PRODUCT_COLS} FROM products WHERE id=?", (str(product_id),))
            r = cur.fetchone()
        return self._product(r)

    def delete_product(self, product_id: str) -> bool:
        with self._cursor(write=True) as cur:
            cur.execute("DELETE FROM products WHERE id=?", (str(product_id),))
            changed = cur.rowcount > 0
        return bool(changed)

    def list_categories(self) -> list[str]:
        with self._cursor() as cur:
            cur.execute("SELECT DISTINCT category FROM products")
            in_use = {str(r[0]) for r in cur.fetchall()}
        return sorted(in_use | set(CATEGORIES))

    def list_low_stock(self, threshold: int) -> list[Product]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT {_PRODUCT_COLS}
                FROM products
                WHERE quantity <= ?
                ORDER BY quantity ASC, name ASC
                """,
                (int(threshold),),
            )
            rows = cur.fetchall()
        return [self._product(r) for r in rows]

    # ---------- Sales ----------
    def record_sale(self, product_id: str, quantity: int, sale_time: Optional[datetime] = None) -> Optional[Sale]:
        """Decrement stock and insert the sale in one transaction.

        Returns None when the conditional decrement matched no row because
        stock ran short, and raises NotFoundError when the product row is
        gone. Nothing is written in either case.
        """
        qty = int(quantity)
        created = now_iso()
        sold_at = now_iso(sale_time) if sale_time else created
        sale_id = new_id()

        with self._cursor(write=True) as cur:
            cur.execute(
                "SELECT purchase_price, selling_price FROM products WHERE id=?",
                (str(product_id),),
            )
            row = cur.fetchone()
            if not row:
                raise NotFoundError("Product not found.")
            purchase_price, selling_price = float(row[0]), float(row[1])

            cur.execute(
                """
                UPDATE products
                SET quantity = quantity - ?, updated_at = ?
                WHERE id = ? AND quantity >= ?
                """,
                (qty, created, str(product_id), qty),
            )
            if cur.rowcount == 0:
                return None

            cur.execute(
                f"""
                INSERT INTO sales ({_SALE_COLS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    sale_id,
                    str(product_id),
                    qty,
                    qty * selling_price,
                    qty * (selling_price - purchase_price),
                    created,
                    sold_at,
                ),
            )
            cur.execute(f"SELECT {_SALE_COLS} FROM sales WHERE id=?", (sale_id,))
            r = cur.fetchone()
        return self._sale(r)

    def list_sales(self) -> list[Sale]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_SALE_COLS} FROM sales ORDER BY created_at DESC, rowid DESC")
            rows = cur.fetchall()
        return [self._sale(r) for r in rows]

    def list_sales_since(self, since: datetime) -> list[Sale]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT {_SALE_COLS}
                FROM sales
                WHERE created_at >= ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (since.isoformat(sep=" "),),
            )
            rows = cur.fetchall()
        return [self._sale(r) for r in rows]

    # ---------- Aggregates ----------
    def get_dashboard_stats(self, today: Optional[date] = None) -> DashboardStats:
        day = (today or date.today()).isoformat()
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT COUNT(*), COALESCE(SUM(purchase_price * quantity), 0)
                FROM products
                """
            )
            n_products, inventory_value = cur.fetchone()

            cur.execute("SELECT COUNT(*), COALESCE(SUM(total_amount), 0), COALESCE(SUM(profit), 0) FROM sales")
            n_sales, total_sales, total_profit = cur.fetchone()

            cur.execute(
                """
                SELECT COUNT(*), COALESCE(SUM(total_amount), 0), COALESCE(SUM(profit), 0)
                FROM sales
                WHERE substr(created_at, 1, 10) = ?
                """,
                (day,),
            )
            n_today, today_sales, today_profit = cur.fetchone()

            cur.execute("SELECT category, COUNT(*) FROM products GROUP BY category")
            categories = {str(r[0]): int(r[1]) for r in cur.fetchall()}

        return DashboardStats(
            total_products=int(n_products),
            total_inventory_value=float(inventory_value),
            total_sales=float(total_sales),
            total_profit=float(total_profit),
            total_count=int(n_sales),
            today_sales=float(today_sales),
            today_profit=float(today_profit),
            today_count=int(n_today),
            categories_count=categories,
            profit_margin=profit_margin(float(total_profit), float(total_sales)),
        )

    def get_daily_sales(self) -> list[DailySalesSummary]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT substr(created_at, 1, 10) AS d,
                       COALESCE(SUM(total_amount), 0),
                       COALESCE(SUM(profit), 0),
                       COUNT(*)
                FROM sales
                GROUP BY d
                ORDER BY d DESC
                """
            )
            rows = cur.fetchall()
        return [DailySalesSummary(date=str(r[0]), total=float(r[1]), profit=float(r[2]), count=int(r[3])) for r in rows]

    # ---------- Profiles ----------
    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {_PROFILE_COLS} FROM profiles WHERE id=?", (str(user_id),))
            r = cur.fetchone()
        return self._profile(r) if r else None

    def get_profile_by_username(self, username: str, exclude_id: Optional[str] = None) -> Optional[Profile]:
        with self._cursor() as cur:
            if exclude_id is None:
                cur.execute(f"SELECT {_PROFILE_COLS} FROM profiles WHERE username=?", (username,))
            else:
                cur.execute(
                    f"SELECT {_PROFILE_COLS} FROM profiles WHERE username=? AND id<>?",
                    (username, str(exclude_id)),
                )
            r = cur.fetchone()
        return self._profile(r) if r else None

    def create_profile(
        self,
        user_id: str,
        username: str,
        full_name: Optional[str],
        phone_number: Optional[str],
    ) -> Profile:
        ts = now_iso()
        with self._cursor(write=True) as cur:
            cur.execute(
                f"""
                INSERT INTO profiles ({_PROFILE_COLS})
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (str(user_id), username, full_name, phone_number, ts, ts),
            )
            cur.execute(f"SELECT {_PROFILE_COLS} FROM profiles WHERE id=?", (str(user_id),))
            r = cur.fetchone()
        return self._profile(r)

    def update_profile(self, user_id: str, fields: Mapping[str, object]) -> Optional[Profile]:
        assignments, values = self._assignments(fields, PROFILE_FIELDS)
        sets = f"{assignments}, updated_at=?" if assignments else "updated_at=?"
        with self._cursor(write=True) as cur:
            cur.execute(f"UPDATE profiles SET {sets} WHERE id=?", (*values, now_iso(), str(user_id)))
            if cur.rowcount == 0:
                return None
            cur.execute(f"SELECT {_PROFILE_COLS} FROM profiles WHERE id=?", (str(user_id),))
            r = cur.fetchone()
        return self._profile(r)

    def get_user_email(self, user_id: str) -> Optional[str]:
        with self._cursor() as cur:
            cur.execute("SELECT email FROM auth_users WHERE id=?", (str(user_id),))
            r = cur.fetchone()
        return str(r[0]) if r else None
