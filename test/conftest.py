import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_repo(tmp_path: Path, name: str = "stockdash.db"):
    from stockdash.repositories.sqlite_repo import SqliteRepository

    repo = SqliteRepository(tmp_path / name)
    repo.init_db()
    return repo


def backdate_product(repo, product_id: str, ts: str = "2000-01-01 00:00:00") -> None:
    conn = repo._conn()
    cur = conn.cursor()
    cur.execute("UPDATE products SET created_at=?, updated_at=? WHERE id=?", (ts, ts, product_id))
    conn.commit()
    conn.close()
