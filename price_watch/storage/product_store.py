# price_watch/storage/product_store.py

"""SQLite-backed store for monitored products and their price history."""

import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from price_watch.config.settings import Settings
from price_watch.errors import PersistenceError
from price_watch.filters.duplicate_guard import DuplicateGuard
from price_watch.models.price_history import PriceHistoryEntry
from price_watch.models.product import Product

logger = logging.getLogger("price_watch.storage")

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id        TEXT    NOT NULL,
    name           TEXT    NOT NULL,
    url            TEXT    NOT NULL,
    store          TEXT    NOT NULL DEFAULT 'Unknown',
    current_price  REAL    NOT NULL,
    previous_price REAL,
    image_url      TEXT    NOT NULL DEFAULT '',
    is_on_sale     INTEGER NOT NULL DEFAULT 0,
    is_estimated   INTEGER NOT NULL DEFAULT 0,
    price_target   REAL,
    last_checked   TEXT
);

CREATE TABLE IF NOT EXISTS price_history (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL
               REFERENCES products(id) ON DELETE CASCADE,
    price      REAL    NOT NULL,
    checked_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_products_user
    ON products(user_id);

CREATE INDEX IF NOT EXISTS idx_products_last_checked
    ON products(last_checked);

CREATE INDEX IF NOT EXISTS idx_history_product_date
    ON price_history(product_id, checked_at);
"""

_PRODUCT_COLUMNS = (
    "id, user_id, name, url, store, current_price, previous_price, "
    "image_url, is_on_sale, price_target, last_checked, is_estimated"
)

# Columns update_product may touch
_UPDATABLE: frozenset[str] = frozenset({
    "name", "url", "store", "current_price", "previous_price",
    "image_url", "is_on_sale", "price_target", "last_checked",
    "is_estimated",
})

# Columns added after the first release, created on open when missing
_ADDED_COLUMNS: dict[str, str] = {
    "is_estimated": "INTEGER NOT NULL DEFAULT 0",
}


def _to_db(value: object) -> object:
    """Convert Python values to their SQLite representation."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_product(row: tuple[Any, ...]) -> Product:
    """Build a Product from a ``_PRODUCT_COLUMNS`` row."""
    return Product(
        id=row[0],
        user_id=row[1],
        name=row[2],
        url=row[3],
        store=row[4],
        current_price=row[5],
        previous_price=row[6],
        image_url=row[7],
        is_on_sale=bool(row[8]),
        price_target=row[9],
        last_checked=(
            datetime.fromisoformat(row[10]) if row[10] else None
        ),
        is_estimated=bool(row[11]),
    )


class ProductStore:
    """SQLite implementation of the product storage collaborator.

    One connection is shared by the refresh worker threads; a lock
    serialises every statement so each read-modify-write stays
    consistent.  All sqlite3 failures surface as
    :class:`~price_watch.errors.PersistenceError`.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        self._add_missing_columns()
        logger.debug("ProductStore opened at %s", path)

    def _add_missing_columns(self) -> None:
        """Bring a database created by an older release up to date."""
        existing = {
            row[1]
            for row in self._conn.execute("PRAGMA table_info(products)")
        }
        for column, ddl in _ADDED_COLUMNS.items():
            if column not in existing:
                with self._conn:
                    self._conn.execute(
                        f"ALTER TABLE products ADD COLUMN {column} {ddl}"
                    )
                logger.info("Added column products.%s", column)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Writes ───────────────────────────────────────────

    def insert_product(self, product: Product) -> int:
        """Insert *product* and return its new id."""
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    "INSERT INTO products (user_id, name, url, store, "
                    "current_price, previous_price, image_url, "
                    "is_on_sale, price_target, last_checked, is_estimated) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        product.user_id,
                        product.name,
                        product.url,
                        product.store,
                        product.current_price,
                        product.previous_price,
                        product.image_url,
                        int(product.is_on_sale),
                        product.price_target,
                        _to_db(product.last_checked),
                        int(product.is_estimated),
                    ),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to insert product '{product.name}': {exc}"
            ) from exc
        product_id = cur.lastrowid
        if product_id is None:
            raise PersistenceError(
                f"No id assigned to product '{product.name}'"
            )
        logger.info(
            "Inserted product %d '%s' for user %s",
            product_id,
            product.name,
            product.user_id,
        )
        return product_id

    @staticmethod
    def _update_statement(
        product_id: int, fields: dict[str, object],
    ) -> tuple[str, tuple[object, ...]]:
        """Build the UPDATE for *fields*, rejecting unknown columns."""
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise PersistenceError(
                f"Cannot update columns: {', '.join(sorted(unknown))}"
            )
        assignments = ", ".join(f"{col} = ?" for col in fields)
        params = tuple(_to_db(v) for v in fields.values())
        return (
            f"UPDATE products SET {assignments} WHERE id = ?",
            (*params, product_id),
        )

    def update_product(
        self, product_id: int, fields: dict[str, object],
    ) -> None:
        """Update the given columns of one product.

        Raises:
            PersistenceError: unknown column, missing product, or a
                database error.
        """
        if not fields:
            return
        sql, params = self._update_statement(product_id, fields)
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to update product {product_id}: {exc}"
            ) from exc
        if cur.rowcount == 0:
            raise PersistenceError(f"Product {product_id} not found")
        logger.debug(
            "Updated product %d: %s", product_id, sorted(fields)
        )

    def apply_price_update(
        self,
        product_id: int,
        fields: dict[str, object],
        history_price: float | None = None,
        checked_at: datetime | None = None,
    ) -> None:
        """Update a product and append its history entry atomically.

        Either both writes land or neither does, so a stored price
        always has its matching history point.  No history entry is
        written when *history_price* is None.

        Raises:
            PersistenceError: unknown column, missing product, or a
                database error; nothing is written in that case.
        """
        sql, params = self._update_statement(product_id, fields)
        ts = (checked_at or datetime.now()).isoformat()
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(sql, params)
                if cur.rowcount == 0:
                    raise PersistenceError(
                        f"Product {product_id} not found"
                    )
                if history_price is not None:
                    self._conn.execute(
                        "INSERT INTO price_history "
                        "(product_id, price, checked_at) "
                        "VALUES (?, ?, ?)",
                        (product_id, history_price, ts),
                    )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to apply price update to product "
                f"{product_id}: {exc}"
            ) from exc
        logger.debug(
            "Applied price update to product %d: %s%s",
            product_id,
            sorted(fields),
            f" + history {history_price:.2f}"
            if history_price is not None
            else "",
        )

    def delete_product(self, product_id: int) -> None:
        """Delete a product; its price history cascades."""
        try:
            with self._lock, self._conn:
                cur = self._conn.execute(
                    "DELETE FROM products WHERE id = ?",
                    (product_id,),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to delete product {product_id}: {exc}"
            ) from exc
        if cur.rowcount == 0:
            raise PersistenceError(f"Product {product_id} not found")
        logger.info("Deleted product %d", product_id)

    def append_price_history(
        self,
        product_id: int,
        price: float,
        checked_at: datetime | None = None,
    ) -> None:
        """Append one observed price to a product's timeline."""
        ts = (checked_at or datetime.now()).isoformat()
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO price_history "
                    "(product_id, price, checked_at) VALUES (?, ?, ?)",
                    (product_id, price, ts),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"Failed to append price history for product "
                f"{product_id}: {exc}"
            ) from exc
        logger.debug(
            "Appended price %.2f for product %d at %s",
            price,
            product_id,
            ts,
        )

    # ── Queries ──────────────────────────────────────────

    def _query(
        self, sql: str, params: tuple[object, ...] = (),
    ) -> list[tuple[Any, ...]]:
        """Run a read query under the lock."""
        try:
            with self._lock:
                return self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Query failed: {exc}") from exc

    def get_product(self, product_id: int) -> Product | None:
        """Return one product with its history, or None."""
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = ?",
            (product_id,),
        )
        if not rows:
            return None
        product = _row_to_product(rows[0])
        product.price_history = self.get_price_history(product_id)
        return product

    def get_price_history(
        self, product_id: int,
    ) -> list[PriceHistoryEntry]:
        """Return a product's price history, oldest first."""
        rows = self._query(
            "SELECT product_id, price, checked_at FROM price_history "
            "WHERE product_id = ? ORDER BY checked_at ASC, id ASC",
            (product_id,),
        )
        return [
            PriceHistoryEntry(
                product_id=r[0],
                price=r[1],
                checked_at=datetime.fromisoformat(r[2]),
            )
            for r in rows
        ]

    def query_products_by_user(self, user_id: str) -> list[Product]:
        """Return a user's products with nested price history."""
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM products "
            "WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        products = [_row_to_product(r) for r in rows]
        for product in products:
            if product.id is not None:
                product.price_history = self.get_price_history(
                    product.id
                )
        return products

    def query_stale_products(self, limit: int) -> list[Product]:
        """Return up to *limit* products, least recently checked first.

        Products that were never checked sort first.
        """
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM products "
            "ORDER BY last_checked IS NOT NULL, last_checked ASC, id ASC "
            "LIMIT ?",
            (limit,),
        )
        return [_row_to_product(r) for r in rows]

    def find_possible_duplicate(
        self, user_id: str, name: str, url: str,
    ) -> Product | None:
        """Return the user's product that the candidate duplicates."""
        rows = self._query(
            f"SELECT {_PRODUCT_COLUMNS} FROM products "
            "WHERE user_id = ? ORDER BY id",
            (user_id,),
        )
        return DuplicateGuard.find_duplicate(
            [_row_to_product(r) for r in rows], name, url,
        )
