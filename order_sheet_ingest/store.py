"""
File-backed order store for order-sheet-ingest.

Persists a ParserResult as five tables in the configured format (Parquet
or CSV), one file per table in ``output_dir``:

  stores.{fmt}            -- one row per store (created on first import)
  imports.{fmt}           -- one row per import job, with its status
  orders.{fmt}            -- order identity and dates
  order_items.{fmt}       -- SKU and quantity, one per order
  order_financials.{fmt}  -- the financial figures, one per order

Import job lifecycle: ``pending`` -> ``processing`` -> ``success`` |
``failed``. An import that inserted nothing while errors occurred is
marked ``failed`` and raises PersistenceError.

Orders are unique per ``(store_id, platform_order_id)``: an order already
stored for the store, or repeated within the same batch, is skipped and
counted. Dates are stored as ISO strings, so lexicographic comparison is
date comparison and Parquet predicate pushdown works on them directly.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Literal

import pandas as pd
import pyarrow.parquet as pq

from order_sheet_ingest.config import StorageConfig
from order_sheet_ingest.exceptions import PersistenceError
from order_sheet_ingest.models import NormalizedOrder, ParserResult

logger = logging.getLogger(__name__)

_SUPPORTED_FORMATS = {"csv", "parquet"}

ImportStatus = Literal["pending", "processing", "success", "failed"]

# Display name used when a store is created for a marketplace
MARKETPLACE_LABELS: dict[str, str] = {
    "meli": "Mercado Livre",
    "shopee": "Shopee",
    "shein": "Shein",
    "tiktok": "TikTok Shop",
}

FINANCIAL_FIELDS = [
    "order_value",
    "revenue",
    "product_sales",
    "shipping_fee_buyer",
    "platform_discount",
    "commissions",
    "transaction_fee",
    "shipping_fee",
    "other_platform_fees",
    "total_fees",
    "refunds",
    "product_cost",
    "fees",
    "profit",
    "profit_margin",
]

TABLE_COLUMNS: dict[str, list[str]] = {
    "stores": ["store_id", "name", "marketplace", "created_at"],
    "imports": [
        "import_id", "store_id", "marketplace", "file_name", "status",
        "total_processed", "inserted", "skipped", "errors", "message",
        "started_at", "finished_at",
    ],
    "orders": [
        "order_id", "store_id", "import_id", "marketplace",
        "platform_order_id", "external_order_id", "platform_name",
        "store_name", "order_date", "settlement_date",
    ],
    "order_items": ["order_id", "sku", "quantity"],
    "order_financials": ["order_id", *FINANCIAL_FIELDS],
}

# Columns that stay numeric when a CSV table is read back
_NUMERIC_COLUMNS = {"total_processed", "inserted", "skipped", "errors", "quantity", *FINANCIAL_FIELDS}

# Import job counters; nullable while the job is still running
_COUNT_COLUMNS = ("total_processed", "inserted", "skipped", "errors")


@dataclass
class SaveResult:
    """Outcome of persisting one ParserResult."""

    import_id: str
    store_id: str
    inserted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def status(self) -> ImportStatus:
        return "failed" if self.errors and self.inserted == 0 else "success"


def _now() -> str:
    return datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds")


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


class OrderStore:
    """Read/write access to the order tables in one directory.

    Args:
        output_dir: Directory holding the table files (created on write).
        output_format: ``"parquet"`` or ``"csv"``.
    """

    def __init__(
        self,
        output_dir: str | Path,
        output_format: Literal["csv", "parquet"] = "parquet",
    ) -> None:
        if output_format not in _SUPPORTED_FORMATS:
            raise PersistenceError(
                f"Unsupported output format: '{output_format}'. "
                f"Supported formats: {sorted(_SUPPORTED_FORMATS)}"
            )
        self.output_dir = Path(output_dir)
        self.output_format = output_format

    @classmethod
    def from_config(cls, config: StorageConfig) -> OrderStore:
        return cls(config.output_dir, config.output_format)

    # ------------------------------------------------------------------
    # Table I/O
    # ------------------------------------------------------------------

    def table_path(self, table_name: str) -> Path:
        return self.output_dir / f"{table_name}.{self.output_format}"

    def read_table(
        self,
        table_name: str,
        filters: list[tuple] | None = None,
    ) -> pd.DataFrame:
        """Read a whole table; a table not written yet reads as empty.

        Parquet tables apply *filters* through PyArrow predicate pushdown;
        CSV tables are filtered in pandas after loading.
        """
        columns = TABLE_COLUMNS[table_name]
        path = self.table_path(table_name)
        if not path.exists():
            return pd.DataFrame(columns=columns)

        try:
            if self.output_format == "parquet":
                df = pq.read_table(path, filters=filters or None).to_pandas()
            else:
                dtypes = {c: str for c in columns if c not in _NUMERIC_COLUMNS}
                df = pd.read_csv(path, encoding="utf-8-sig", dtype=dtypes, keep_default_na=False, na_values=[""])
                df = _filter_frame(df, filters or [])
        except Exception as exc:
            raise PersistenceError(f"Failed to read {path.name}: {exc}") from exc
        return _with_count_dtypes(df).reset_index(drop=True)

    def _write_table(self, table_name: str, df: pd.DataFrame) -> None:
        path = self.table_path(table_name)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        df = df.reindex(columns=TABLE_COLUMNS[table_name])
        df = _with_count_dtypes(df)
        try:
            if self.output_format == "csv":
                df.to_csv(path, index=False, encoding="utf-8-sig")
            else:
                df.to_parquet(path, index=False, engine="pyarrow")
        except Exception as exc:
            raise PersistenceError(
                f"Failed to write {path.name} as {self.output_format}: {exc}"
            ) from exc
        logger.debug("Wrote %s (%d rows)", path.name, len(df))

    def _append(self, table_name: str, records: list[dict[str, Any]]) -> None:
        if not records:
            return
        existing = self.read_table(table_name)
        new = pd.DataFrame.from_records(records, columns=TABLE_COLUMNS[table_name])
        combined = new if existing.empty else pd.concat([existing, new], ignore_index=True)
        self._write_table(table_name, combined)

    # ------------------------------------------------------------------
    # Stores and import jobs
    # ------------------------------------------------------------------

    def resolve_store(self, store: str | None, marketplace: str) -> str:
        """Find or create the store an import is attributed to.

        *store* may be a store id or a store name. When it is None, the
        first store of *marketplace* is used, and created as
        "Loja <marketplace label>" if the marketplace has none yet.

        Returns:
            The store id.
        """
        stores = self.read_table("stores")
        if store:
            match = stores[(stores["store_id"] == store) | (stores["name"] == store)]
            name = store
        else:
            match = stores[stores["marketplace"] == marketplace]
            name = f"Loja {MARKETPLACE_LABELS.get(marketplace, marketplace)}"
        if not match.empty:
            return str(match.iloc[0]["store_id"])

        store_id = uuid.uuid4().hex
        self._append(
            "stores",
            [{"store_id": store_id, "name": name, "marketplace": marketplace, "created_at": _now()}],
        )
        logger.info("Created store '%s' (%s) for marketplace '%s'", name, store_id, marketplace)
        return store_id

    def start_import(self, store_id: str, marketplace: str, file_name: str) -> str:
        """Register an import job and move it to ``processing``.

        Returns:
            The import id.
        """
        import_id = uuid.uuid4().hex
        self._append(
            "imports",
            [{
                "import_id": import_id,
                "store_id": store_id,
                "marketplace": marketplace,
                "file_name": file_name,
                "status": "pending",
                "started_at": _now(),
            }],
        )
        self._update_import(import_id, status="processing")
        logger.info("Import %s started for %s", import_id, file_name)
        return import_id

    def _update_import(self, import_id: str, **values: Any) -> None:
        imports = self.read_table("imports")
        mask = imports["import_id"] == import_id
        if not mask.any():
            raise PersistenceError(f"Import not found: {import_id}")
        imports = imports.astype(object)
        for column, value in values.items():
            imports.loc[mask, column] = value
        self._write_table("imports", imports)

    def finish_import(self, result: SaveResult, total_processed: int, message: str = "") -> None:
        """Record the counts and the final status of an import job."""
        self._update_import(
            result.import_id,
            status=result.status,
            total_processed=total_processed,
            inserted=result.inserted,
            skipped=result.skipped,
            errors=len(result.errors),
            message=message or "; ".join(result.errors[:5]),
            finished_at=_now(),
        )
        logger.info(
            "Import %s finished: %s (%d inserted, %d skipped, %d errors)",
            result.import_id, result.status, result.inserted, result.skipped, len(result.errors),
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def save(self, result: ParserResult, store_id: str, import_id: str) -> SaveResult:
        """Write every new order of *result* (order + item + financials).

        Orders whose ``platform_order_id`` already exists for the store,
        in the tables or earlier in the same batch, are skipped.
        """
        outcome = SaveResult(import_id=import_id, store_id=store_id)
        existing = self.read_table("orders", filters=[("store_id", "=", store_id)])
        existing = existing[existing["store_id"] == store_id]
        seen = set(existing["platform_order_id"].astype(str))
        logger.info("Store %s already holds %d orders", store_id, len(seen))

        orders: list[dict[str, Any]] = []
        items: list[dict[str, Any]] = []
        financials: list[dict[str, Any]] = []

        for order in result.normalized_data:
            if order.platform_order_id in seen:
                logger.debug("Order %s already stored; skipped", order.platform_order_id)
                outcome.skipped += 1
                continue
            try:
                order_row, item_row, financial_row = self._order_records(
                    order, store_id, import_id, result.marketplace_name
                )
            except Exception as exc:
                outcome.errors.append(f"Order {order.platform_order_id}: {exc}")
                logger.warning("Could not store order %s: %s", order.platform_order_id, exc)
                continue
            seen.add(order.platform_order_id)
            orders.append(order_row)
            items.append(item_row)
            financials.append(financial_row)

        self._append("orders", orders)
        self._append("order_items", items)
        self._append("order_financials", financials)
        outcome.inserted = len(orders)
        return outcome

    @staticmethod
    def _order_records(
        order: NormalizedOrder,
        store_id: str,
        import_id: str,
        marketplace: str,
    ) -> tuple[dict[str, Any], dict[str, Any], dict[str, Any]]:
        order_id = uuid.uuid4().hex
        order_row = {
            "order_id": order_id,
            "store_id": store_id,
            "import_id": import_id,
            "marketplace": marketplace,
            "platform_order_id": order.platform_order_id,
            "external_order_id": order.external_order_id,
            "platform_name": order.platform_name,
            "store_name": order.store_name,
            "order_date": _iso(order.order_date),
            "settlement_date": _iso(order.settlement_date),
        }
        item_row = {"order_id": order_id, "sku": order.sku, "quantity": order.quantity}
        financial_row = {"order_id": order_id}
        financial_row.update({name: getattr(order, name) for name in FINANCIAL_FIELDS})
        return order_row, item_row, financial_row

    def load_orders(
        self,
        store_id: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        marketplace: str | None = None,
    ) -> pd.DataFrame:
        """Read stored orders joined with their item and financials.

        Args:
            store_id: Only this store's orders.
            date_from: Inclusive lower bound on ``order_date`` (ISO string).
            date_to: Inclusive upper bound on ``order_date``. A bare date
                (``"2024-01-31"``) covers that whole day.
            marketplace: Only orders of this canonical marketplace.
        """
        filters: list[tuple] = []
        if store_id is not None:
            filters.append(("store_id", "=", store_id))
        if marketplace is not None:
            filters.append(("marketplace", "=", marketplace))
        if date_from is not None:
            filters.append(("order_date", ">=", date_from))
        if date_to is not None:
            if len(date_to) == 10:
                date_to = f"{date_to}T23:59:59.999999"
            filters.append(("order_date", "<=", date_to))

        orders = self.read_table("orders", filters=filters)
        logger.debug("Loaded %d orders (filters=%s)", len(orders), filters)
        if orders.empty:
            return orders
        merged = orders.merge(self.read_table("order_items"), on="order_id", how="left")
        merged = merged.merge(self.read_table("order_financials"), on="order_id", how="left")
        return merged.sort_values("order_date", kind="stable").reset_index(drop=True)

    def list_imports(self, store_id: str | None = None) -> pd.DataFrame:
        filters = [("store_id", "=", store_id)] if store_id is not None else None
        return self.read_table("imports", filters=filters)


def _filter_frame(df: pd.DataFrame, filters: list[tuple]) -> pd.DataFrame:
    """Apply PyArrow-style ``(column, op, value)`` filters to a DataFrame."""
    for column, op, value in filters:
        if column not in df.columns:
            continue
        if op == "=":
            df = df[df[column] == value]
        elif op == ">=":
            df = df[df[column] >= value]
        elif op == "<=":
            df = df[df[column] <= value]
        else:
            raise ValueError(f"Unsupported filter operator: {op!r}")
    return df


def _with_count_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    """Cast the import counters to nullable integers (``Int64``)."""
    for column in _COUNT_COLUMNS:
        if column in df.columns:
            values = df[column].astype(object).where(df[column].notna(), None)
            df[column] = pd.to_numeric(values, errors="coerce").astype("Int64")
    return df
