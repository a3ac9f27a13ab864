"""
Unit tests for the file-backed order store (order_sheet_ingest.store).

Every test runs against both table formats.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from order_sheet_ingest.config import StorageConfig
from order_sheet_ingest.exceptions import PersistenceError
from order_sheet_ingest.models import NormalizedOrder, ParserResult
from order_sheet_ingest.store import TABLE_COLUMNS, OrderStore, SaveResult


def _order(order_id: str, day: int, revenue: float = 100.0, **extra) -> NormalizedOrder:
    return NormalizedOrder(
        platform_order_id=order_id,
        order_date=datetime(2024, 1, day, 15, 30),
        order_value=revenue,
        revenue=revenue,
        profit=revenue / 2,
        profit_margin=50.0,
        **extra,
    )


def _result(*orders: NormalizedOrder, marketplace: str = "meli") -> ParserResult:
    return ParserResult(marketplace_name=marketplace, normalized_data=list(orders), parser_name=marketplace)


@pytest.fixture(params=["parquet", "csv"])
def store(request, tmp_path) -> OrderStore:
    return OrderStore(tmp_path / "db", output_format=request.param)


def _import(store: OrderStore, result: ParserResult, store_name: str | None = None) -> SaveResult:
    store_id = store.resolve_store(store_name, result.marketplace_name)
    import_id = store.start_import(store_id, result.marketplace_name, "vendas.xlsx")
    saved = store.save(result, store_id, import_id)
    store.finish_import(saved, len(result.normalized_data), "done")
    return saved


class TestConstruction:
    """Tests for OrderStore construction."""

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(PersistenceError, match="Unsupported output format"):
            OrderStore(tmp_path, output_format="xlsx")

    def test_from_config(self, tmp_path):
        store = OrderStore.from_config(StorageConfig(output_dir=str(tmp_path), output_format="csv"))
        assert store.table_path("orders") == tmp_path / "orders.csv"

    def test_missing_table_reads_empty(self, store):
        df = store.read_table("orders")
        assert df.empty
        assert list(df.columns) == TABLE_COLUMNS["orders"]


class TestStores:
    """Tests for resolve_store()."""

    def test_marketplace_default_store_is_created_once(self, store):
        first = store.resolve_store(None, "shopee")
        second = store.resolve_store(None, "shopee")

        assert first == second
        stores = store.read_table("stores")
        assert list(stores["name"]) == ["Loja Shopee"]

    def test_store_by_name_then_id(self, store):
        store_id = store.resolve_store("Loja Centro", "meli")

        assert store.resolve_store("Loja Centro", "meli") == store_id
        assert store.resolve_store(store_id, "meli") == store_id
        assert store.resolve_store(None, "shein") != store_id


class TestSave:
    """Tests for save() and the import job lifecycle."""

    def test_inserts_orders(self, store):
        saved = _import(store, _result(_order("A1", 5, sku="SKU-1", quantity=2), _order("A2", 6)))

        assert saved.inserted == 2
        assert saved.skipped == 0
        assert saved.status == "success"
        assert len(store.read_table("orders")) == 2
        items = store.read_table("order_items")
        assert set(items["sku"]) == {"SKU-1", "N/A"}

    def test_reimport_skips_existing_orders(self, store):
        _import(store, _result(_order("A1", 5)), "Loja Centro")
        saved = _import(store, _result(_order("A1", 5), _order("A2", 6)), "Loja Centro")

        assert saved.inserted == 1
        assert saved.skipped == 1
        assert len(store.read_table("orders")) == 2

    def test_duplicate_within_batch_is_skipped(self, store):
        saved = _import(store, _result(_order("A1", 5), _order("A1", 5, revenue=80.0)))

        assert saved.inserted == 1
        assert saved.skipped == 1

    def test_same_id_in_another_store_is_kept(self, store):
        _import(store, _result(_order("A1", 5)), "Loja Centro")
        saved = _import(store, _result(_order("A1", 5)), "Loja Norte")
        assert saved.inserted == 1

    def test_import_job_is_finished(self, store):
        _import(store, _result(_order("A1", 5), _order("A1", 5)))
        imports = store.list_imports()

        assert len(imports) == 1
        job = imports.iloc[0]
        assert job["status"] == "success"
        assert int(job["inserted"]) == 1
        assert int(job["skipped"]) == 1
        assert int(job["total_processed"]) == 2
        assert job["message"] == "done"
        assert job["file_name"] == "vendas.xlsx"

    def test_import_counters_stay_integers(self, store):
        """Counters read back as nullable integers, not floats."""
        _import(store, _result(_order("A1", 5)))
        running = store.start_import("s", "meli", "b.xlsx")
        imports = store.list_imports()

        for column in ("total_processed", "inserted", "skipped", "errors"):
            assert str(imports[column].dtype) == "Int64"
        finished = imports[imports["import_id"] != running].iloc[0]
        assert finished["inserted"] == 1
        assert finished["skipped"] == 0
        assert finished["errors"] == 0
        assert imports[imports["import_id"] == running]["inserted"].isna().all()

    def test_failed_status(self):
        result = SaveResult(import_id="i", store_id="s", errors=["boom"])
        assert result.status == "failed"
        result.inserted = 1
        assert result.status == "success"

    def test_update_unknown_import(self, store):
        store.start_import("s", "meli", "a.xlsx")
        with pytest.raises(PersistenceError, match="Import not found"):
            store.finish_import(SaveResult(import_id="nope", store_id="s"), 0)


class TestLoadOrders:
    """Tests for load_orders() filters."""

    @pytest.fixture
    def loaded(self, store) -> OrderStore:
        _import(store, _result(_order("A1", 5), _order("A2", 20)), "Loja Centro")
        _import(store, _result(_order("S1", 10), marketplace="shopee"), "Loja Shopee")
        return store

    def test_all_orders_sorted_by_date(self, loaded):
        df = loaded.load_orders()
        assert list(df["platform_order_id"]) == ["A1", "S1", "A2"]

    def test_joins_items_and_financials(self, loaded):
        row = loaded.load_orders().iloc[0]

        assert row["sku"] == "N/A"
        assert int(row["quantity"]) == 1
        assert row["revenue"] == pytest.approx(100.0)
        assert row["profit_margin"] == pytest.approx(50.0)

    def test_filter_by_marketplace(self, loaded):
        df = loaded.load_orders(marketplace="shopee")
        assert list(df["platform_order_id"]) == ["S1"]

    def test_filter_by_store(self, loaded):
        store_id = loaded.resolve_store("Loja Centro", "meli")
        df = loaded.load_orders(store_id=store_id)
        assert list(df["platform_order_id"]) == ["A1", "A2"]

    def test_date_to_covers_whole_day(self, loaded):
        """Orders at 15:30 on the last day are included by a bare date bound."""
        df = loaded.load_orders(date_from="2024-01-05", date_to="2024-01-10")
        assert list(df["platform_order_id"]) == ["A1", "S1"]

    def test_no_match(self, loaded):
        assert loaded.load_orders(date_from="2025-01-01").empty
