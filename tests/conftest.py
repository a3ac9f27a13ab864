"""
Shared test fixtures and sample sheets for order-sheet-ingest tests.

Every sample grid is defined here as a module-level constant, modelled on
the header layout of the real marketplace export it stands for. Fixtures
hand out deep copies so a test can edit its grid freely.
"""

from __future__ import annotations

import copy
from datetime import datetime
from pathlib import Path

import openpyxl
import pytest

# ---------------------------------------------------------------------------
# Sample grids -- row 0 is the header, as the parsers receive it
# ---------------------------------------------------------------------------

MELI_ROWS = [
    [
        "N.º de venda", "Data da venda", "Estado", "Receita por produtos (BRL)",
        "Tarifa de venda", "Tarifas de envio", "Cancelamentos e reembolsos (BRL)",
        "Total (BRL)", "SKU", "Unidades", "Custo do produto",
    ],
    ["2000001", "05/01/2024", "Entregue", "R$ 100,00", "-12,00", "-8,00", "0", 80.0, "SKU-A", 1, 40],
    [2000002.0, 45292, "Entregue", 250.5, -30, -15.5, 0, 205, "SKU-B", 2, 100],
    ["2000003", "06/01/2024", "Cancelada", 0, 0, 0, 0, 0, "SKU-C", 1, 0],
]

SHOPEE_ROWS = [
    [
        "ID do pedido", "Data de criação do pedido", "Status do pedido", "Nome do Produto",
        "SKU de referência", "Quantidade", "Valor Total", "Receita", "Taxa de comissão",
        "Taxa de transação", "Taxa de frete", "Lucro", "Margem de Lucro",
    ],
    ["250101ABC", "2024-01-10 14:30", "Concluído", "Camiseta", "CAM-01", 1,
     "R$ 89,90", "75,50", "-10,79", "-1,80", "0", "35,20", "39,15%"],
    ["250101DEF", datetime(2024, 1, 11), "Concluído", "Bermuda", "BER-01", 2,
     120.0, 100.0, -14.4, -2.4, -5, 40, 0.3333],
]

SHEIN_ROWS = [
    [
        "Nº de pedido de plataforma", "Ordenado", "Liquidação", "Loja", "SKU Mapeado",
        "Qty. do Anúncio", "Valor do Pedido", "Valor de Liquidação", "Comissão de Vendas",
        "Taxa de Serviço de Envio", "Outros Custos", "Custo do Produto",
    ],
    ["SH001", "15/01/2024", "20/01/2024", "Loja Shein", "VES-01", 1, 150, 120, -18, -6, -2, 50],
    ["SH002", "16/01/2024", None, "Loja Shein", "VES-02", 3, 300, 260, -39, -12, 0, 90],
]

TIKTOK_ROWS = [
    [
        "Order ID", "Created Time", "Product Name", "Seller SKU", "Quantity", "Order Amount",
        "Descontos sobre vendas", "Comissão", "Shipping Fee", "Taxa de serviço", "Ajustes",
        "Imposto", "Lucro", "Margem de Lucro",
    ],
    ["5770001", "2024-02-01T10:00:00", "Tênis", "TEN-01", 1, "199,90", "-20,00",
     "-15,99", "-5,00", "-4,00", 0, "-3,00", "51,91", "25,97%"],
    [5770002, "2024-02-02", "Meia", "MEI-01", 2, 300, 0, -24, -8, -6, 0, -4, 88, 0.2933],
]

AGGREGATOR_ROWS = [
    [
        "Plataforma", "Loja", "Nº de Pedido de Plataforma", "Nº de Pedido de UpSeller",
        "Ordenado", "SKU", "Qty.", "Valor do Pedido", "Receita", "Comissão",
        "Taxa de Transação", "Taxa do Frete", "Custo do Produto", "Reembolso",
    ],
    ["Mercado Livre", "Loja Centro", "2000009001", "UP001", "10/03/2024", "KIT-01", 1,
     150, 120, -18, 0, -12, 40, 0],
    ["Mercado Livre", "Loja Centro", "2000009002", "UP002", "11/03/2024", "KIT-02", 2,
     300, 250, -36, -3, -11, 100, 10],
]

UNKNOWN_ROWS = [
    ["Coluna A", "Coluna B", "Coluna C"],
    [1, 2, 3],
    [4, 5, 6],
]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def meli_rows() -> list[list]:
    return copy.deepcopy(MELI_ROWS)


@pytest.fixture
def shopee_rows() -> list[list]:
    return copy.deepcopy(SHOPEE_ROWS)


@pytest.fixture
def shein_rows() -> list[list]:
    return copy.deepcopy(SHEIN_ROWS)


@pytest.fixture
def tiktok_rows() -> list[list]:
    return copy.deepcopy(TIKTOK_ROWS)


@pytest.fixture
def aggregator_rows() -> list[list]:
    return copy.deepcopy(AGGREGATOR_ROWS)


def write_workbook(path: Path, rows: list[list], banner: str | None = "Relatório de vendas") -> Path:
    """Write *rows* to the first worksheet of a new .xlsx file.

    A banner line is written above the header by default, as the real
    exports do; read_grid() drops it.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    if banner is not None:
        ws.append([banner])
    for row in rows:
        ws.append(list(row))
    wb.save(path)
    return path


@pytest.fixture
def make_workbook(tmp_path):
    """Factory fixture: ``make_workbook(rows, name="sheet.xlsx", banner=...)``."""

    def _make(rows: list[list], name: str = "sheet.xlsx", **kwargs) -> Path:
        return write_workbook(tmp_path / name, copy.deepcopy(rows), **kwargs)

    return _make


# ---------------------------------------------------------------------------
# Pytest markers
# ---------------------------------------------------------------------------
def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (writes workbooks and order tables to disk)",
    )
