"""Shared fixtures: small Parquet datasets written into tmp_path."""

from pathlib import Path
from typing import Dict, List, Optional

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

SALES_SCHEMA = pa.schema([("id", pa.int64()), ("amount", pa.float64()), ("code", pa.string())])


def _write(path: Path, rows: List[Dict], schema: Optional[pa.Schema] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    pq.write_table(pa.Table.from_pylist(rows, schema=schema), path)
    return path


@pytest.fixture
def write_parquet():
    """Write ``rows`` to a Parquet file at ``path``, creating parent dirs."""
    return _write


@pytest.fixture
def sales_dir(tmp_path):
    """
    Partitioned by year:

        sales/
            year=2020/part-0000.parquet   ids 1, 2, 3
            year=2021/part-0000.parquet   ids 4, 5
            _SUCCESS
    """
    root = tmp_path / "sales"
    _write(
        root / "year=2020" / "part-0000.parquet",
        [
            {"id": 1, "amount": 10.0, "code": "1"},
            {"id": 2, "amount": 20.0, "code": "2"},
            {"id": 3, "amount": 30.0, "code": "3"},
        ],
        SALES_SCHEMA,
    )
    _write(
        root / "year=2021" / "part-0000.parquet",
        [
            {"id": 4, "amount": 40.0, "code": "x"},
            {"id": 5, "amount": 50.0, "code": "y"},
        ],
        SALES_SCHEMA,
    )
    (root / "_SUCCESS").write_text("")
    return root


@pytest.fixture
def regions_dir(tmp_path):
    """
    Two partition levels, year then country, one file each:

        regions/year=2020/country=PL   ids 1, 2
        regions/year=2020/country=US   id 3
        regions/year=2021/country=PL   id 4
    """
    root = tmp_path / "regions"
    _write(root / "year=2020" / "country=PL" / "part-0000.parquet", [{"id": 1}, {"id": 2}])
    _write(root / "year=2020" / "country=US" / "part-0000.parquet", [{"id": 3}])
    _write(root / "year=2021" / "country=PL" / "part-0000.parquet", [{"id": 4}])
    return root
