"""Pytest configuration and fixtures."""

import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

import pytest

from pkdata.config import AppConfig

SAMPLE_COLUMNS = ["id", "time", "evid", "amt", "cmt", "ii", "addl", "dv", "wt"]

# Two subjects: a repeated oral regimen with follow-up samples, and a single dose
SAMPLE_ROWS = [
    ["1", "0", "1", "100", "1", "12", "2", ".", "70"],
    ["1", "1", "0", ".", "2", ".", ".", "5.2", "70"],
    ["1", "4", "0", ".", "2", ".", ".", "3.1", "70"],
    ["1", "30", "0", ".", "2", ".", ".", "1.4", "70"],
    ["2", "0", "1", "50", "1", ".", ".", ".", "82"],
    ["2", "2", "0", ".", "2", ".", ".", "2.0", "82"],
    ["2", "8", "0", ".", "2", ".", ".", "0.7", "82"],
]


def make_records(columns: List[str], rows: List[List[Any]]) -> List[Dict[str, Any]]:
    """Build row mappings from a header and positional rows."""
    return [dict(zip(columns, row)) for row in rows]


@pytest.fixture
def temp_dir():
    """Temporary directory for test artifacts."""
    with tempfile.TemporaryDirectory() as tmp:
        yield Path(tmp)


@pytest.fixture
def sample_config() -> AppConfig:
    """Sample configuration for testing."""
    return AppConfig()


@pytest.fixture
def sample_config_dict() -> Dict[str, Any]:
    """Sample configuration as dictionary."""
    return {
        "run": {
            "threads": 2,
        },
        "columns": {
            "evid_column": "EVID",
            "covariate_columns": ["wt"],
        },
        "events": {
            "compartment_alias_map": {"depot": 1, "central": 2},
        },
    }


@pytest.fixture
def sample_toml_config(temp_dir: Path) -> Path:
    """Sample TOML configuration file."""
    config_content = """
[run]
threads = 2

[table]
missing_values = ["", ".", "NA", "BLQ"]

[columns]
covariate_columns = ["wt"]

[events]
dose_code = 1
observation_code = 0

[events.compartment_alias_map]
depot = 1
central = 2
"""

    config_file = temp_dir / "test_config.toml"
    config_file.write_text(config_content)
    return config_file


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    """Valid two-subject dataset as row mappings, all cells text."""
    return make_records(SAMPLE_COLUMNS, SAMPLE_ROWS)


@pytest.fixture
def sample_csv(temp_dir: Path) -> Path:
    """Valid two-subject dataset written as CSV."""
    lines = [",".join(SAMPLE_COLUMNS)] + [",".join(row) for row in SAMPLE_ROWS]
    path = temp_dir / "sample.csv"
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def build_records():
    """Factory turning a header and positional rows into row mappings."""
    return make_records
