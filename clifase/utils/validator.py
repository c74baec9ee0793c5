"""
Input validation for ASE adjudication.

The adjudication never repairs its inputs. A table that is missing, empty,
lacks a required column, or carries values that cannot be read as the
declared type fails the run with an ``AseInputError`` that names the table.
"""
import os
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd
import yaml

from .logging_config import get_logger

_logger = get_logger('utils.validator')

_SCHEMA_FILE = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), 'schemas', 'ase_input_schema.yaml'
)


class AseInputError(ValueError):
    """Raised when an input table is missing, empty or malformed."""

    def __init__(self, table_name: str, message: str):
        self.table_name = table_name
        super().__init__(f"Input table '{table_name}': {message}")


@lru_cache(maxsize=None)
def _load_schema(schema_file: str = _SCHEMA_FILE) -> Dict[str, Any]:
    """Load the YAML table schema."""
    _logger.debug("Loading ASE input schema from %s", schema_file)
    with open(schema_file, 'r') as f:
        return yaml.safe_load(f)['tables']


def get_table_schema(table_name: str) -> Dict[str, List[str]]:
    """Return the column declaration for ``table_name``."""
    schema = _load_schema()
    if table_name not in schema:
        raise ValueError(f"Unknown table: {table_name}. Available tables: {sorted(schema)}")
    return schema[table_name]


def required_tables() -> List[str]:
    """Names of all tables the adjudication consumes."""
    return list(_load_schema().keys())


def check_required_columns(
    df: pd.DataFrame,
    table_name: str,
    required_columns: Optional[List[str]] = None,
) -> None:
    """
    Raise ``AseInputError`` if ``df`` lacks any required column.

    Parameters
    ----------
    df : pd.DataFrame
        Table to check.
    table_name : str
        CLIF table name, used for the schema lookup and the error message.
    required_columns : list of str, optional
        Overrides the columns declared in the schema.
    """
    if required_columns is None:
        required_columns = get_table_schema(table_name)['required_columns']
    missing = [col for col in required_columns if col not in df.columns]
    if missing:
        raise AseInputError(
            table_name,
            f"missing required columns {missing}; found {list(df.columns)}"
        )


def _unparseable_count(series: pd.Series, kind: str) -> int:
    present = series.notna()
    if kind == 'datetime':
        parsed = pd.to_datetime(series, errors='coerce')
    else:
        parsed = pd.to_numeric(series, errors='coerce')
    return int((present & parsed.isna()).sum())


def validate_input_table(df: Optional[pd.DataFrame], table_name: str) -> None:
    """
    Validate one input table against the ASE input schema.

    Checks, in order: the table was provided, it has rows, every required
    column is present, and datetime/numeric columns hold parseable values.

    Raises
    ------
    AseInputError
        Naming the table and the first problem found.
    """
    if df is None:
        raise AseInputError(table_name, "table was not provided")
    if not isinstance(df, pd.DataFrame):
        raise AseInputError(table_name, f"expected a pandas DataFrame, got {type(df).__name__}")
    if len(df) == 0:
        raise AseInputError(table_name, "table is empty")

    schema = get_table_schema(table_name)
    check_required_columns(df, table_name, schema['required_columns'])

    for kind, key in (('datetime', 'datetime_columns'), ('numeric', 'numeric_columns')):
        for col in schema.get(key, []):
            bad = _unparseable_count(df[col], kind)
            if bad:
                raise AseInputError(
                    table_name,
                    f"column '{col}' has {bad} value(s) that are not valid {kind} values"
                )

    _logger.debug("Validated %s (%d rows)", table_name, len(df))


def validate_ase_inputs(tables: Mapping[str, Optional[pd.DataFrame]]) -> None:
    """Validate every table the adjudication needs; fail on the first bad one."""
    for table_name in required_tables():
        validate_input_table(tables.get(table_name), table_name)
    _logger.info("All %d input tables passed validation", len(required_tables()))
