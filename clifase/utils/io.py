
import os
from typing import Dict, List, Optional, Any

import duckdb
import pandas as pd
import pytz

from .logging_config import get_logger

logger = get_logger('utils.io')


def _cast_id_cols_to_string(df):
    id_cols = [c for c in df.columns if c.endswith("_id")]
    if id_cols:                                   # no-op if none found
        df[id_cols] = df[id_cols].astype("string")
    return df


def _apply_relation_options(rel, columns=None, filters=None, sample_size=None):
    """Apply column selection, equality/IN filters and a row limit to a DuckDB relation."""
    if columns:
        rel = rel.select(*columns)

    if filters:
        for column, values in filters.items():
            if isinstance(values, (list, tuple, set)):
                values_list = ', '.join(["'" + str(v).replace("'", "''") + "'" for v in values])
                rel = rel.filter(f"{column} IN ({values_list})")
            else:
                value = str(values).replace("'", "''")
                rel = rel.filter(f"{column} = '{value}'")

    if sample_size:
        rel = rel.limit(sample_size)

    return rel


def load_data(
    table_name: str,
    table_path: str,
    table_format_type: str,
    sample_size: Optional[int] = None,
    columns: Optional[List[str]] = None,
    filters: Optional[Dict[str, Any]] = None,
    site_tz: Optional[str] = None,
    verbose: bool = False
) -> pd.DataFrame:
    """
    Load a CLIF table from ``<table_path>/clif_<table_name>.<table_format_type>``.

    Parameters
    ----------
    table_name : str
        The name of the table to load, e.g. 'labs'.
    table_path : str
        Path to the directory containing the data file.
    table_format_type : str
        Format of the data file ('csv' or 'parquet').
    sample_size : int, optional
        Number of rows to load.
    columns : list of str, optional
        List of column names to load.
    filters : dict, optional
        Mapping of column name to a value or list of values to keep.
    site_tz : str, optional
        Timezone string for datetime conversion, e.g., "America/New_York".
    verbose : bool, optional
        If True, log detailed loading messages.

    Returns
    -------
    pd.DataFrame
        Loaded table with ``*_id`` columns cast to string.

    Raises
    ------
    FileNotFoundError
        If the table file does not exist.
    ValueError
        If the filetype is not supported.
    """
    file_path = os.path.join(table_path, 'clif_' + table_name + '.' + table_format_type)

    if not os.path.exists(file_path):
        raise FileNotFoundError(f"The file {file_path} does not exist in the specified directory.")

    if table_format_type not in ('csv', 'parquet'):
        raise ValueError("Unsupported filetype. Only 'csv' and 'parquet' are supported.")

    filename = os.path.basename(file_path)
    if verbose:
        logger.info(f"Loading {filename}")

    con = duckdb.connect()
    try:
        con.execute("SET timezone = 'UTC';")          # read & return in UTC
        if table_format_type == 'csv':
            rel = con.read_csv(file_path)
        else:
            rel = con.read_parquet(file_path)
        rel = _apply_relation_options(rel, columns, filters, sample_size)
        df = rel.fetchdf()
    finally:
        con.close()

    if verbose:
        logger.info(f"Data loaded successfully from {filename} ({len(df):,} rows)")

    df = _cast_id_cols_to_string(df)

    if site_tz:
        df = convert_datetime_columns_to_site_tz(df, site_tz, verbose)

    return df


def convert_datetime_columns_to_site_tz(df, site_tz_str, verbose=True):
    """
    Convert all ``*dttm*`` columns in the DataFrame to the specified site timezone.

    Timezone-aware columns are converted; naive columns are localized.

    Parameters
    ----------
    df : pd.DataFrame
        Input DataFrame.
    site_tz_str : str
        Timezone string, e.g., "America/New_York". or "US/Central"
    verbose : bool
        Whether to log a conversion summary (default: True).

    Returns
    -------
    pd.DataFrame
        Modified DataFrame with datetime columns converted.
    """
    site_tz = pytz.timezone(site_tz_str)

    dttm_columns = [col for col in df.columns if 'dttm' in col]

    if not dttm_columns:
        logger.debug("No datetime columns found in DataFrame")
        return df

    converted_cols = []
    naive_cols = []
    problem_cols = []

    for col in dttm_columns:
        df[col] = pd.to_datetime(df[col], errors='coerce')
        if isinstance(df[col].dtype, pd.DatetimeTZDtype):
            if str(df[col].dt.tz) != str(site_tz):
                df[col] = df[col].dt.tz_convert(site_tz)
                converted_cols.append(col)
        elif pd.api.types.is_datetime64_any_dtype(df[col]):
            df[col] = df[col].dt.tz_localize(site_tz, ambiguous=True, nonexistent='shift_forward')
            naive_cols.append(col)
            logger.warning(f"{col}: Naive datetime localized to {site_tz}. Please verify this is correct.")
        else:
            problem_cols.append(col)
            logger.warning(f"{col}: Expected datetime but found {df[col].dtype}")

    if verbose and (converted_cols or naive_cols or problem_cols):
        logger.info(
            f"Timezone processing complete: {len(converted_cols)} converted, "
            f"{len(naive_cols)} localized, {len(problem_cols)} problematic"
        )

    return df
