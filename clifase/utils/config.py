"""
Configuration loading utilities for ASE adjudication runs.

This module provides functions to load configuration from JSON files
for consistent data loading across CLIF tables and the ASE orchestrator.
"""

import os
import json
from typing import Dict, Any, Optional

from .logging_config import get_logger

logger = get_logger('utils.config')

REQUIRED_FIELDS = ['data_directory', 'filetype', 'timezone']
SUPPORTED_FILETYPES = ['csv', 'parquet']


def load_clif_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load CLIF configuration from JSON file.

    Parameters
    ----------
    config_path : str, optional
        Path to the configuration file.
        If None, looks for 'clif_config.json' in current directory.

    Returns
    -------
    dict
        Configuration dictionary with required fields validated.
        An optional ``ase`` object holds adjudication parameter overrides.

    Raises
    ------
    FileNotFoundError
        If config file doesn't exist
    ValueError
        If required fields are missing or invalid
    json.JSONDecodeError
        If config file is not valid JSON
    """
    if config_path is None:
        config_path = os.path.join(os.getcwd(), 'clif_config.json')

    if not os.path.exists(config_path):
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            "Please either:\n"
            "  1. Create a clif_config.json file in the current directory\n"
            "  2. Provide config_path parameter pointing to your config file\n"
            "  3. Provide data_directory, filetype, and timezone parameters directly"
        )

    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise json.JSONDecodeError(
            f"Invalid JSON in configuration file {config_path}: {str(e)}",
            e.doc, e.pos
        )

    missing_fields = [field for field in REQUIRED_FIELDS if field not in config]
    if missing_fields:
        raise ValueError(
            f"Missing required fields in configuration file {config_path}: {missing_fields}\n"
            f"Required fields are: {REQUIRED_FIELDS}"
        )

    data_dir = config['data_directory']
    if not os.path.exists(data_dir):
        raise ValueError(
            f"Data directory specified in config does not exist: {data_dir}\n"
            f"Please check the 'data_directory' path in {config_path}"
        )

    if config['filetype'] not in SUPPORTED_FILETYPES:
        raise ValueError(
            f"Unsupported filetype '{config['filetype']}' in {config_path}\n"
            f"Supported filetypes are: {SUPPORTED_FILETYPES}"
        )

    if 'ase' in config and not isinstance(config['ase'], dict):
        raise ValueError(
            f"The 'ase' entry in {config_path} must be an object of parameter overrides"
        )

    logger.info(f"Configuration loaded successfully from {config_path}")
    return config


def get_config_or_params(
    config_path: Optional[str] = None,
    data_directory: Optional[str] = None,
    filetype: Optional[str] = None,
    timezone: Optional[str] = None,
    output_directory: Optional[str] = None
) -> Dict[str, Any]:
    """
    Get configuration from either config file or direct parameters.

    Loading priority:
    1. If all required params provided directly → use them
    2. If config_path provided → load from that path, allow param overrides
    3. If no params and no config_path → auto-detect clif_config.json
    4. Parameters override config file values when both are provided

    Parameters
    ----------
    config_path : str, optional
        Path to configuration file
    data_directory : str, optional
        Direct parameter
    filetype : str, optional
        Direct parameter
    timezone : str, optional
        Direct parameter
    output_directory : str, optional
        Direct parameter

    Returns
    -------
    dict
        Final configuration dictionary

    Raises
    ------
    ValueError
        If neither config nor required params are provided
    """
    required_params = [data_directory, filetype, timezone]
    if all(param is not None for param in required_params):
        config = {
            'data_directory': data_directory,
            'filetype': filetype,
            'timezone': timezone
        }
        if output_directory is not None:
            config['output_directory'] = output_directory
        logger.info("Using directly provided parameters")
        return config

    try:
        config = load_clif_config(config_path)
    except FileNotFoundError:
        if any(param is not None for param in required_params):
            missing = []
            if data_directory is None:
                missing.append('data_directory')
            if filetype is None:
                missing.append('filetype')
            if timezone is None:
                missing.append('timezone')
            raise ValueError(
                f"Incomplete parameters provided. Missing: {missing}\n"
                "Please either:\n"
                "  1. Provide all required parameters (data_directory, filetype, timezone)\n"
                "  2. Create a clif_config.json file\n"
                "  3. Provide a config_path parameter"
            )
        raise

    overrides = {
        'data_directory': data_directory,
        'filetype': filetype,
        'timezone': timezone,
        'output_directory': output_directory,
    }
    for key, value in overrides.items():
        if value is not None:
            config[key] = value
            logger.info(f"Overriding {key} from config with: {value}")

    return config


def create_example_config(
    data_directory: str = "./data",
    filetype: str = "parquet",
    timezone: str = "UTC",
    output_directory: str = "./output",
    config_path: str = "./clif_config.json",
    ase: Optional[Dict[str, Any]] = None
) -> None:
    """
    Create an example configuration file.

    Parameters
    ----------
    data_directory : str
        Path to data directory
    filetype : str
        File type (csv or parquet)
    timezone : str
        Timezone string
    output_directory : str
        Output directory path
    config_path : str
        Where to save the config file
    ase : dict, optional
        ASE parameter overrides, e.g. ``{"include_lactate": false}``
    """
    config = {
        "data_directory": data_directory,
        "filetype": filetype,
        "timezone": timezone,
        "output_directory": output_directory
    }
    if ase:
        config["ase"] = ase

    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)

    logger.info(f"Example configuration file created at: {config_path}")
