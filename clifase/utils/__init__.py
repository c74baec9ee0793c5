from .config import load_clif_config, get_config_or_params, create_example_config
from .io import load_data, convert_datetime_columns_to_site_tz
from .logging_config import get_logger, setup_logging

from .validator import (
      AseInputError,
      validate_input_table,
      validate_ase_inputs,
      check_required_columns,
  )

__all__ = [
      # io
      'load_data',
      'convert_datetime_columns_to_site_tz',
      # config
      'load_clif_config',
      'get_config_or_params',
      'create_example_config',
      # logging
      'get_logger',
      'setup_logging',
      # validator
      'AseInputError',
      'validate_input_table',
      'validate_ase_inputs',
      'check_required_columns',
  ]
