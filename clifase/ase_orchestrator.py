"""
AseOrchestrator class for running ASE adjudication end to end.

This module provides a unified interface for loading the CLIF tables,
running the adjudication with a consistent configuration, and saving the
resulting case tables.
"""

import os
from typing import Any, Dict, Optional, Union

import pandas as pd

from .ase import ASEConfig, compute_ase, summarize_lactate_impact
from .clif_tables import ClifTables
from .utils.config import get_config_or_params
from .utils.logging_config import get_logger

OUTPUT_FILES = {
    'cases': 'ase_cases.parquet',
    'presumed_infection': 'ase_presumed_infection.parquet',
    'dysfunction_events': 'ase_dysfunction_events.parquet',
}


class AseOrchestrator:
    """
    Orchestrator for Adult Sepsis Event adjudication over a CLIF data directory.

    Attributes:
        data_directory (str): Path to the directory containing data files
        filetype (str): Type of data file (csv or parquet)
        timezone (str): Timezone for datetime columns
        output_directory (str): Directory for saving output files
        ase_config (ASEConfig): Adjudication thresholds, windows and categories
        tables (ClifTables): Loaded input tables, None until load_tables()
        cases (pd.DataFrame): Wide case table, None until run()
        intermediates (dict): Intermediate frames of the last run()
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        data_directory: Optional[str] = None,
        filetype: Optional[str] = None,
        timezone: Optional[str] = None,
        output_directory: Optional[str] = None,
        ase_config: Optional[Union[ASEConfig, Dict[str, Any]]] = None,
    ):
        """
        Initialize the AseOrchestrator.

        Parameters:
            config_path (str, optional): Path to configuration JSON file
            data_directory (str, optional): Path to the directory containing data files
            filetype (str, optional): Type of data file (csv or parquet)
            timezone (str, optional): Timezone for datetime columns
            output_directory (str, optional): Directory for saving output files.
                If not provided, creates an 'output' directory in the current working directory.
            ase_config (ASEConfig or dict, optional): Adjudication parameters. A dict is
                treated as overrides. If not provided, the 'ase' entry of the config
                file is used, falling back to CDC defaults.

        Loading priority:
            1. If all required params provided → use them
            2. If config_path provided → load from that path, allow param overrides
            3. If no params and no config_path → auto-detect clif_config.json
            4. Parameters override config file values when both are provided
        """
        config = get_config_or_params(
            config_path=config_path,
            data_directory=data_directory,
            filetype=filetype,
            timezone=timezone,
            output_directory=output_directory
        )

        self.data_directory = config['data_directory']
        self.filetype = config['filetype']
        self.timezone = config['timezone']

        self.output_directory = config.get('output_directory')
        if self.output_directory is None:
            self.output_directory = os.path.join(os.getcwd(), 'output')
        os.makedirs(self.output_directory, exist_ok=True)

        if isinstance(ase_config, ASEConfig):
            self.ase_config = ase_config
        elif ase_config is not None:
            self.ase_config = ASEConfig.from_dict(ase_config)
        else:
            self.ase_config = ASEConfig.from_dict(config.get('ase'))

        self.logger = get_logger('AseOrchestrator')

        self.tables: Optional[ClifTables] = None
        self.cases: Optional[pd.DataFrame] = None
        self.intermediates: Dict[str, pd.DataFrame] = {}

        self.logger.info('AseOrchestrator initialized.')

    @classmethod
    def from_config(cls, config_path: str = "./clif_config.json") -> 'AseOrchestrator':
        """
        Create an AseOrchestrator instance from a configuration file.

        Parameters:
            config_path (str): Path to the configuration JSON file

        Returns:
            AseOrchestrator: Configured instance
        """
        return cls(config_path=config_path)

    def load_tables(
        self,
        sample_size: Optional[int] = None,
        filters: Optional[Dict[str, Dict[str, Any]]] = None
    ) -> ClifTables:
        """
        Load all input tables from the data directory.

        Parameters:
            sample_size (int, optional): Row limit per table
            filters (Dict, optional): Extra per-table filters, e.g.
                {'hospitalization': {'hospitalization_id': ['H1', 'H2']}}

        Returns:
            ClifTables: The loaded tables
        """
        self.tables = ClifTables.from_files(
            data_directory=self.data_directory,
            filetype=self.filetype,
            timezone=self.timezone,
            sample_size=sample_size,
            filters=filters,
            ase_config=self.ase_config,
        )
        return self.tables

    def run(self, tables: Optional[ClifTables] = None) -> pd.DataFrame:
        """
        Run ASE adjudication.

        Parameters:
            tables (ClifTables, optional): Tables to adjudicate. Defaults to the
                loaded tables, loading them first if needed.

        Returns:
            pd.DataFrame: The wide case table
        """
        if tables is not None:
            self.tables = tables
        if self.tables is None:
            self.logger.info("No tables loaded yet; loading from data directory")
            self.load_tables()

        self.cases, self.intermediates = compute_ase(self.tables, self.ase_config, dev=True)
        self.logger.info(f"ASE run complete: {len(self.cases)} cases")
        return self.cases

    def save_outputs(self, output_directory: Optional[str] = None) -> Dict[str, str]:
        """
        Write the case table and the long intermediate tables as parquet.

        Parameters:
            output_directory (str, optional): Overrides the orchestrator's output directory

        Returns:
            Dict[str, str]: Output name to written file path
        """
        if self.cases is None:
            raise ValueError("No results to save. Call run() first.")

        output_directory = output_directory or self.output_directory
        os.makedirs(output_directory, exist_ok=True)

        frames = {
            'cases': self.cases,
            'presumed_infection': self.intermediates.get('presumed_infection'),
            'dysfunction_events': self.intermediates.get('dysfunction_events'),
        }
        written = {}
        for name, df in frames.items():
            if df is None:
                continue
            path = os.path.join(output_directory, OUTPUT_FILES[name])
            df.to_parquet(path, index=False)
            written[name] = path
            self.logger.info(f"Saved {name} ({len(df):,} rows) to {path}")
        return written

    def lactate_summary(self) -> pd.DataFrame:
        """
        Summarize how including lactate changes case identification.

        Returns:
            pd.DataFrame: Output of summarize_lactate_impact for the last run
        """
        if self.cases is None:
            raise ValueError("No results to summarize. Call run() first.")
        if not self.ase_config.include_lactate:
            self.logger.warning(
                "Run excluded lactate; lactate-only cases are not in the case table"
            )
        return summarize_lactate_impact(self.cases)
