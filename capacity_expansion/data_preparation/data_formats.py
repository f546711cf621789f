"""
capacity_expansion/data_preparation/data_formats.py

This module provides the data structures that carry input tables into the model builder and
solution values out of a solved Pyomo model.

Primary classes and responsibilities:

- InputTables:
    Wraps the named input tables (pandas DataFrames) of a case study. On construction every table
    is validated against its schema from `capacity_expansion.const.TABLE_SCHEMAS`: required tables
    and key columns must exist, missing optional columns and empty cells are filled with their
    defaults, and year/period columns are converted to integers. Optional tables that are absent
    are replaced by empty tables.

- read_csv_folder:
    Loads one `<table>.csv` file per input table from a folder into an InputTables instance.

- ModelParameters:
    Scenario wide economic parameters (social discount rate and discount year).

- Solution:
    Converts a solved Pyomo ConcreteModel into plain python / numpy containers: investments per
    (year, asset), energy investments, flow investments, per-row values of the flow, storage level,
    units on and energy limit tables, the objective value and optional duals.

Notes and dependencies:

- This module depends on pandas, numpy and pyomo, and on the project constants in
  `capacity_expansion.const`.
- Validation errors raise `InputValidationError` naming the table and column.
"""

import os
import logging

import numpy as np
import pandas as pd
from pyomo.environ import ConcreteModel, value

from capacity_expansion import const
from capacity_expansion.const import InputTable, IndexTable, OPTIONAL_TABLES, TABLE_SCHEMAS
from capacity_expansion.exceptions import InputValidationError
from capacity_expansion.helper import is_missing

logger = logging.getLogger(__name__)

INTEGER_COLUMNS = ['year', 'milestone_year', 'commission_year', 'rep_period', 'period', 'timestep',
                   'num_timesteps', 'length']


class InputTables:
    """
    Validated collection of the input tables of one case study.

    :ivar tables: Dictionary {table name: DataFrame} holding every table of `InputTable`.
    :type tables: dict[str, pandas.DataFrame]
    """

    def __init__(self, tables: dict):
        """
        :param tables: Dictionary {table name: DataFrame}. Optional tables may be missing.
        :type tables: dict
        :raises InputValidationError: If a required table or column is missing or a year column
            holds values that are not integers.
        """
        tables = {str(getattr(name, 'value', name)): df for name, df in tables.items()}
        unknown = set(tables) - {t.value for t in InputTable}
        if unknown:
            logger.warning(f"ignoring unknown input tables {sorted(unknown)}")

        self.tables = {}
        for table in InputTable:
            df = tables.get(table.value)
            if df is None:
                if table not in OPTIONAL_TABLES:
                    raise InputValidationError(f"Missing required table '{table.value}'")
                df = self._empty_table(table)
            self.tables[table.value] = self._apply_schema(table, df)

    @classmethod
    def from_dataframes(cls, mapping: dict) -> 'InputTables':
        """Build the input tables from DataFrames keyed by table name or `InputTable` member."""
        return cls(dict(mapping))

    @staticmethod
    def _empty_table(table: InputTable) -> pd.DataFrame:
        schema = TABLE_SCHEMAS[table]
        return pd.DataFrame(columns=[*schema['required'], *schema['defaults']])

    @staticmethod
    def _apply_schema(table: InputTable, df: pd.DataFrame) -> pd.DataFrame:
        schema = TABLE_SCHEMAS[table]
        df = df.copy()
        df.columns = [str(c).strip() for c in df.columns]

        missing = [col for col in schema['required'] if col not in df.columns]
        if missing:
            raise InputValidationError(f"Table '{table.value}' is missing the required columns {missing}")

        for col in schema['required']:
            if len(df) and df[col].isna().any():
                raise InputValidationError(f"Table '{table.value}' has empty cells in the required column '{col}'")

        for col, default in schema['defaults'].items():
            if col not in df.columns:
                df[col] = [default] * len(df)
            elif not is_missing(default):
                df[col] = df[col].astype(object).where(df[col].notna(), default)

        for col in INTEGER_COLUMNS:
            if col in schema['required'] and len(df):
                try:
                    df[col] = df[col].astype(float).astype(int)
                except (TypeError, ValueError):
                    raise InputValidationError(f"Table '{table.value}': column '{col}' must hold integers")

        return df.reset_index(drop=True)

    def __getitem__(self, name) -> pd.DataFrame:
        return self.tables[str(getattr(name, 'value', name))]

    def __contains__(self, name) -> bool:
        return str(getattr(name, 'value', name)) in self.tables

    def __repr__(self):
        return f"InputTables({', '.join(f'{k}: {len(v)} rows' for k, v in self.tables.items())})"


def read_csv_folder(input_folder: str) -> InputTables:
    """
    Read all input tables from csv files named after the tables, e.g. `asset.csv`.

    :param input_folder: Folder holding the csv files.
    :type input_folder: str
    :return: The validated input tables.
    :rtype: InputTables
    """
    if not os.path.isdir(input_folder):
        raise InputValidationError(f"Input folder '{input_folder}' does not exist")

    tables = {}
    for table in InputTable:
        fpath = os.path.join(input_folder, f"{table.value}.csv")
        if os.path.exists(fpath):
            tables[table.value] = pd.read_csv(fpath, skipinitialspace=True)
    logger.info(f"read {len(tables)} tables from {input_folder}")

    return InputTables(tables)


class ModelParameters:
    """
    Economic parameters that apply to the whole model.

    :ivar discount_rate: Social discount rate used to discount all costs to the discount year.
    :ivar discount_year: Year the costs are discounted to; the first milestone year if None.
    """

    def __init__(self, discount_rate: float = None, discount_year: int = None):
        self.discount_rate = const.DISCOUNT_RATE if discount_rate is None else float(discount_rate)
        self.discount_year = const.DISCOUNT_YEAR if discount_year is None else int(discount_year)

    def get_discount_year(self, milestone_years: list[int]) -> int:
        if self.discount_year is not None:
            return self.discount_year
        return min(milestone_years)

    def __repr__(self):
        return f"ModelParameters(discount_rate={self.discount_rate}, discount_year={self.discount_year})"


def _var_value(var) -> float:
    """value of a solved variable; variables the solver never saw (unused in any constraint) count as 0"""
    val = var.value
    return 0.0 if val is None else float(val)


class Solution:
    """
    Solution values of a solved energy problem.

    The per-row arrays follow the row order of the corresponding index table, i.e.
    `flow[i]` belongs to row `i` of `dataframes['flows']`.

    :ivar objective_value: Optimal objective value.
    :ivar assets_investment: {(year, asset): units}
    :ivar assets_investment_energy: {(year, asset): units}
    :ivar flows_investment: {(year, (from_asset, to_asset)): units}
    :ivar flow: values per row of the flows table
    :ivar storage_level_intra_rp: values per row of the storage_level_intra_rp table
    :ivar storage_level_inter_rp: values per row of the storage_level_inter_rp table
    :ivar max_energy_inter_rp: outgoing energy per row of the max_energy_inter_rp table
    :ivar min_energy_inter_rp: outgoing energy per row of the min_energy_inter_rp table
    :ivar units_on: values per row of the units_on table
    :ivar duals: {constraint name: pd.Series indexed like the constraint} or None
    """

    def __init__(self, m: ConcreteModel, duals: dict = None):
        self.objective_value = float(value(m.objective_function))
        self.assets_investment = {(y, a): _var_value(m.assets_investment[y, a]) for (y, a) in m.assets_investment_index}
        self.assets_investment_energy = {
            (y, a): _var_value(m.assets_investment_energy[y, a]) for (y, a) in m.assets_investment_energy_index}
        self.flows_investment = {
            (y, (u, v)): _var_value(m.flows_investment[y, u, v]) for (y, u, v) in m.flows_investment_index}

        self.flow = self._row_values(m.flow, len(m.dataframes[IndexTable.Flows]))
        self.storage_level_intra_rp = self._row_values(
            m.storage_level_intra_rp, len(m.dataframes[IndexTable.StorageLevelIntraRP]))
        self.storage_level_inter_rp = self._row_values(
            m.storage_level_inter_rp, len(m.dataframes[IndexTable.StorageLevelInterRP]))
        self.units_on = self._row_values(m.units_on, len(m.dataframes[IndexTable.UnitsOn]))
        self.max_energy_inter_rp = self._row_expression_values(
            m.max_energy_inter_rp, len(m.dataframes[IndexTable.MaxEnergyInterRP]))
        self.min_energy_inter_rp = self._row_expression_values(
            m.min_energy_inter_rp, len(m.dataframes[IndexTable.MinEnergyInterRP]))
        self.duals = duals

    @staticmethod
    def _row_values(var, n_rows: int) -> np.ndarray:
        return np.array([_var_value(var[i]) for i in range(n_rows)], dtype=float)

    @staticmethod
    def _row_expression_values(expr, n_rows: int) -> np.ndarray:
        return np.array([value(expr[i], exception=False) or 0.0 for i in range(n_rows)], dtype=float)

    def __repr__(self):
        return f"Solution(objective_value={self.objective_value})"
