"""
`capacity_expansion/export/export_results.py`

Helpers to assemble and export the results of a solved EnergyProblem. The module turns the
block-wise solution values into tables per year, asset, flow, representative period and timestep,
summarises the cost components and writes everything to csv files.

Main responsibilities:

- assets_investment_table(energy_problem) -> pd.DataFrame
    Invested units and capacity per (year, asset) of the investable assets.
- assets_investment_energy_table(energy_problem) -> pd.DataFrame
    Invested storage energy units and energy capacity per (year, asset).
- flows_investment_table(energy_problem) -> pd.DataFrame
    Invested units and capacity per (year, flow).
- flows_per_timestep(energy_problem) -> pd.DataFrame
    Flow values expanded from time blocks to timesteps, constant within a block.
- storage_level_intra_rp_per_timestep(energy_problem) -> pd.DataFrame
- storage_level_inter_rp_per_period(energy_problem) -> pd.DataFrame
    Storage levels expanded to timesteps (periods). Within a block the level is interpolated
    linearly from the level at the end of the previous block to the level at the end of the
    block. The first block starts from the declared initial storage level, or from the level at
    the end of the last block if none is declared.
- max_energy_inter_rp_table(energy_problem), min_energy_inter_rp_table(energy_problem)
    Outgoing energy per periods block of assets with energy limits.
- costs_summary(energy_problem) -> pd.Series
    Cost components of the objective.
- write_solution_to_folder(energy_problem, output_folder) -> None
    Write all tables above as csv files.

Behavior and side effects:

- All functions raise SolutionNotAvailableError if the problem has not been solved to optimality.
- Only `write_solution_to_folder` touches the file system.

Key dependencies:

- pandas, numpy, pyomo (value of the cost expressions) and project helpers.
"""

import os
import logging

import numpy as np
import pandas as pd
from pyomo.environ import value

from capacity_expansion.const import IndexTable
from capacity_expansion.helper import interpolate_block
from capacity_expansion.model.energy_problem import EnergyProblem

logger = logging.getLogger(__name__)

COST_COMPONENTS = ['assets_investment_cost', 'assets_investment_energy_cost', 'assets_fixed_cost',
                   'storage_energy_fixed_cost', 'flows_investment_cost', 'flows_fixed_cost', 'flows_variable_cost',
                   'units_on_cost']


def assets_investment_table(energy_problem: EnergyProblem) -> pd.DataFrame:
    solution = energy_problem.solution
    graph = energy_problem.graph
    rows = [(y, a, units, units * graph.asset(a).capacity) for (y, a), units in solution.assets_investment.items()]
    return pd.DataFrame(rows, columns=['year', 'asset', 'units', 'capacity'])


def assets_investment_energy_table(energy_problem: EnergyProblem) -> pd.DataFrame:
    solution = energy_problem.solution
    graph = energy_problem.graph
    rows = [(y, a, units, units * graph.asset(a).capacity_storage_energy)
            for (y, a), units in solution.assets_investment_energy.items()]
    return pd.DataFrame(rows, columns=['year', 'asset', 'units', 'energy_capacity'])


def flows_investment_table(energy_problem: EnergyProblem) -> pd.DataFrame:
    solution = energy_problem.solution
    graph = energy_problem.graph
    rows = [(y, u, v, units, units * graph.flow(u, v).capacity)
            for (y, (u, v)), units in solution.flows_investment.items()]
    return pd.DataFrame(rows, columns=['year', 'from_asset', 'to_asset', 'units', 'capacity'])


def flows_per_timestep(energy_problem: EnergyProblem) -> pd.DataFrame:
    """flow values per timestep, constant within each time block"""
    solution = energy_problem.solution
    df = energy_problem.dataframes[IndexTable.Flows]
    rows = []
    for row, val in zip(df.to_dict('records'), solution.flow):
        for t in range(row['time_block_start'], row['time_block_end'] + 1):
            rows.append((row['from_asset'], row['to_asset'], row['year'], row['rep_period'], t, val))
    return pd.DataFrame(rows, columns=['from_asset', 'to_asset', 'year', 'rep_period', 'timestep', 'value'])


def _interpolate_storage_levels(df: pd.DataFrame, values: np.ndarray, group_columns: list, block_columns: list,
                                initial_levels: dict) -> list:
    """
    Expand block end levels to every step of the blocks.

    :param initial_levels: {(asset, year): declared initial storage level}, missing keys wrap around.
    :return: list of (group key..., step, value) tuples
    """
    rows = []
    records = df.to_dict('records')
    groups = {}
    for row, val in zip(records, values):
        groups.setdefault(tuple(row[c] for c in group_columns), []).append((row, val))

    for key, blocks in groups.items():
        initial = initial_levels.get((key[0], key[1]))
        previous_value = blocks[-1][1] if initial is None else initial
        for row, val in blocks:
            start, end = row[block_columns[0]], row[block_columns[1]]
            levels = interpolate_block(previous_value, val, end - start + 1)
            rows.extend((*key, step, level) for step, level in zip(range(start, end + 1), levels))
            previous_value = val
    return rows


def _initial_storage_levels(energy_problem: EnergyProblem) -> dict:
    levels = {}
    for asset in energy_problem.graph.assets():
        for y, level in asset.initial_storage_level.items():
            if level is not None:
                levels[(asset.name, y)] = level
    return levels


def storage_level_intra_rp_per_timestep(energy_problem: EnergyProblem) -> pd.DataFrame:
    solution = energy_problem.solution
    rows = _interpolate_storage_levels(
        energy_problem.dataframes[IndexTable.StorageLevelIntraRP], solution.storage_level_intra_rp,
        ['asset', 'year', 'rep_period'], ['time_block_start', 'time_block_end'],
        _initial_storage_levels(energy_problem))
    return pd.DataFrame(rows, columns=['asset', 'year', 'rep_period', 'timestep', 'value'])


def storage_level_inter_rp_per_period(energy_problem: EnergyProblem) -> pd.DataFrame:
    solution = energy_problem.solution
    rows = _interpolate_storage_levels(
        energy_problem.dataframes[IndexTable.StorageLevelInterRP], solution.storage_level_inter_rp,
        ['asset', 'year'], ['periods_block_start', 'periods_block_end'],
        _initial_storage_levels(energy_problem))
    return pd.DataFrame(rows, columns=['asset', 'year', 'period', 'value'])


def _energy_table(df: pd.DataFrame, values: np.ndarray) -> pd.DataFrame:
    out = df[['asset', 'year', 'periods_block_start', 'periods_block_end']].copy()
    out['value'] = values
    return out


def max_energy_inter_rp_table(energy_problem: EnergyProblem) -> pd.DataFrame:
    return _energy_table(energy_problem.dataframes[IndexTable.MaxEnergyInterRP],
                         energy_problem.solution.max_energy_inter_rp)


def min_energy_inter_rp_table(energy_problem: EnergyProblem) -> pd.DataFrame:
    return _energy_table(energy_problem.dataframes[IndexTable.MinEnergyInterRP],
                         energy_problem.solution.min_energy_inter_rp)


def costs_summary(energy_problem: EnergyProblem) -> pd.Series:
    """cost components of the objective and their total"""
    energy_problem.solution
    m = energy_problem.model
    summary = pd.Series({name: float(value(getattr(m, name))) for name in COST_COMPONENTS})
    summary['total_cost'] = energy_problem.objective_value
    return summary


def write_solution_to_folder(energy_problem: EnergyProblem, output_folder: str, print_summary: bool = False):
    """
    Write the result tables of a solved energy problem as csv files.

    :param energy_problem: The solved problem.
    :type energy_problem: EnergyProblem
    :param output_folder: Folder the csv files are written to; created if missing.
    :type output_folder: str
    :param print_summary: Also log the cost summary.
    :type print_summary: bool
    :return: None
    """
    tables = {
        'assets_investment': assets_investment_table(energy_problem),
        'assets_investment_energy': assets_investment_energy_table(energy_problem),
        'flows_investment': flows_investment_table(energy_problem),
        'flows': flows_per_timestep(energy_problem),
        'storage_level_intra_rp': storage_level_intra_rp_per_timestep(energy_problem),
        'storage_level_inter_rp': storage_level_inter_rp_per_period(energy_problem),
        'max_energy_inter_rp': max_energy_inter_rp_table(energy_problem),
        'min_energy_inter_rp': min_energy_inter_rp_table(energy_problem),
    }

    if not os.path.exists(output_folder):
        os.makedirs(output_folder)

    for name, df in tables.items():
        df.to_csv(os.path.join(output_folder, f'{name}.csv'), index=False)

    summary = costs_summary(energy_problem)
    summary.to_csv(os.path.join(output_folder, 'costs_summary.csv'), header=['value'])
    if print_summary:
        logger.info(f'cost summary:\n{summary.to_string()}')

    logger.info(f'results written to {output_folder}')
