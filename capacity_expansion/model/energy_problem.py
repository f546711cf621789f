"""
capacity_expansion/model/energy_problem.py

The EnergyProblem ties the pipeline together: input tables -> graph and time structures ->
constraint partitions and index tables -> index sets -> Pyomo model -> solve -> solution.

Typical use:

    tables = read_csv_folder('data/input/Tiny')
    energy_problem = EnergyProblem(tables)
    energy_problem.create_model()
    energy_problem.solve_model()
    if energy_problem.solved:
        print(energy_problem.objective_value)

Solution values are available through `energy_problem.solution` and, per asset and flow, through
the `solution` attribute of the graph records. Both raise SolutionNotAvailableError until the
problem has been solved to optimality.
"""

import os
import logging
from datetime import datetime

from pyomo.environ import ConcreteModel
from pyomo.opt import TerminationCondition

from capacity_expansion import const
from capacity_expansion.const import IndexTable
from capacity_expansion.data_preparation.data_formats import InputTables, ModelParameters, Solution
from capacity_expansion.data_preparation.input_data import create_internal_structures
from capacity_expansion.data_preparation.time_resolution import compute_constraints_partitions, \
    construct_dataframes, add_flow_terms, add_inter_rp_terms
from capacity_expansion.exceptions import SolutionNotAvailableError
from capacity_expansion.model.index_sets import create_sets
from capacity_expansion.model import pyomo_model
from capacity_expansion.model.solver import solve_model, get_duals

logger = logging.getLogger(__name__)


def extract_solution(m: ConcreteModel, compute_duals: bool = False) -> Solution:
    """Read the solution values of a solved model."""
    duals = get_duals(m) if compute_duals else None
    return Solution(m, duals)


def _block_values(df, values, key_columns: list, block_columns: list) -> dict:
    """{entity: {(year, [rep_period,] (start, end)): value}}"""
    per_entity = {}
    for row, val in zip(df.to_dict('records'), values):
        entity = row[key_columns[0]] if len(key_columns) == 1 else tuple(row[c] for c in key_columns)
        key_values = [row['year']] + ([row['rep_period']] if 'rep_period' in row else [])
        key = (*key_values, (row[block_columns[0]], row[block_columns[1]]))
        per_entity.setdefault(entity, {})[key] = float(val)
    return per_entity


class EnergyProblem:
    """
    Capacity expansion problem built from a set of input tables.

    :ivar graph: Frozen energy graph.
    :ivar representative_periods: {year: {rep_period: RepresentativePeriod}}
    :ivar timeframe: Timeframe of the periods.
    :ivar groups: Investment groups.
    :ivar years: All years.
    :ivar constraints_partitions: Partitions per constraint view.
    :ivar dataframes: Index tables per view.
    :ivar sets: Index sets of the model.
    :ivar model: The Pyomo model, None before `create_model`.
    :ivar termination_status: Termination condition of the last solve, None before solving.
    :ivar timings: Wall clock seconds of the pipeline stages.
    """

    def __init__(self, tables: InputTables, model_parameters: ModelParameters = None):
        self.model_parameters = model_parameters if model_parameters is not None else ModelParameters()
        self.timings = {}

        start = datetime.now()
        (self.graph, self.representative_periods, self.timeframe, self.groups,
         self.years) = create_internal_structures(tables)
        self.timings['create_internal_structures'] = (datetime.now() - start).total_seconds()

        start = datetime.now()
        self.constraints_partitions = compute_constraints_partitions(
            self.graph, self.representative_periods, self.years)
        self.timings['compute_constraints_partitions'] = (datetime.now() - start).total_seconds()

        start = datetime.now()
        self.dataframes = construct_dataframes(self.graph, self.representative_periods, self.constraints_partitions,
                                               self.timeframe, self.years)
        add_flow_terms(self.dataframes, self.graph, self.representative_periods)
        add_inter_rp_terms(self.dataframes, self.graph, self.representative_periods)
        self.timings['construct_dataframes'] = (datetime.now() - start).total_seconds()

        self.sets = create_sets(self.graph, self.years)

        self.model = None
        self.termination_status = None
        self.objective_value = None
        self._solution = None

    @property
    def milestone_years(self) -> list[int]:
        return list(self.sets.Y)

    def create_model(self, write_lp_file: bool = False, lp_file_path: str = None) -> ConcreteModel:
        """
        Build the Pyomo model.

        :param write_lp_file: Also write the model in LP format.
        :param lp_file_path: Path of the LP file, `const.LP_FILE_NAME` in the working directory by default.
        :return: The model.
        """
        start = datetime.now()
        self.model = pyomo_model.init_pyomo_model(self.graph, self.representative_periods, self.timeframe,
                                                  self.groups, self.years, self.dataframes, self.sets,
                                                  self.model_parameters)
        self.timings['create_model'] = (datetime.now() - start).total_seconds()

        if write_lp_file:
            write_lp_file_path = lp_file_path if lp_file_path is not None else os.path.join(os.getcwd(),
                                                                                             const.LP_FILE_NAME)
            pyomo_model.write_lp_file(self.model, write_lp_file_path)

        return self.model

    def solve_model(self, solver_name: str = const.DEFAULT_SOLVER, solver_options: dict = None,
                    compute_duals: bool = False, tee: bool = False):
        """
        Solve the model, creating it first if needed. On an optimal solve the solution is read and
        written onto the graph records.

        :return: The termination condition.
        """
        if self.solved:
            raise RuntimeError('The energy problem has already been solved to optimality')
        if self.model is None:
            self.create_model()

        start = datetime.now()
        self.termination_status, self.objective_value, _ = solve_model(
            self.model, solver_name=solver_name, solver_options=solver_options, compute_duals=compute_duals, tee=tee)
        self.timings['solve_model'] = (datetime.now() - start).total_seconds()

        if self.termination_status == TerminationCondition.optimal:
            self._solution = extract_solution(self.model, compute_duals)
            self._write_solution_to_graph()

        return self.termination_status

    @property
    def solved(self) -> bool:
        return self.termination_status == TerminationCondition.optimal

    @property
    def solution(self) -> Solution:
        if not self.solved or self._solution is None:
            status = 'not solved' if self.termination_status is None else f'status {self.termination_status}'
            raise SolutionNotAvailableError(f'No solution available, the energy problem is {status}')
        return self._solution

    def _write_solution_to_graph(self):
        solution = self._solution
        dfs = self.dataframes

        investment, investment_energy, flows_investment = {}, {}, {}
        for (y, a), units in solution.assets_investment.items():
            investment.setdefault(a, {})[y] = units
        for (y, a), units in solution.assets_investment_energy.items():
            investment_energy.setdefault(a, {})[y] = units
        for (y, key), units in solution.flows_investment.items():
            flows_investment.setdefault(key, {})[y] = units

        blocks = ['time_block_start', 'time_block_end']
        periods_blocks = ['periods_block_start', 'periods_block_end']
        storage_intra = _block_values(dfs[IndexTable.StorageLevelIntraRP], solution.storage_level_intra_rp,
                                      ['asset'], blocks)
        storage_inter = _block_values(dfs[IndexTable.StorageLevelInterRP], solution.storage_level_inter_rp,
                                      ['asset'], periods_blocks)
        max_energy = _block_values(dfs[IndexTable.MaxEnergyInterRP], solution.max_energy_inter_rp, ['asset'],
                                   periods_blocks)
        min_energy = _block_values(dfs[IndexTable.MinEnergyInterRP], solution.min_energy_inter_rp, ['asset'],
                                   periods_blocks)
        flow_values = _block_values(dfs[IndexTable.Flows], solution.flow, ['from_asset', 'to_asset'], blocks)

        for asset in self.graph.assets():
            asset.set_solution(
                investment=investment.get(asset.name, {}),
                investment_energy=investment_energy.get(asset.name, {}),
                storage_level_intra_rp=storage_intra.get(asset.name, {}),
                storage_level_inter_rp=storage_inter.get(asset.name, {}),
                max_energy_inter_rp=max_energy.get(asset.name, {}),
                min_energy_inter_rp=min_energy.get(asset.name, {}),
            )
        for flow in self.graph.flows():
            flow.set_solution(
                investment=flows_investment.get(flow.key, {}),
                flow=flow_values.get(flow.key, {}),
            )

    def __repr__(self):
        status = 'not solved' if self.termination_status is None else str(self.termination_status)
        return (f"EnergyProblem({self.graph.num_assets} assets, {self.graph.num_flows} flows, "
                f"years {self.milestone_years}, {status})")
