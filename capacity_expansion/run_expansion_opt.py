"""
capacity_expansion/run_expansion_opt.py

This module runs a capacity expansion case study from a folder of csv input tables.

Main responsibilities:

- run_scenario(input_folder, output_folder, solver_name, ...) -> EnergyProblem:
    Reads the input tables, builds the energy problem and its Pyomo model, solves it and writes the
    result tables. Infeasible constraints are logged when the solver does not find an optimal
    solution.

- setup_logging(case_name) -> str:
    Logs to the console and to a timestamped log file of the case study.

Script entrypoint (when run as __main__):

- Runs the `Tiny` case study from `data/input/Tiny` and writes the results to a timestamped
  folder in `data/output/results`.
"""

import os
import sys
import logging
from datetime import datetime

from pyomo.util.infeasible import log_infeasible_constraints

from capacity_expansion import const
from capacity_expansion.config import INPUT_FOLDER
from capacity_expansion.data_preparation.data_formats import read_csv_folder, ModelParameters
from capacity_expansion.export.export_results import write_solution_to_folder
from capacity_expansion.helper import create_result_folder, create_log_file_path
from capacity_expansion.model.energy_problem import EnergyProblem

logger = logging.getLogger(__name__)


def setup_logging(case_name: str, level=logging.INFO) -> str:
    log_file = create_log_file_path(case_name)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout), logging.FileHandler(log_file, encoding='utf-8')],
    )
    return log_file


def run_scenario(input_folder: str, output_folder: str = None, solver_name: str = const.DEFAULT_SOLVER,
                 solver_options: dict = None, model_parameters: ModelParameters = None, write_lp_file: bool = False,
                 compute_duals: bool = False) -> EnergyProblem:
    """
    Runs a case study: reads the input tables, creates and solves the model and writes the results.

    :param input_folder: Folder holding the csv input tables.
    :type input_folder: str
    :param output_folder: Folder the results are written to. Nothing is written if None.
    :type output_folder: str, optional
    :param solver_name: Pyomo solver name.
    :type solver_name: str
    :param solver_options: Options passed to the solver.
    :type solver_options: dict, optional
    :param model_parameters: Discount rate and year of the case study.
    :type model_parameters: ModelParameters, optional
    :param write_lp_file: Write the model as `model.lp` into the output folder.
    :type write_lp_file: bool
    :param compute_duals: Import the duals of the constraints.
    :type compute_duals: bool
    :return: The energy problem, solved if the solver found an optimal solution.
    :rtype: EnergyProblem
    """
    start = datetime.now()
    tables = read_csv_folder(input_folder)
    energy_problem = EnergyProblem(tables, model_parameters)
    logger.info(f'created {energy_problem}')

    lp_file_path = None
    if write_lp_file and output_folder is not None:
        lp_file_path = os.path.join(output_folder, const.LP_FILE_NAME)
    energy_problem.create_model(write_lp_file=write_lp_file, lp_file_path=lp_file_path)
    energy_problem.solve_model(solver_name=solver_name, solver_options=solver_options, compute_duals=compute_duals)

    for stage, seconds in energy_problem.timings.items():
        logger.info(f'{stage}: {seconds:.2f} s')

    if not energy_problem.solved:
        logger.warning(f'no optimal solution found ({energy_problem.termination_status}), '
                       f'logging infeasible constraints')
        log_infeasible_constraints(energy_problem.model, log_expression=True, log_variables=True)
    elif output_folder is not None:
        write_solution_to_folder(energy_problem, output_folder, print_summary=True)

    logger.info(f'total time: {datetime.now() - start}')
    return energy_problem


if __name__ == "__main__":

    case_name = 'Tiny'

    setup_logging(case_name)
    results_folder = create_result_folder(case_name)
    run_scenario(os.path.join(INPUT_FOLDER, case_name), results_folder)
