import os
import pytest
from unittest.mock import patch
from pyomo.environ import SolverFactory

from capacity_expansion.config import INPUT_FOLDER
from capacity_expansion.const import DEFAULT_SOLVER
from capacity_expansion.run_expansion_opt import run_scenario

TINY_FOLDER = os.path.join(INPUT_FOLDER, 'Tiny')

highs_available = SolverFactory(DEFAULT_SOLVER).available(exception_flag=False)
requires_highs = pytest.mark.skipif(not highs_available, reason=f'{DEFAULT_SOLVER} is not available')


class TestRunExpansionOpt:

    @requires_highs
    def test_tiny_case(self, tmp_path):
        energy_problem = run_scenario(TINY_FOLDER, str(tmp_path), write_lp_file=True)

        assert energy_problem.solved
        assert energy_problem.objective_value > 0
        assert (tmp_path / 'model.lp').exists()
        assert (tmp_path / 'flows.csv').exists()
        assert (tmp_path / 'costs_summary.csv').exists()
        # the investable ccgt units are integer
        ccgt_units = energy_problem.solution.assets_investment[(2030, 'ccgt')]
        assert ccgt_units == pytest.approx(round(ccgt_units))

    @patch('capacity_expansion.run_expansion_opt.log_infeasible_constraints')
    @patch('capacity_expansion.run_expansion_opt.write_solution_to_folder')
    @patch('capacity_expansion.model.energy_problem.solve_model')
    def test_not_optimal_logs_infeasible_constraints(self, mock_solve, mock_write, mock_log_infeasible, tmp_path):
        from pyomo.opt import TerminationCondition
        mock_solve.return_value = (TerminationCondition.infeasible, None, None)

        energy_problem = run_scenario(TINY_FOLDER, str(tmp_path))

        assert not energy_problem.solved
        mock_log_infeasible.assert_called_once()
        mock_write.assert_not_called()
