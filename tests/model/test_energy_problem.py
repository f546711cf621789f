import pytest
from pyomo.environ import SolverFactory
from pyomo.opt import TerminationCondition

from capacity_expansion.data_preparation.data_formats import InputTables
from capacity_expansion.model.energy_problem import EnergyProblem
from capacity_expansion.exceptions import SolutionNotAvailableError
from capacity_expansion.const import DEFAULT_SOLVER

highs_available = SolverFactory(DEFAULT_SOLVER).available(exception_flag=False)
requires_highs = pytest.mark.skipif(not highs_available, reason=f'{DEFAULT_SOLVER} is not available')


class TestEnergyProblem:

    def test_construction(self, tiny_tables):
        energy_problem = EnergyProblem(tiny_tables)
        assert energy_problem.milestone_years == [2030]
        assert energy_problem.model is None
        assert energy_problem.termination_status is None
        assert not energy_problem.solved
        assert 'create_internal_structures' in energy_problem.timings
        assert 'not solved' in repr(energy_problem)

    def test_solution_before_solve(self, tiny_tables):
        energy_problem = EnergyProblem(tiny_tables)
        with pytest.raises(SolutionNotAvailableError):
            energy_problem.solution
        with pytest.raises(SolutionNotAvailableError):
            energy_problem.graph.asset('gen').solution

    def test_write_lp_file(self, tiny_tables, tmp_path):
        energy_problem = EnergyProblem(tiny_tables)
        fpath = tmp_path / 'tiny.lp'
        energy_problem.create_model(write_lp_file=True, lp_file_path=str(fpath))
        assert fpath.exists()
        assert 'create_model' in energy_problem.timings

    @requires_highs
    def test_two_asset_objective(self, tiny_tables):
        energy_problem = EnergyProblem(tiny_tables)
        status = energy_problem.solve_model()

        assert status == TerminationCondition.optimal
        assert energy_problem.solved
        # variable cost 2 x demand 50 in each of the 4 timesteps
        assert energy_problem.objective_value == pytest.approx(400.0)
        assert energy_problem.solution.flow == pytest.approx([50.0] * 4)

        flow_solution = energy_problem.graph.flow('gen', 'demand').solution['flow']
        assert flow_solution[(2030, 1, (1, 1))] == pytest.approx(50.0)

    @requires_highs
    def test_solve_twice(self, tiny_tables):
        energy_problem = EnergyProblem(tiny_tables)
        energy_problem.solve_model()
        with pytest.raises(RuntimeError):
            energy_problem.solve_model()

    @requires_highs
    def test_infeasible(self, make_tiny_dfs):
        energy_problem = EnergyProblem(InputTables.from_dataframes(make_tiny_dfs(peak_demand=500.0)))
        status = energy_problem.solve_model()

        assert status != TerminationCondition.optimal
        assert not energy_problem.solved
        with pytest.raises(SolutionNotAvailableError):
            energy_problem.solution

    @requires_highs
    def test_investment(self, tiny_dfs):
        # no installed capacity, investing 0.5 units covers the demand of 50
        tiny_dfs['asset']['investment_method'] = ['simple', 'none']
        tiny_dfs['asset_milestone']['investable'] = [True, False]
        tiny_dfs['asset_commission']['investment_cost'] = [10.0, 0.0]
        tiny_dfs['asset_both']['initial_units'] = [0.0, 0.0]
        energy_problem = EnergyProblem(InputTables.from_dataframes(tiny_dfs))
        energy_problem.solve_model()

        assert energy_problem.solved
        assert energy_problem.solution.assets_investment[(2030, 'gen')] == pytest.approx(0.5)
        assert energy_problem.objective_value == pytest.approx(400.0 + 10.0 * 100.0 * 0.5)
        assert energy_problem.graph.asset('gen').solution['investment'][2030] == pytest.approx(0.5)

    @requires_highs
    def test_duals(self, tiny_tables):
        energy_problem = EnergyProblem(tiny_tables)
        energy_problem.solve_model(compute_duals=True)
        duals = energy_problem.solution.duals
        # one more unit of demand costs the variable cost of the producer
        assert duals['consumer_balance'].abs().tolist() == pytest.approx([2.0] * 4)
