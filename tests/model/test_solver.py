import pytest
from unittest.mock import patch, MagicMock
from pyomo.environ import ConcreteModel, Var, Constraint, Objective, NonNegativeReals, NonNegativeIntegers, minimize
from pyomo.opt import TerminationCondition

from capacity_expansion.model.solver import create_solver, solve_model, _integer_variables
from capacity_expansion.exceptions import SolverUnavailableError


class TestSolver:

    @pytest.fixture
    def model(self):
        m = ConcreteModel()
        m.x = Var(within=NonNegativeReals)
        m.n = Var(within=NonNegativeIntegers)
        m.c = Constraint(expr=m.x + m.n >= 2.5)
        m.objective_function = Objective(expr=m.x + 2 * m.n, sense=minimize)
        return m

    @patch('capacity_expansion.model.solver.SolverFactory')
    def test_unavailable_solver(self, mock_factory, model):
        mock_solver = MagicMock()
        mock_solver.available.return_value = False
        mock_factory.return_value = mock_solver

        with pytest.raises(SolverUnavailableError, match='not_a_solver'):
            solve_model(model, solver_name='not_a_solver')
        mock_solver.solve.assert_not_called()

    @patch('capacity_expansion.model.solver.SolverFactory')
    def test_solver_options(self, mock_factory):
        mock_solver = MagicMock()
        mock_solver.available.return_value = True
        mock_solver.options = {}
        mock_factory.return_value = mock_solver

        solver = create_solver('appsi_highs', {'time_limit': 60})
        assert solver.options['time_limit'] == 60

    @patch('capacity_expansion.model.solver.SolverFactory')
    def test_infeasible_returns_status(self, mock_factory, model):
        results = MagicMock()
        results.solver.termination_condition = TerminationCondition.infeasible
        mock_solver = MagicMock()
        mock_solver.available.return_value = True
        mock_solver.solve.return_value = results
        mock_factory.return_value = mock_solver

        status, objective_value, _ = solve_model(model)
        assert status == TerminationCondition.infeasible
        assert objective_value is None
        mock_solver.solve.assert_called_once_with(model, tee=False, load_solutions=False)

    def test_integer_variables(self, model):
        assert _integer_variables(model) == [model.n]
        model.n.fix(1)
        assert _integer_variables(model) == []
