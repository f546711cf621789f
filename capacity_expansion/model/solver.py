"""
capacity_expansion/model/solver.py

Solver glue: hands a Pyomo model to a solver backend and reads back the termination condition,
the objective value and, on request, the duals of the constraints.

Main callables:

- create_solver(solver_name, solver_options) -> solver
    Create the Pyomo solver and raise SolverUnavailableError if it cannot be used.

- solve_model(m, solver_name, solver_options, compute_duals, tee) -> (termination_condition, objective_value, results)
    Solve the model. Solution values are loaded into the model only when the solve was optimal;
    infeasible, unbounded or interrupted solves are returned as termination condition.

- get_duals(m) -> dict
    Duals of all constraints as {constraint name: pd.Series}.

Duals of a mixed integer model are the duals of the linear program obtained by fixing all integer
variables at their optimal values.
"""

import logging

import pandas as pd
from pyomo.environ import ConcreteModel, SolverFactory, Suffix, Var, Constraint, NonNegativeReals, Reals, value
from pyomo.opt import TerminationCondition

from capacity_expansion import const
from capacity_expansion.exceptions import SolverUnavailableError

logger = logging.getLogger(__name__)


def create_solver(solver_name: str = const.DEFAULT_SOLVER, solver_options: dict = None):
    solver = SolverFactory(solver_name)
    if solver is None or not solver.available(exception_flag=False):
        raise SolverUnavailableError(f"Solver '{solver_name}' is not available in this environment")
    for key, val in (solver_options or {}).items():
        solver.options[key] = val
    return solver


def _integer_variables(m: ConcreteModel) -> list:
    return [var for var in m.component_data_objects(Var, active=True) if var.is_integer() and not var.fixed]


def _solve_fixed_lp(m: ConcreteModel, solver, tee: bool):
    """re-solve the model with all integer variables fixed at their optimal values"""
    integer_vars = _integer_variables(m)
    domains = {}
    for var in integer_vars:
        domains[var] = var.domain
        var.domain = NonNegativeReals if (var.lb is not None and var.lb >= 0) else Reals
        var.fix(round(var.value) if var.value is not None else 0)
    try:
        results = solver.solve(m, tee=tee, load_solutions=False)
        if results.solver.termination_condition == TerminationCondition.optimal:
            m.solutions.load_from(results)
        else:
            logger.warning(f"fixed linear program for the duals ended with "
                           f"{results.solver.termination_condition}, duals are not available")
    finally:
        for var in integer_vars:
            var.unfix()
            var.domain = domains[var]


def get_duals(m: ConcreteModel) -> dict:
    """
    :return: Dictionary {constraint name: pd.Series of duals indexed like the constraint}
    :rtype: dict
    """
    duals = {}
    for constraint in m.component_objects(Constraint, active=True):
        values = {index: m.dual.get(constraint[index]) for index in constraint}
        duals[constraint.name] = pd.Series(values, dtype=float)
    return duals


def solve_model(m: ConcreteModel, solver_name: str = const.DEFAULT_SOLVER, solver_options: dict = None,
                compute_duals: bool = False, tee: bool = False):
    """
    Solve a Pyomo model.

    :param m: The model.
    :type m: ConcreteModel
    :param solver_name: Name of the Pyomo solver, e.g. 'appsi_highs', 'highs', 'glpk' or 'gurobi'.
    :type solver_name: str
    :param solver_options: Options passed to the solver.
    :type solver_options: dict, optional
    :param compute_duals: Import the duals of the constraints into `m.dual`.
    :type compute_duals: bool
    :param tee: Stream the solver log.
    :type tee: bool
    :return: (termination condition, objective value or None, solver results)
    :rtype: tuple
    :raises SolverUnavailableError: If the solver cannot be used.
    """
    solver = create_solver(solver_name, solver_options)
    if compute_duals and not hasattr(m, 'dual'):
        m.dual = Suffix(direction=Suffix.IMPORT)

    logger.info(f'solving model with {solver_name}...')
    results = solver.solve(m, tee=tee, load_solutions=False)
    termination_condition = results.solver.termination_condition

    if termination_condition != TerminationCondition.optimal:
        logger.warning(f'solver terminated with {termination_condition}')
        return termination_condition, None, results

    m.solutions.load_from(results)
    objective_value = value(m.objective_function)
    logger.info(f'optimal solution found, objective value {objective_value:.6g}')

    if compute_duals and _integer_variables(m):
        _solve_fixed_lp(m, solver, tee)

    return termination_condition, objective_value, results
