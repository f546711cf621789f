"""
capacity_expansion/exceptions.py

Exception types raised while reading input tables, building the energy graph, aligning time
partitions and reading back solutions. Every error message names the offending entity
(table, asset, flow, year or representative period).

Solver outcomes such as infeasible or unbounded are not exceptions; they are reported as the
termination status of the energy problem.
"""


class InputValidationError(ValueError):
    """Input tables, columns or values that cannot be used to build the model."""


class StructureError(ValueError):
    """Inconsistent graph structure, e.g. duplicate assets or flows to unknown assets."""


class PartitionMismatchError(ValueError):
    """Time partitions of an asset that do not cover the same span."""


class ConstructionPhaseError(RuntimeError):
    """Partition or profile data accessed in the wrong construction phase."""


class SolutionNotAvailableError(RuntimeError):
    """Solution values requested before the problem was solved to optimality."""


class SolverUnavailableError(RuntimeError):
    """The requested solver backend cannot be used."""
