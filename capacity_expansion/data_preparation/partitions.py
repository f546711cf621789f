"""
capacity_expansion/data_preparation/partitions.py

Resolution of time block partitions from their textual specification.

A partition splits the timesteps 1..N of a representative period (or the periods 1..P of the
timeframe) into contiguous, non-overlapping blocks. Partitions are given per asset/flow, year and
representative period as a pair (specification, partition string):

- uniform:  a single block duration D, e.g. "3" -> [1:3, 4:6, ...]. D must divide N.
- explicit: semicolon separated block durations, e.g. "4;4;4". The durations must sum up to N.
- math:     '+' separated terms 'NxD' (N blocks of duration D), e.g. "2x3+1x4+1x2". The blocks
            are emitted term by term. The total duration must be N.

Blocks are returned as python ranges of 1-based timesteps, e.g. range(1, 4) for the block 1:3.
Entities without a partition row fall back to singleton blocks (`default_partition`); the timeframe
of seasonal assets falls back to uniform blocks of one period.

Main callables:

- resolve_partition(specification, partition, total_timesteps) -> list[range]
- default_partition(total_timesteps) -> list[range]
- partition_total(partition) -> int
- build_partition_lookup(df, key_columns) -> dict
"""

import pandas as pd

from capacity_expansion.const import PartitionSpecification
from capacity_expansion.exceptions import InputValidationError


def _to_positive_int(token, specification: PartitionSpecification, partition: str) -> int:
    token = str(token).strip()
    try:
        value = int(token)
    except ValueError:
        # csv readers turn "3" into 3.0 when the column also holds missing values
        try:
            as_float = float(token)
        except ValueError:
            raise InputValidationError(
                f"Invalid {specification.value} partition '{partition}': '{token}' is not an integer")
        if not as_float.is_integer():
            raise InputValidationError(
                f"Invalid {specification.value} partition '{partition}': '{token}' is not an integer")
        value = int(as_float)
    if value <= 0:
        raise InputValidationError(
            f"Invalid {specification.value} partition '{partition}': durations must be positive, got {value}")
    return value


def _uniform_durations(partition: str, total_timesteps: int) -> list[int]:
    duration = _to_positive_int(partition, PartitionSpecification.Uniform, partition)
    if total_timesteps % duration != 0:
        raise InputValidationError(
            f"Uniform partition '{partition}' does not divide the {total_timesteps} timesteps into equal blocks")
    return [duration] * (total_timesteps // duration)


def _explicit_durations(partition: str, total_timesteps: int) -> list[int]:
    return [_to_positive_int(token, PartitionSpecification.Explicit, partition) for token in partition.split(';')]


def _math_durations(partition: str, total_timesteps: int) -> list[int]:
    durations = []
    for term in partition.split('+'):
        parts = term.strip().lower().split('x')
        if len(parts) != 2:
            raise InputValidationError(f"Invalid math partition '{partition}': term '{term}' is not of the form NxD")
        n_blocks = _to_positive_int(parts[0], PartitionSpecification.Math, partition)
        duration = _to_positive_int(parts[1], PartitionSpecification.Math, partition)
        durations.extend([duration] * n_blocks)
    return durations


# one parser per specification
_DURATION_PARSERS = {
    PartitionSpecification.Uniform: _uniform_durations,
    PartitionSpecification.Explicit: _explicit_durations,
    PartitionSpecification.Math: _math_durations,
}


def resolve_partition(specification, partition, total_timesteps: int) -> list[range]:
    """
    Parse a partition specification into contiguous blocks covering exactly 1..total_timesteps.

    :param specification: One of 'uniform', 'explicit' or 'math'.
    :type specification: str or PartitionSpecification
    :param partition: The partition string, see module docstring.
    :type partition: str
    :param total_timesteps: Number of timesteps (or periods) the blocks have to cover.
    :type total_timesteps: int
    :return: Ordered list of blocks.
    :rtype: list[range]
    :raises InputValidationError: If the specification is unknown, the string is malformed or
        the blocks do not cover exactly the given number of timesteps.
    """
    try:
        spec = PartitionSpecification(str(getattr(specification, 'value', specification)).strip().lower())
    except ValueError:
        raise InputValidationError(
            f"Unknown partition specification '{specification}', "
            f"expected one of {[s.value for s in PartitionSpecification]}")

    partition = str(partition).strip()
    durations = _DURATION_PARSERS[spec](partition, total_timesteps)

    if sum(durations) != total_timesteps:
        raise InputValidationError(
            f"{spec.value.capitalize()} partition '{partition}' covers {sum(durations)} timesteps, "
            f"expected {total_timesteps}")

    blocks = []
    block_start = 1
    for duration in durations:
        blocks.append(range(block_start, block_start + duration))
        block_start += duration

    return blocks


def default_partition(total_timesteps: int) -> list[range]:
    """singleton blocks [1:1, 2:2, ..., N:N]"""
    return [range(t, t + 1) for t in range(1, total_timesteps + 1)]


def partition_total(partition: list[range]) -> int:
    return sum(len(block) for block in partition)


def build_partition_lookup(df: pd.DataFrame, key_columns: list) -> dict:
    """
    Index a partitions table by its key columns. Every key may appear only once.

    :param df: Partitions table with the key columns plus 'specification' and 'partition'.
    :param key_columns: Columns identifying the entity, e.g. ['asset', 'year', 'rep_period'].
    :return: Dictionary {key tuple: (specification, partition)}.
    :rtype: dict
    """
    lookup = {}
    for row in df.itertuples(index=False):
        key = tuple(getattr(row, col) for col in key_columns)
        if key in lookup:
            raise InputValidationError(f"Duplicate partition definition for {dict(zip(key_columns, key))}")
        lookup[key] = (row.specification, row.partition)
    return lookup
