"""
capacity_expansion/helper.py

Utility functions used across the project for value checks on tabular input, time block
arithmetic, profile aggregation and small IO helpers.

Main responsibilities:

- Value helpers:
    - detection of missing values (None / NaN) in table cells,
    - conversion of table cells to booleans and optional floats.

- Time block helpers:
    - conversion between (start, end) pairs and ranges,
    - overlap length of two blocks,
    - aggregation of profile values over a block with a default for missing profiles,
    - linear interpolation of a value over the timesteps of a block.

- IO helpers:
    - result folder creation and log file naming per case study.

Dependencies and notes:

- Relies on numpy and pandas and on the project paths defined in `capacity_expansion.config`.
- Time blocks are 1-based and inclusive on both ends, i.e. the block (1, 3) covers the
  timesteps 1, 2 and 3.
"""

import os
from datetime import datetime
from typing import Callable

import numpy as np
import pandas as pd

from capacity_expansion.config import OUTPUT_FOLDER


def is_missing(val) -> bool:
    """
    Checks if a table cell holds no value.

    :param val: The value to be checked
    :return: True if the value is None or NaN, otherwise False
    :rtype: bool
    """
    if val is None:
        return True
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def to_bool(val) -> bool:
    """
    Convert a table cell to a boolean. Missing values are False; strings are accepted in the
    usual spellings written by spreadsheet tools ('true', 'False', '1', 'yes', ...).
    """
    if is_missing(val):
        return False
    if isinstance(val, str):
        return val.strip().lower() in ('true', '1', 'yes', 'y', 't')
    return bool(val)


def optional_float(val) -> float | None:
    """float(val), or None for missing values"""
    if is_missing(val):
        return None
    return float(val)


def block_range(start: int, end: int) -> range:
    return range(start, end + 1)


def block_length(block: tuple[int, int]) -> int:
    return block[1] - block[0] + 1


def overlap_length(block_a: tuple[int, int], block_b: tuple[int, int]) -> int:
    """number of timesteps that two inclusive blocks have in common"""
    return max(0, min(block_a[1], block_b[1]) - max(block_a[0], block_b[0]) + 1)


def profile_aggregation(agg: Callable, profiles: dict, key, block: tuple[int, int], default_value: float) -> float:
    """
    Aggregate the values of a profile over a time block.

    :param agg: Aggregation function applied to the profile values in the block, e.g. np.mean or np.sum.
    :param profiles: Dictionary of profile arrays, the first array entry belongs to timestep (or period) 1.
    :param key: Key of the profile in `profiles`.
    :param block: Inclusive (start, end) pair of the block.
    :param default_value: Value returned when the profile does not exist.
    :return: The aggregated value.
    :rtype: float
    """
    values = profiles.get(key)
    if values is None:
        return default_value
    return float(agg(np.asarray(values)[block[0] - 1:block[1]]))


def interpolate_block(start_value: float, end_value: float, n: int) -> np.ndarray:
    """
    Linear interpolation from the value before a block to the value at its end. The start value
    itself belongs to the previous block and is not part of the returned array.
    """
    return np.linspace(start_value, end_value, n + 1)[1:]


def create_result_folder(case_name: str, top_folder: str = os.path.join(OUTPUT_FOLDER, 'results')) -> str:
    """
    Creates a result folder for a given case study in the specified top directory. The folder name
    is the case name followed by the current timestamp.

    :param case_name: Name of the case study.
    :type case_name: str
    :param top_folder: The base directory where the result folder will be created.
    :type top_folder: str, optional
    :return: The full path to the result folder.
    :rtype: str
    """
    new_res_folder = os.path.join(top_folder, f"{case_name}_{datetime.now().strftime('%Y%m%d-%H%M')}")
    if not os.path.exists(new_res_folder):
        os.makedirs(new_res_folder)

    return new_res_folder


def create_log_file_path(case_name: str, log_folder: str = os.path.join(OUTPUT_FOLDER, 'logs')) -> str:
    if not os.path.exists(log_folder):
        os.makedirs(log_folder)
    return os.path.join(log_folder, f'run_{case_name}_{datetime.now().strftime("%Y%m%d-%H%M%S")}.txt')
