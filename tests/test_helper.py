import os
import pytest
import numpy as np

from capacity_expansion.helper import (
    is_missing, to_bool, optional_float, block_range, block_length, overlap_length, profile_aggregation,
    interpolate_block, create_result_folder, create_log_file_path
)


class TestHelper:

    def test_is_missing(self):
        assert is_missing(None) is True
        assert is_missing(np.nan) is True
        assert is_missing(0.0) is False
        assert is_missing('') is False
        assert is_missing([1, 2]) is False

    def test_to_bool(self):
        assert to_bool(True) is True
        assert to_bool('true') is True
        assert to_bool('False') is False
        assert to_bool(' yes ') is True
        assert to_bool(1) is True
        assert to_bool(0.0) is False
        assert to_bool(np.nan) is False
        assert to_bool(None) is False

    def test_optional_float(self):
        assert optional_float(np.nan) is None
        assert optional_float('2.5') == 2.5
        assert optional_float(3) == 3.0

    def test_block_helpers(self):
        assert list(block_range(2, 4)) == [2, 3, 4]
        assert block_length((4, 6)) == 3
        assert overlap_length((1, 3), (3, 6)) == 1
        assert overlap_length((1, 6), (2, 3)) == 2
        assert overlap_length((1, 2), (3, 4)) == 0

    def test_profile_aggregation(self):
        profiles = {('availability', 1): np.array([0.0, 0.5, 1.0, 0.5])}
        assert profile_aggregation(np.mean, profiles, ('availability', 1), (2, 3), 1.0) == pytest.approx(0.75)
        assert profile_aggregation(np.sum, profiles, ('availability', 1), (1, 4), 1.0) == pytest.approx(2.0)
        # missing profile falls back to the default
        assert profile_aggregation(np.mean, profiles, ('availability', 2), (1, 2), 0.3) == 0.3

    def test_interpolate_block(self):
        values = interpolate_block(0.0, 30.0, 3)
        assert values == pytest.approx([10.0, 20.0, 30.0])
        assert interpolate_block(5.0, 5.0, 1) == pytest.approx([5.0])

    def test_create_result_folder(self, tmp_path):
        folder = create_result_folder('Tiny', top_folder=str(tmp_path))
        assert os.path.isdir(folder)
        assert os.path.basename(folder).startswith('Tiny_')

    def test_create_log_file_path(self, tmp_path):
        log_folder = tmp_path / 'logs'
        fpath = create_log_file_path('Tiny', log_folder=str(log_folder))
        assert log_folder.is_dir()
        assert os.path.basename(fpath).startswith('run_Tiny_')
        assert fpath.endswith('.txt')
