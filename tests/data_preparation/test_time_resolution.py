import pytest
import pandas as pd

from capacity_expansion.data_preparation.data_formats import InputTables
from capacity_expansion.data_preparation.input_data import create_internal_structures
from capacity_expansion.data_preparation.partitions import resolve_partition
from capacity_expansion.data_preparation.time_resolution import (
    compute_rp_partition, compute_constraints_partitions, construct_dataframes, add_flow_terms, add_inter_rp_terms
)
from capacity_expansion.const import IndexTable, PartitionStrategy
from capacity_expansion.exceptions import PartitionMismatchError


def blocks(*ends):
    """partition from the block ends, e.g. blocks(3, 6) -> [1:3, 4:6]"""
    result, start = [], 1
    for end in ends:
        result.append(range(start, end + 1))
        start = end + 1
    return result


def as_tuples(partition):
    return [(b.start, b.stop - 1) for b in partition]


class TestComputeRpPartition:

    def test_highest_cuts_at_all_ends(self):
        result = compute_rp_partition([blocks(3, 6, 9, 12), blocks(4, 8, 12)], PartitionStrategy.Highest)
        assert as_tuples(result) == [(1, 3), (4, 4), (5, 6), (7, 8), (9, 9), (10, 12)]

    def test_highest_of_singletons(self):
        result = compute_rp_partition([blocks(1, 2, 3), blocks(3)], 'highest')
        assert as_tuples(result) == [(1, 1), (2, 2), (3, 3)]

    def test_lowest_takes_largest_containing_block(self):
        result = compute_rp_partition([blocks(3, 6, 9, 12), blocks(4, 8, 12)], PartitionStrategy.Lowest)
        assert as_tuples(result) == [(1, 4), (5, 8), (9, 12)]

    def test_lowest_with_math_partitions(self):
        a = resolve_partition('math', '2x3+1x4+1x2', 12)
        b = resolve_partition('uniform', '4', 12)
        result = compute_rp_partition([a, b], 'lowest')
        assert as_tuples(result) == [(1, 4), (5, 8), (9, 12)]

    def test_single_partition_is_unchanged(self):
        partition = resolve_partition('explicit', '2;5;5', 12)
        for strategy in PartitionStrategy:
            assert as_tuples(compute_rp_partition([partition], strategy)) == [(1, 2), (3, 7), (8, 12)]

    def test_ragged_partitions(self):
        with pytest.raises(PartitionMismatchError, match='does not match'):
            compute_rp_partition([blocks(3, 6), blocks(4, 8)], 'highest')

    def test_straddling_blocks_over_the_same_span(self):
        # 1:3 straddles 1:2 | 3:6, this is refined and not a mismatch
        partitions = [blocks(3, 6), blocks(2, 6)]
        assert as_tuples(compute_rp_partition(partitions, 'highest')) == [(1, 2), (3, 3), (4, 6)]
        assert as_tuples(compute_rp_partition(partitions, 'lowest')) == [(1, 3), (4, 6)]

    def test_gap_in_partition(self):
        with pytest.raises(PartitionMismatchError):
            compute_rp_partition([[range(1, 3), range(4, 7)]], 'lowest')

    def test_no_partitions(self):
        assert compute_rp_partition([], 'highest') == []


class TestIndexTables:

    @pytest.fixture
    def problem_data(self, make_tiny_dfs):
        dfs = make_tiny_dfs(num_timesteps=6)
        # a conversion asset between gen and demand
        dfs['asset'] = pd.DataFrame({'asset': ['gen', 'conv', 'demand'], 'type': ['producer', 'conversion', 'consumer'],
                                     'capacity': [100.0, 100.0, 0.0]})
        names = ['gen', 'conv', 'demand']
        dfs['asset_milestone'] = pd.DataFrame({'asset': names, 'milestone_year': [2030] * 3,
                                               'peak_demand': [0.0, 0.0, 10.0]})
        dfs['asset_commission'] = pd.DataFrame({'asset': names, 'commission_year': [2030] * 3})
        dfs['asset_both'] = pd.DataFrame({'asset': names, 'milestone_year': [2030] * 3,
                                          'commission_year': [2030] * 3, 'initial_units': [1.0, 1.0, 0.0]})
        keys = {'from_asset': ['gen', 'conv'], 'to_asset': ['conv', 'demand']}
        dfs['flow'] = pd.DataFrame(keys)
        dfs['flow_milestone'] = pd.DataFrame({**keys, 'milestone_year': [2030] * 2})
        dfs['flow_commission'] = pd.DataFrame({**keys, 'commission_year': [2030] * 2, 'efficiency': [0.5, 1.0]})
        dfs['flow_both'] = pd.DataFrame({**keys, 'milestone_year': [2030] * 2, 'commission_year': [2030] * 2})
        dfs['flows_rep_periods_partitions'] = pd.DataFrame({
            **keys, 'year': [2030] * 2, 'rep_period': [1] * 2, 'specification': ['uniform', 'uniform'],
            'partition': ['2', '3']})

        graph, rps, timeframe, groups, years = create_internal_structures(InputTables.from_dataframes(dfs))
        partitions = compute_constraints_partitions(graph, rps, years)
        dataframes = construct_dataframes(graph, rps, partitions, timeframe, years)
        add_flow_terms(dataframes, graph, rps)
        add_inter_rp_terms(dataframes, graph, rps)
        return graph, partitions, dataframes

    def test_views(self, problem_data):
        graph, partitions, dataframes = problem_data
        # lowest of [1:2, 3:4, 5:6], [1:3, 4:6] and the singletons of the asset
        assert as_tuples(partitions[IndexTable.Lowest][('conv', 2030, 1)]) == [(1, 3), (4, 6)]
        # highest of the outflow only
        assert as_tuples(partitions[IndexTable.HighestOut][('gen', 2030, 1)]) == [(1, 2), (3, 4), (5, 6)]
        assert as_tuples(partitions[IndexTable.HighestInOut][('demand', 2030, 1)]) == [(1, 3), (4, 6)]
        assert ('gen', 2030, 1) not in partitions[IndexTable.Lowest]
        assert partitions[IndexTable.StorageLevelIntraRP] == {}

    def test_flows_table(self, problem_data):
        dataframes = problem_data[2]
        flows = dataframes[IndexTable.Flows]
        assert len(flows) == 3 + 2
        assert list(flows['index']) == list(range(5))
        first = flows.iloc[0]
        assert (first['from_asset'], first['to_asset'], first['time_block_start'], first['time_block_end']) == \
            ('conv', 'demand', 1, 3)

    def test_conversion_terms_in_energy_mode(self, problem_data):
        dataframes = problem_data[2]
        row = dataframes[IndexTable.Lowest].iloc[0]
        # inflow gen->conv blocks [1:2] (index 2) and [3:4] (index 3) overlap 2 and 1 timesteps, times efficiency
        assert row['incoming_terms'] == pytest.approx({2: 2 * 0.5, 3: 1 * 0.5})
        # outflow conv->demand block [1:3] (index 0) fully inside
        assert row['outgoing_terms'] == pytest.approx({0: 3.0})

    def test_power_mode_terms(self, problem_data):
        dataframes = problem_data[2]
        rows = dataframes[IndexTable.HighestOut]
        gen_rows = rows[rows['asset'] == 'gen']
        assert list(gen_rows['outgoing_terms']) == [{2: 1.0}, {3: 1.0}, {4: 1.0}]
        assert list(gen_rows['min_outgoing_flow_duration']) == [2, 2, 2]

    def test_no_timeframe_rows(self, problem_data):
        dataframes = problem_data[2]
        assert dataframes[IndexTable.StorageLevelInterRP].empty
        assert 'incoming_terms' in dataframes[IndexTable.StorageLevelInterRP].columns
