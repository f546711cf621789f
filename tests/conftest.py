import pytest
import pandas as pd

from capacity_expansion.data_preparation.data_formats import InputTables


def tiny_dataframes(peak_demand=50.0, variable_cost=2.0, capacity=100.0, num_timesteps=4) -> dict:
    """
    One producer 'gen' with one installed unit feeding one consumer 'demand' in the single
    milestone year 2030 with one representative period.
    """
    return {
        'year_data': pd.DataFrame({'year': [2030], 'length': [1], 'is_milestone': [True]}),
        'rep_periods_data': pd.DataFrame({'year': [2030], 'rep_period': [1], 'num_timesteps': [num_timesteps],
                                          'resolution': [1.0]}),
        'rep_periods_mapping': pd.DataFrame({'year': [2030], 'period': [1], 'rep_period': [1], 'weight': [1.0]}),
        'asset': pd.DataFrame({'asset': ['gen', 'demand'], 'type': ['producer', 'consumer'],
                               'capacity': [capacity, 0.0]}),
        'asset_milestone': pd.DataFrame({'asset': ['gen', 'demand'], 'milestone_year': [2030, 2030],
                                         'investable': [False, False], 'peak_demand': [0.0, peak_demand]}),
        'asset_commission': pd.DataFrame({'asset': ['gen', 'demand'], 'commission_year': [2030, 2030]}),
        'asset_both': pd.DataFrame({'asset': ['gen', 'demand'], 'milestone_year': [2030, 2030],
                                    'commission_year': [2030, 2030], 'active': [True, True],
                                    'initial_units': [1.0, 0.0]}),
        'flow': pd.DataFrame({'from_asset': ['gen'], 'to_asset': ['demand'], 'carrier': ['electricity']}),
        'flow_milestone': pd.DataFrame({'from_asset': ['gen'], 'to_asset': ['demand'], 'milestone_year': [2030],
                                        'variable_cost': [variable_cost]}),
        'flow_commission': pd.DataFrame({'from_asset': ['gen'], 'to_asset': ['demand'],
                                         'commission_year': [2030], 'efficiency': [1.0]}),
        'flow_both': pd.DataFrame({'from_asset': ['gen'], 'to_asset': ['demand'], 'milestone_year': [2030],
                                   'commission_year': [2030], 'active': [True]}),
        'assets_profiles': pd.DataFrame(columns=['asset', 'commission_year', 'profile_type', 'profile_name']),
        'flows_profiles': pd.DataFrame(columns=['from_asset', 'to_asset', 'profile_type', 'profile_name']),
        'profiles_rep_periods': pd.DataFrame(columns=['profile_name', 'year', 'rep_period', 'timestep', 'value']),
    }


@pytest.fixture
def tiny_tables() -> InputTables:
    return InputTables.from_dataframes(tiny_dataframes())


@pytest.fixture
def tiny_dfs() -> dict:
    return tiny_dataframes()


@pytest.fixture
def make_tiny_dfs():
    return tiny_dataframes
