import pytest
import pandas as pd
from pyomo.environ import ConcreteModel, value
from pyomo.core.expr.visitor import identify_variables

from capacity_expansion.data_preparation.data_formats import InputTables
from capacity_expansion.model.energy_problem import EnergyProblem
from capacity_expansion.model.pyomo_model import _investment_upper_bound, write_lp_file
from capacity_expansion.const import IndexTable


def add_battery(dfs):
    """battery charged by gen and discharging into demand"""
    dfs['asset'] = pd.concat([dfs['asset'], pd.DataFrame({
        'asset': ['battery'], 'type': ['storage'], 'capacity': [10.0], 'energy_to_power_ratio': [2.0]})],
        ignore_index=True)
    dfs['asset_milestone'] = pd.concat([dfs['asset_milestone'], pd.DataFrame({
        'asset': ['battery'], 'milestone_year': [2030]})], ignore_index=True)
    dfs['asset_commission'] = pd.concat([dfs['asset_commission'], pd.DataFrame({
        'asset': ['battery'], 'commission_year': [2030]})], ignore_index=True)
    dfs['asset_both'] = pd.concat([dfs['asset_both'], pd.DataFrame({
        'asset': ['battery'], 'milestone_year': [2030], 'commission_year': [2030], 'initial_units': [1.0]})],
        ignore_index=True)
    keys = {'from_asset': ['gen', 'battery'], 'to_asset': ['battery', 'demand']}
    for table, extra in (('flow', {}), ('flow_milestone', {'milestone_year': [2030] * 2}),
                         ('flow_commission', {'commission_year': [2030] * 2, 'efficiency': [0.9, 0.9]}),
                         ('flow_both', {'milestone_year': [2030] * 2, 'commission_year': [2030] * 2})):
        dfs[table] = pd.concat([dfs[table], pd.DataFrame({**keys, **extra})], ignore_index=True)
    return dfs


class TestPyomoModel:

    @pytest.fixture
    def model(self, tiny_tables):
        energy_problem = EnergyProblem(tiny_tables)
        return energy_problem.create_model()

    def test_model_creation(self, model):
        assert isinstance(model, ConcreteModel)
        # one flow variable per timestep of the single flow
        assert len(model.flow) == 4
        assert len(model.consumer_balance) == 4
        assert len(model.max_output_flows_limit) == 4
        assert len(model.hub_balance) == 0
        assert len(model.assets_investment_index) == 0

    def test_consumer_balance_is_equality(self, model):
        assert all(model.consumer_balance[i].equality for i in model.consumer_balance)

    def test_consumer_balance_sense(self, tiny_dfs):
        tiny_dfs['asset']['consumer_balance_sense'] = [None, '>=']
        m = EnergyProblem(InputTables.from_dataframes(tiny_dfs)).create_model()
        con = m.consumer_balance[0]
        assert not con.equality
        assert con.has_lb() and not con.has_ub()

    def test_objective_is_variable_cost_times_flow(self, model):
        for i in model.flow:
            model.flow[i].value = 50.0
        assert value(model.objective_function) == pytest.approx(2.0 * 50.0 * 4)
        assert value(model.flows_variable_cost) == pytest.approx(400.0)
        assert value(model.assets_fixed_cost) == 0.0

    def test_write_lp_file(self, model, tmp_path):
        fpath = tmp_path / 'model.lp'
        write_lp_file(model, str(fpath))
        content = fpath.read_text()
        assert 'consumer_balance' in content
        assert 'flow' in content


class TestInvestmentBounds:

    def test_investment_upper_bound(self):
        assert _investment_upper_bound(100.0, 250.0, integer=True) == 2
        assert _investment_upper_bound(100.0, 250.0, integer=False) == pytest.approx(2.5)
        assert _investment_upper_bound(100.0, None, integer=False) is None
        assert _investment_upper_bound(0.0, 250.0, integer=False) is None

    @pytest.mark.parametrize('integer, upper_bound', [(True, 2), (False, 2.5)])
    def test_investment_variable(self, tiny_dfs, integer, upper_bound):
        tiny_dfs['asset']['investment_method'] = ['simple', 'none']
        tiny_dfs['asset']['investment_integer'] = [integer, False]
        tiny_dfs['asset_milestone']['investable'] = [True, False]
        tiny_dfs['asset_commission']['investment_limit'] = [250.0, None]
        m = EnergyProblem(InputTables.from_dataframes(tiny_dfs)).create_model()

        var = m.assets_investment[2030, 'gen']
        assert var.lb == 0
        assert var.ub == pytest.approx(upper_bound)
        assert var.is_integer() is integer

    def test_unlimited_investment(self, tiny_dfs):
        tiny_dfs['asset']['investment_method'] = ['simple', 'none']
        tiny_dfs['asset_milestone']['investable'] = [True, False]
        m = EnergyProblem(InputTables.from_dataframes(tiny_dfs)).create_model()
        assert m.assets_investment[2030, 'gen'].ub is None


class TestMultiYearAccumulation:

    @pytest.fixture
    def dfs(self, tiny_dfs):
        years = [2030, 2040]
        tiny_dfs['year_data'] = pd.DataFrame({'year': years, 'length': [10, 10], 'is_milestone': [True, True]})
        tiny_dfs['rep_periods_data'] = pd.DataFrame({'year': years, 'rep_period': [1, 1], 'num_timesteps': [4, 4]})
        tiny_dfs['rep_periods_mapping'] = pd.DataFrame({'year': years, 'period': [1, 1], 'rep_period': [1, 1]})
        tiny_dfs['asset'] = pd.DataFrame({'asset': ['gen', 'demand'], 'type': ['producer', 'consumer'],
                                          'capacity': [100.0, 0.0], 'investment_method': ['simple', 'none'],
                                          'technical_lifetime': [5, 1]})
        names = ['gen', 'demand', 'gen', 'demand']
        tiny_dfs['asset_milestone'] = pd.DataFrame({
            'asset': names, 'milestone_year': [2030, 2030, 2040, 2040], 'investable': [True, False, True, False],
            'peak_demand': [0.0, 50.0, 0.0, 50.0]})
        tiny_dfs['asset_commission'] = pd.DataFrame({'asset': names, 'commission_year': [2030, 2030, 2040, 2040],
                                                     'fixed_cost': [3.0, 0.0, 3.0, 0.0]})
        tiny_dfs['asset_both'] = pd.DataFrame({
            'asset': names, 'milestone_year': [2030, 2030, 2040, 2040], 'commission_year': [2030, 2030, 2040, 2040],
            'initial_units': [1.0, 0.0, 0.0, 0.0]})
        keys = {'from_asset': ['gen', 'gen'], 'to_asset': ['demand', 'demand']}
        tiny_dfs['flow_milestone'] = pd.DataFrame({**keys, 'milestone_year': years, 'variable_cost': [2.0, 2.0]})
        tiny_dfs['flow_commission'] = pd.DataFrame({**keys, 'commission_year': years})
        tiny_dfs['flow_both'] = pd.DataFrame({**keys, 'milestone_year': years, 'commission_year': years})
        return tiny_dfs

    def test_accumulated_units_within_lifetime(self, dfs):
        m = EnergyProblem(InputTables.from_dataframes(dfs)).create_model()
        m.assets_investment[2030, 'gen'].value = 1.0
        m.assets_investment[2040, 'gen'].value = 2.0

        assert value(m.accumulated_units['gen', 2030]) == pytest.approx(1.0 + 1.0)
        # the 2030 investment is beyond its technical lifetime of 5 years in 2040
        assert value(m.accumulated_units['gen', 2040]) == pytest.approx(2.0)
        assert value(m.accumulated_investment_units['gen', 2040]) == pytest.approx(2.0)

    def test_operation_costs_weighted_by_milestone_interval(self, dfs):
        m = EnergyProblem(InputTables.from_dataframes(dfs)).create_model()
        for i in m.flow:
            m.flow[i].value = 1.0
        # 2030 stands for 10 years, 2040 for one
        assert value(m.flows_variable_cost) == pytest.approx(2.0 * 4 * (10 + 1))

    def test_fixed_costs_on_accumulated_units(self, dfs):
        m = EnergyProblem(InputTables.from_dataframes(dfs)).create_model()
        m.assets_investment[2030, 'gen'].value = 0.0
        m.assets_investment[2040, 'gen'].value = 1.0
        assert value(m.assets_fixed_cost) == pytest.approx(3.0 * 100.0 * (1.0 * 10 + 1.0 * 1))


class TestStorage:

    def test_cyclic_storage_balance(self, tiny_dfs):
        m = EnergyProblem(InputTables.from_dataframes(add_battery(tiny_dfs))).create_model()
        assert len(m.storage_intra_rp_balance) == 4
        assert len(m.storage_intra_rp_final_index) == 0

        first_vars = {id(v) for v in identify_variables(m.storage_intra_rp_balance[0].body)}
        last_row = m.last_row_of_storage_intra_rp[('battery', 2030, 1)]
        assert last_row == 3
        assert id(m.storage_level_intra_rp[last_row]) in first_vars

    def test_storage_balance_terms_use_efficiency(self, tiny_dfs):
        energy_problem = EnergyProblem(InputTables.from_dataframes(add_battery(tiny_dfs)))
        row = energy_problem.dataframes[IndexTable.StorageLevelIntraRP].iloc[0]
        assert list(row['incoming_terms'].values()) == pytest.approx([0.9])
        assert list(row['outgoing_terms'].values()) == pytest.approx([1 / 0.9])

    def test_initial_storage_level(self, tiny_dfs):
        dfs = add_battery(tiny_dfs)
        dfs['asset_milestone']['initial_storage_level'] = [None, None, 5.0]
        m = EnergyProblem(InputTables.from_dataframes(dfs)).create_model()
        assert list(m.storage_intra_rp_final_index) == [('battery', 2030, 1)]
        first_vars = {id(v) for v in identify_variables(m.storage_intra_rp_balance[0].body)}
        assert id(m.storage_level_intra_rp[3]) not in first_vars
