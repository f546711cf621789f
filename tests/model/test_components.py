import pytest
import numpy as np

from capacity_expansion.model.components import (
    RepresentativePeriod, AssetData, FlowData, EnergyGraph
)
from capacity_expansion.const import AssetType, InvestmentMethod
from capacity_expansion.exceptions import (
    InputValidationError, StructureError, ConstructionPhaseError, SolutionNotAvailableError
)


class TestComponents:

    @pytest.fixture
    def asset(self):
        return AssetData(
            name='wind', type='producer', capacity=50.0, investment_method='simple', technical_lifetime=20,
            investable={2030: True, 2040: False},
            active={2030: {2030: True}, 2040: {2030: True, 2040: True}},
            initial_units={2030: {2030: 1.0}, 2040: {2030: 1.0, 2040: 2.0}},
        )

    def test_asset_initialization(self, asset):
        assert asset.type == AssetType.Producer
        assert asset.investment_method == InvestmentMethod.Simple
        assert asset.label == "asset 'wind'"
        assert asset.initial_units_at(2040) == 3.0
        assert asset.initial_units_at(2050) == 0
        assert asset.is_investable(2030) is True
        assert asset.is_investable(2040) is False
        assert asset.is_active(2040) is True
        assert asset.is_active(2050) is False
        assert asset.starting_year(2040) == 2021

    def test_unknown_asset_type(self):
        with pytest.raises(InputValidationError, match="Asset 'x'"):
            AssetData(name='x', type='battery')

    def test_unknown_year_attribute(self):
        with pytest.raises(TypeError):
            AssetData(name='x', type='hub', price={2030: 1.0})

    def test_validate_years(self, asset):
        asset.validate_years([2030, 2040])
        with pytest.raises(InputValidationError, match='non-milestone'):
            asset.validate_years([2030])

    def test_validate_commission_year_within_lifetime(self):
        asset = AssetData(name='old', type='producer', technical_lifetime=5, initial_units={2030: {2020: 1.0}})
        with pytest.raises(InputValidationError, match='technical lifetime'):
            asset.validate_years([2030])

    def test_construction_phases(self, asset):
        asset.set_rep_period_partition(2030, 1, [range(1, 3)])
        asset.add_rep_period_profile(2030, 2030, 'availability', 1, np.array([0.5, 1.0]))
        with pytest.raises(ConstructionPhaseError):
            asset.rep_periods_partitions
        asset.freeze()
        assert asset.rep_periods_partitions[2030][1] == [range(1, 3)]
        assert asset.profiles_at(2030)[('availability', 1)][0] == 0.5
        with pytest.raises(ConstructionPhaseError):
            asset.set_rep_period_partition(2030, 1, [range(1, 3)])

    def test_solution_phase(self, asset):
        with pytest.raises(SolutionNotAvailableError):
            asset.solution
        asset.set_solution(investment={2030: 1.0})
        assert asset.solution['investment'][2030] == 1.0
        with pytest.raises(RuntimeError):
            asset.set_solution(investment={2030: 2.0})

    def test_flow_defaults(self):
        flow = FlowData('wind', 'demand')
        assert flow.key == ('wind', 'demand')
        assert flow.efficiency_at(2030) == 1.0
        assert flow.initial_export_units_at(2030) == 0

    def test_representative_period(self):
        rp = RepresentativePeriod(weight=73.0, num_timesteps=24, resolution=0.5)
        assert rp.num_timesteps == 24
        assert rp.duration(1, 4) == 2.0
        with pytest.raises(InputValidationError):
            RepresentativePeriod(weight=1.0, num_timesteps=0)


class TestEnergyGraph:

    @pytest.fixture
    def graph(self):
        graph = EnergyGraph()
        for name, asset_type in [('ccgt', 'producer'), ('ocgt', 'producer'), ('wind', 'producer'),
                                 ('solar', 'producer'), ('battery', 'storage'), ('demand', 'consumer')]:
            graph.add_asset(AssetData(name=name, type=asset_type))
        for source in ['ccgt', 'ocgt', 'wind', 'solar', 'battery']:
            graph.add_flow(FlowData(source, 'demand', active={2030: {2030: True}}))
        graph.add_flow(FlowData('demand', 'battery', active={2030: {2030: False}}))
        return graph

    def test_counts(self, graph):
        assert graph.num_assets == 6
        assert graph.num_flows == 6
        assert graph.asset_names[0] == 'ccgt'
        assert graph.index_of('demand') == 5
        assert graph.name_of(4) == 'battery'

    def test_duplicate_asset(self, graph):
        with pytest.raises(StructureError, match='Duplicate asset'):
            graph.add_asset(AssetData(name='wind', type='producer'))

    def test_duplicate_flow(self, graph):
        with pytest.raises(StructureError, match='Duplicate'):
            graph.add_flow(FlowData('wind', 'demand'))

    def test_dangling_flow(self, graph):
        with pytest.raises(StructureError, match='unknown asset'):
            graph.add_flow(FlowData('wind', 'nowhere'))

    def test_lookup(self, graph):
        assert graph['wind'].name == 'wind'
        assert graph[('wind', 'demand')].key == ('wind', 'demand')
        assert ('demand', 'wind') not in graph
        assert 'solar' in graph
        with pytest.raises(StructureError):
            graph.asset('hydro')

    def test_neighbours_and_active_flows(self, graph):
        assert graph.in_neighbors('battery') == ['demand']
        assert graph.out_neighbors('battery') == ['demand']
        assert len(graph.incoming_flows('demand', 2030)) == 5
        assert graph.incoming_flows('battery', 2030) == []
        assert len(graph.incoming_flows('battery')) == 1

    def test_freeze(self, graph):
        graph.freeze()
        assert all(asset.frozen for asset in graph.assets())
        assert all(flow.frozen for flow in graph.flows())
