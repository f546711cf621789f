import pytest
import pandas as pd
import numpy as np

from capacity_expansion.data_preparation.data_formats import InputTables, ModelParameters, read_csv_folder
from capacity_expansion.const import InputTable, OPTIONAL_TABLES, TABLE_SCHEMAS
from capacity_expansion.exceptions import InputValidationError


class TestInputTables:

    def test_defaults_are_filled(self, tiny_tables):
        asset = tiny_tables[InputTable.Asset]
        for col, default in TABLE_SCHEMAS[InputTable.Asset]['defaults'].items():
            assert col in asset.columns
        assert (asset['investment_method'] == 'none').all()
        assert (tiny_tables['rep_periods_data']['resolution'] == 1.0).all()

    def test_optional_tables_are_empty(self, tiny_tables):
        for table in OPTIONAL_TABLES:
            assert table in tiny_tables
            assert tiny_tables[table].empty

    def test_missing_required_table(self, tiny_dfs):
        del tiny_dfs['flow']
        with pytest.raises(InputValidationError, match="'flow'"):
            InputTables.from_dataframes(tiny_dfs)

    def test_missing_required_column(self, tiny_dfs):
        tiny_dfs['asset'] = tiny_dfs['asset'].drop(columns=['type'])
        with pytest.raises(InputValidationError, match=r"'asset'.*\['type'\]"):
            InputTables.from_dataframes(tiny_dfs)

    def test_empty_required_cell(self, tiny_dfs):
        tiny_dfs['year_data'].loc[0, 'length'] = np.nan
        with pytest.raises(InputValidationError, match='length'):
            InputTables.from_dataframes(tiny_dfs)

    def test_non_integer_year(self, tiny_dfs):
        tiny_dfs['year_data']['year'] = ['twenty-thirty']
        with pytest.raises(InputValidationError, match="column 'year'"):
            InputTables.from_dataframes(tiny_dfs)

    def test_empty_optional_cells_get_defaults(self, tiny_dfs):
        tiny_dfs['flow_commission']['efficiency'] = [np.nan]
        tables = InputTables.from_dataframes(tiny_dfs)
        assert tables[InputTable.FlowCommission]['efficiency'].iloc[0] == 1.0

    def test_read_csv_folder(self, tmp_path, tiny_dfs):
        for name, df in tiny_dfs.items():
            df.to_csv(tmp_path / f'{name}.csv', index=False)
        tables = read_csv_folder(str(tmp_path))
        assert len(tables[InputTable.Asset]) == 2
        assert tables[InputTable.YearData]['year'].iloc[0] == 2030

    def test_read_csv_folder_missing(self, tmp_path):
        with pytest.raises(InputValidationError):
            read_csv_folder(str(tmp_path / 'nope'))


class TestModelParameters:

    def test_defaults(self):
        params = ModelParameters()
        assert params.discount_rate == 0.0
        assert params.get_discount_year([2040, 2030]) == 2030

    def test_explicit_discount_year(self):
        params = ModelParameters(discount_rate=0.05, discount_year=2025)
        assert params.discount_rate == 0.05
        assert params.get_discount_year([2030, 2040]) == 2025
