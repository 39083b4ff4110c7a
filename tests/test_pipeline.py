import json

import numpy as np
import pandas as pd
import pytest
import yaml

import run_analytics
from retail_insights.common import DEFAULT_CONFIG, Reporter, load_config
from retail_insights.pipeline import run_pipeline


@pytest.fixture
def data_path(raw_transactions, tmp_path):
    path = tmp_path / 'online_retail.csv'
    raw_transactions.to_csv(path, index=False)
    return path


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text(yaml.safe_dump({
        'data': {'date_format': '%m/%d/%Y %H:%M'},
        'segmentation': {'churn_days': 90},
    }))
    return path


class TestConfig:
    def test_overrides_merge_with_defaults(self, config_path):
        config = load_config(str(config_path))

        assert config['segmentation']['churn_days'] == 90
        assert config['segmentation']['n_bins'] == 5
        assert config['data']['guest_customer_id'] == 'Guest'

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(str(tmp_path / 'absent.yaml'))
        config['segmentation']['churn_days'] = 1

        assert DEFAULT_CONFIG['segmentation']['churn_days'] == 180

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('- just\n- a list\n')
        with pytest.raises(ValueError, match='mapping'):
            load_config(str(path))


class TestReporter:
    def test_save_table(self, tmp_path):
        reporter = Reporter(output_dir=str(tmp_path))
        path = reporter.save_table(pd.DataFrame({'a': [1, 2]}), 'table', subdir='metrics')

        assert path == tmp_path / 'metrics' / 'table.csv'
        assert pd.read_csv(path)['a'].tolist() == [1, 2]

    def test_serializable_values(self, tmp_path):
        reporter = Reporter(output_dir=str(tmp_path))
        converted = reporter._convert_to_serializable({
            'count': np.int64(3),
            'clv': np.float64('nan'),
            'date': pd.Timestamp('2011-12-09 12:00'),
            'missing_date': pd.NaT,
            'flag': np.bool_(True),
        })

        assert converted == {
            'count': 3,
            'clv': None,
            'date': '2011-12-09T12:00:00',
            'missing_date': None,
            'flag': True,
        }
        json.dumps(converted)


class TestPipeline:
    def test_full_run(self, data_path, config, tmp_path):
        output_dir = tmp_path / 'outputs'
        results = run_pipeline(str(data_path), config, output_dir=str(output_dir))

        assert len(results['transactions']) == 10
        assert len(results['segmentation']['scored_customers']) == 5
        assert results['segmentation']['analysis_date'] == pd.Timestamp('2011-12-09 12:00')
        assert results['segmentation']['cutoff_date'] == pd.Timestamp('2011-06-12 12:00')

        assert (output_dir / 'processed' / 'online_retail_enriched.csv').exists()
        assert (output_dir / 'processed' / 'product_mapping_table.csv').exists()
        assert (output_dir / 'metrics' / 'foundational_metrics.csv').exists()
        assert (output_dir / 'segmentation' / 'rfm_scored_customers.csv').exists()
        assert (output_dir / 'segmentation' / 'segment_churn_rate.csv').exists()

        with open(output_dir / 'segmentation_summary.json') as f:
            summary = json.load(f)
        assert summary['n_customers'] == 5
        assert summary['analysis_date'] == '2011-12-09T12:00:00'
        assert summary['segment_lifetime_value'][0]['segment'] == 'Loyal Customers'

    def test_clean_only(self, data_path, config, tmp_path):
        output_dir = tmp_path / 'outputs'
        results = run_pipeline(str(data_path), config, output_dir=str(output_dir), task='clean')

        assert 'metrics' not in results
        assert 'segmentation' not in results
        assert not (output_dir / 'metrics').exists()

    def test_unknown_task(self, data_path, config, tmp_path):
        with pytest.raises(ValueError, match='Unknown task'):
            run_pipeline(str(data_path), config, output_dir=str(tmp_path), task='forecast')

    def test_nothing_left_after_cleaning(self, raw_transactions, config, tmp_path):
        path = tmp_path / 'cancelled.csv'
        raw_transactions.assign(Quantity=-1).to_csv(path, index=False)

        with pytest.raises(ValueError, match='No valid transactions'):
            run_pipeline(str(path), config, output_dir=str(tmp_path / 'outputs'))


class TestCommandLine:
    def test_segment_task(self, data_path, config_path, tmp_path):
        output_dir = tmp_path / 'outputs'
        exit_code = run_analytics.main([
            '--task', 'segment',
            '--data', str(data_path),
            '--config', str(config_path),
            '--output', str(output_dir),
            '--top-n', '1',
        ])

        assert exit_code == 0
        leaders = pd.read_csv(output_dir / 'segmentation' / 'segment_product_total_revenue.csv')
        assert leaders.groupby('segment').size().max() == 1

    def test_missing_data_file(self, config_path, tmp_path):
        exit_code = run_analytics.main([
            '--data', str(tmp_path / 'absent.csv'),
            '--config', str(config_path),
            '--output', str(tmp_path / 'outputs'),
        ])
        assert exit_code == 1
