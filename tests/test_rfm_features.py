import pandas as pd
import pytest
from loguru import logger

from retail_insights.customer_segmentation import RFMFeatureEngineer, ntile


class TestNtile:
    def test_uneven_population_puts_overflow_in_lower_buckets(self):
        buckets = ntile(pd.Series(range(7)), 5)
        assert buckets.value_counts().sort_index().tolist() == [2, 2, 1, 1, 1]

    def test_even_population(self):
        buckets = ntile(pd.Series(range(10)), 5)
        assert buckets.value_counts().sort_index().tolist() == [2, 2, 2, 2, 2]

    def test_small_population_collapses_to_ranks(self):
        buckets = ntile(pd.Series([30.0, 10.0, 20.0]), 5)
        assert buckets.tolist() == [3, 1, 2]

    def test_ties_follow_input_order(self):
        buckets = ntile(pd.Series([7, 7, 7, 7, 7]), 5)
        assert buckets.tolist() == [1, 2, 3, 4, 5]

    def test_keeps_index(self):
        values = pd.Series([1, 2, 3], index=['c', 'a', 'b'])
        assert list(ntile(values, 5).index) == ['c', 'a', 'b']

    def test_empty(self):
        assert ntile(pd.Series([], dtype=float), 5).empty

    def test_invalid_bucket_count(self):
        with pytest.raises(ValueError):
            ntile(pd.Series([1, 2]), 0)


class TestCalculateRFM:
    def test_metrics_per_customer(self, transactions):
        rfm = RFMFeatureEngineer().calculate_rfm(transactions).set_index('customer_id')

        assert list(rfm.index) == ['12346', '12347', '12348', '12349', '12350']
        assert rfm.loc['12346', 'frequency'] == 2
        assert rfm.loc['12346', 'monetary'] == pytest.approx(45.0)
        assert rfm.loc['12347', 'frequency'] == 1
        assert rfm.loc['12347', 'monetary'] == pytest.approx(17.5)

    def test_recency_in_days_from_latest_timestamp(self, transactions):
        # The guest invoice at 12:00 sets the analysis date
        rfm = RFMFeatureEngineer().calculate_rfm(transactions).set_index('customer_id')

        assert rfm.loc['12347', 'recency'] == pytest.approx(2 / 24)
        assert rfm.loc['12346', 'recency'] == pytest.approx(8 + 2 / 24)
        assert (rfm['recency'] >= 0).all()

    def test_guests_are_not_scored(self, transactions):
        rfm = RFMFeatureEngineer().calculate_rfm(transactions)
        assert 'Guest' not in set(rfm['customer_id'])

    def test_analysis_date_before_purchases_is_rejected(self, transactions):
        with pytest.raises(ValueError, match='precedes'):
            RFMFeatureEngineer().calculate_rfm(transactions, analysis_date='2011-01-01')

    def test_only_guests_is_rejected(self, transactions):
        guests = transactions.assign(customer_id='Guest')
        with pytest.raises(ValueError, match='No identified customers'):
            RFMFeatureEngineer().calculate_rfm(guests)

    def test_missing_revenue_names_invoice(self, transactions):
        transactions.loc[4, 'revenue'] = float('nan')
        with pytest.raises(ValueError, match='536368'):
            RFMFeatureEngineer().calculate_rfm(transactions)

    def test_missing_column(self, transactions):
        with pytest.raises(ValueError, match='revenue'):
            RFMFeatureEngineer().calculate_rfm(transactions.drop(columns=['revenue']))


class TestScoring:
    def test_scores_and_segments(self, transactions):
        scored = RFMFeatureEngineer().score_customers(transactions).set_index('customer_id')

        assert scored['r_score'].tolist() == [4, 5, 1, 2, 3]
        assert scored['f_score'].tolist() == [3, 1, 4, 2, 5]
        assert scored['m_score'].tolist() == [4, 2, 5, 1, 3]
        assert scored['rfm_score'].tolist() == [11, 8, 10, 5, 11]
        assert scored['segment'].tolist() == [
            'Loyal Customers', 'Potential Loyalists', 'Loyal Customers',
            'At Risk', 'Loyal Customers'
        ]

    def test_three_customer_ordering(self):
        rfm = pd.DataFrame({
            'customer_id': ['A', 'B', 'C'],
            'recency': [0.0, 300.0, 150.0],
            'frequency': [10, 1, 5],
            'monetary': [1000.0, 50.0, 500.0],
        })
        engineer = RFMFeatureEngineer()

        warnings = []
        handler_id = logger.add(warnings.append, level='WARNING', format='{message}')
        try:
            scored = engineer.segment_customers(engineer.calculate_rfm_scores(rfm))
        finally:
            logger.remove(handler_id)
        scored = scored.set_index('customer_id')

        assert any('collapse to ranks 1..3' in message for message in warnings)

        for col in ['r_score', 'f_score', 'm_score']:
            assert scored[col].idxmax() == 'A'
        assert scored['rfm_score'].tolist() == [9, 3, 6]
        assert scored['segment'].tolist() == ['Potential Loyalists', 'Lost', 'At Risk']

    def test_ties_broken_by_customer_id(self):
        rfm = pd.DataFrame({
            'customer_id': ['E', 'D', 'C', 'B', 'A'],
            'recency': [5.0] * 5,
            'frequency': [1] * 5,
            'monetary': [10.0] * 5,
        })
        scored = RFMFeatureEngineer().calculate_rfm_scores(rfm)

        assert scored['customer_id'].tolist() == ['A', 'B', 'C', 'D', 'E']
        assert scored['f_score'].tolist() == [1, 2, 3, 4, 5]

    def test_scores_within_range(self, transactions):
        scored = RFMFeatureEngineer().score_customers(transactions)
        for col in ['r_score', 'f_score', 'm_score']:
            assert scored[col].between(1, 5).all()
        assert scored['rfm_score'].between(3, 15).all()

    def test_deterministic(self, transactions):
        engineer = RFMFeatureEngineer()
        first = engineer.score_customers(transactions)
        second = engineer.score_customers(transactions.sample(frac=1, random_state=0))
        pd.testing.assert_frame_equal(first, second)


class TestSegmentAssignment:
    @pytest.mark.parametrize('score, label', [
        (15, 'Champions'),
        (13, 'Champions'),
        (12, 'Loyal Customers'),
        (10, 'Loyal Customers'),
        (7, 'Potential Loyalists'),
        (4, 'At Risk'),
        (3, 'Lost'),
    ])
    def test_threshold_boundaries(self, score, label):
        assert RFMFeatureEngineer().assign_segment(score) == label

    def test_custom_thresholds_are_ordered(self):
        engineer = RFMFeatureEngineer(
            segment_thresholds=[[5, 'Low'], [12, 'High']],
            default_segment='None'
        )
        assert engineer.assign_segment(13) == 'High'
        assert engineer.assign_segment(6) == 'Low'
        assert engineer.assign_segment(4) == 'None'

    def test_segment_profiles(self, transactions):
        engineer = RFMFeatureEngineer()
        profiles = engineer.get_segment_profiles(engineer.score_customers(transactions))

        assert profiles['customer_count'].sum() == 5
        assert profiles.index[0] == 'Loyal Customers'
        assert profiles['customer_percentage'].sum() == pytest.approx(100.0)
