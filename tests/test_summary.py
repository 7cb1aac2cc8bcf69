import json
import pytest
from ml.summary import monthly_summary, available_months, month_breakdown, balance_of
from ml.forecast import predict_next_month_expense

SAMPLE = [
    {'date': '2025-04-01', 'type': 'income', 'amount': 1000},
    {'date': '2025-04-15', 'type': 'expense', 'amount': 300},
    {'date': '2025-05-01', 'type': 'income', 'amount': 500},
]


def test_monthly_summary_example():
    summary = {row['month']: row for row in monthly_summary(SAMPLE)}
    assert summary['2025-04'] == {'month': '2025-04', 'income': 1000.0, 'expense': 300.0, 'balance': 700.0}
    assert summary['2025-05'] == {'month': '2025-05', 'income': 500.0, 'expense': 0.0, 'balance': 500.0}


def test_monthly_summary_keeps_first_occurrence_order():
    records = [SAMPLE[2], SAMPLE[0], SAMPLE[1]]
    assert [r['month'] for r in monthly_summary(records)] == ['2025-05', '2025-04']
    assert available_months(records) == ['2025-05', '2025-04']


def test_monthly_summary_ignores_unknown_types():
    records = SAMPLE + [{'date': '2025-04-20', 'type': 'transfer', 'amount': 50}]
    summary = {row['month']: row for row in monthly_summary(records)}
    assert summary['2025-04']['expense'] == 300.0


def test_empty_inputs():
    assert monthly_summary([]) == []
    assert available_months([]) == []
    assert month_breakdown([], '2025-04') == {'income': 0.0, 'expense': 0.0}
    assert balance_of([]) == 0.0
    assert predict_next_month_expense([]) == 0.0


def test_month_breakdown():
    assert month_breakdown(SAMPLE, '2025-04') == {'income': 1000.0, 'expense': 300.0}
    assert month_breakdown(SAMPLE, '2025-06') == {'income': 0.0, 'expense': 0.0}


def test_balance_of():
    assert balance_of(SAMPLE) == 1200.0


def test_forecast_single_month_returns_its_total():
    assert predict_next_month_expense(SAMPLE) == 300.0


def test_forecast_follows_linear_trend():
    records = [
        {'date': '2025-01-05', 'type': 'expense', 'amount': 100},
        {'date': '2025-02-05', 'type': 'expense', 'amount': 200},
        {'date': '2025-03-05', 'type': 'expense', 'amount': 300},
        {'date': '2025-03-06', 'type': 'income', 'amount': 9999},
    ]
    assert predict_next_month_expense(records) == pytest.approx(400.0)


def test_forecast_never_negative():
    records = [
        {'date': '2025-01-05', 'type': 'expense', 'amount': 500},
        {'date': '2025-02-05', 'type': 'expense', 'amount': 10},
    ]
    assert predict_next_month_expense(records) == 0.0


def test_summary_endpoint_with_snapshot(client):
    resp = client.get('/api/monthly-summary', query_string={'data': json.dumps(SAMPLE)})
    assert resp.status_code == 200
    body = resp.get_json()
    assert [m['month'] for m in body['months']] == ['2025-04', '2025-05']
    assert body['availableMonths'] == ['2025-04', '2025-05']
    assert body['selectedMonth'] == '2025-04'
    assert body['breakdown'] == {'income': 1000.0, 'expense': 300.0}
    assert body['projectedExpense'] == 300.0


def test_summary_endpoint_selected_month(client):
    resp = client.get('/api/monthly-summary', query_string={'data': json.dumps(SAMPLE), 'month': '2025-05'})
    assert resp.get_json()['breakdown'] == {'income': 500.0, 'expense': 0.0}


@pytest.mark.parametrize('data', ['not json', '{"a": 1}', '[1, 2]'])
def test_summary_endpoint_rejects_bad_snapshot(client, data):
    assert client.get('/api/monthly-summary', query_string={'data': data}).status_code == 400


def test_summary_endpoint_uses_stored_rows(client, user):
    for row in SAMPLE:
        client.post('/api/transactions', json=dict(row, description='x', userId=user['id']))
    body = client.get('/api/monthly-summary').get_json()
    assert {m['month'] for m in body['months']} == {'2025-04', '2025-05'}


def test_summary_endpoint_without_snapshot_requires_session(client):
    assert client.get('/api/monthly-summary').status_code == 401


def test_rows_without_date_are_left_out():
    records = SAMPLE + [{'type': 'income', 'amount': 5}, {'type': 'expense', 'amount': 7, 'date': ''}]
    assert [m['month'] for m in monthly_summary(records)] == ['2025-04', '2025-05']
    assert monthly_summary([{'type': 'income', 'amount': 5}]) == []


def test_summary_endpoint_months_agree_with_month_list(client):
    resp = client.get('/api/monthly-summary', query_string={'data': json.dumps([{'type': 'income', 'amount': 5}])})
    body = resp.get_json()
    assert body['months'] == []
    assert body['availableMonths'] == []
    assert body['selectedMonth'] is None
