from datetime import date

import pytest

from seatledger.models import RenewalLog, PlatformRenewal
from tests.conftest import reload


@pytest.fixture
def owner(ledger):
    return ledger.owner()


@pytest.fixture
def headers(auth_headers, owner):
    return auth_headers(owner)


@pytest.fixture
def stranger_headers(auth_headers, ledger):
    return auth_headers(ledger.owner('Stranger'))


@pytest.fixture
def seat(ledger, owner):
    subscription = ledger.stack(owner=owner)
    return ledger.seat(subscription, ledger.client(owner, 'Alice'), active_until=date(2025, 3, 31))


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json()['ok'] is True


def test_unknown_endpoint_uses_error_envelope(client):
    response = client.get('/nope')

    assert response.status_code == 404
    assert response.get_json() == {'ok': False, 'error': 'The endpoint /nope does not exist.', 'code': 'not_found'}


def test_protected_endpoints_require_a_token(client, seat):
    response = client.post(f'/client-subscriptions/{seat.id}/renew', json={'amountPaid': 10})

    assert response.status_code == 401
    assert response.get_json()['ok'] is False


# ------------------ AUTH ------------------
def test_register_login_and_profile(client):
    response = client.post('/auth/register', json={
        'name': 'Reseller', 'email': 'me@example.com', 'password': 'correct horse'
    })
    assert response.status_code == 201
    assert 'password' not in response.get_json()['data']

    duplicate = client.post('/auth/register', json={
        'name': 'Again', 'email': 'me@example.com', 'password': 'correct horse'
    })
    assert duplicate.status_code == 409

    bad_login = client.post('/auth/login', json={'email': 'me@example.com', 'password': 'wrong password'})
    assert bad_login.status_code == 401

    login = client.post('/auth/login', json={'email': 'me@example.com', 'password': 'correct horse'})
    assert login.status_code == 200
    token = login.get_json()['data']['accessToken']

    profile = client.get('/auth/profile', headers={'Authorization': f'Bearer {token}'})
    assert profile.status_code == 200
    assert profile.get_json()['data']['email'] == 'me@example.com'


def test_register_validates_payload(client):
    response = client.post('/auth/register', json={'name': 'x', 'email': 'not-an-email', 'password': 'short'})

    body = response.get_json()
    assert response.status_code == 422
    assert set(body['fields']) == {'email', 'password'}


# ------------------ RENEWALS ------------------
def test_renew_seat_endpoint(client, headers, seat):
    response = client.post(f'/client-subscriptions/{seat.id}/renew', headers=headers,
                           json={'amountPaid': 10, 'months': 2, 'notes': 'cash'})

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['seat']['activeUntil'] == '2025-05-31'
    assert data['log']['amountPaid'] == 10.0
    assert data['log']['periodStart'] == '2025-03-31'
    assert data['log']['periodEnd'] == '2025-05-31'
    assert data['log']['paidOn'] == date.today().isoformat()
    assert data['log']['monthsRenewed'] == 2
    assert reload(seat).active_until == date(2025, 5, 31)


@pytest.mark.parametrize('payload, field', [
    ({'amountPaid': 0}, 'amountPaid'),
    ({'amountPaid': -3}, 'amountPaid'),
    ({'amountPaid': 'lots'}, 'amountPaid'),
    ({'amountPaid': 10000000000}, 'amountPaid'),
    ({'amountPaid': 10, 'months': 0}, 'months'),
    ({'amountPaid': 10, 'months': '2'}, 'months'),
])
def test_renew_seat_rejects_invalid_input(client, headers, seat, payload, field):
    response = client.post(f'/client-subscriptions/{seat.id}/renew', headers=headers, json=payload)

    body = response.get_json()
    assert response.status_code == 422
    assert body['ok'] is False
    assert field in body['fields']
    assert RenewalLog.query.count() == 0


def test_renew_seat_not_found(client, headers, stranger_headers, seat):
    missing = client.post('/client-subscriptions/missing-seat/renew', headers=headers, json={'amountPaid': 10})
    foreign = client.post(f'/client-subscriptions/{seat.id}/renew', headers=stranger_headers,
                          json={'amountPaid': 10})

    assert missing.status_code == 404
    assert missing.get_json()['code'] == 'not_found'
    assert foreign.status_code == 404
    assert reload(seat).active_until == date(2025, 3, 31)


def test_bulk_renew_endpoint_reports_each_item(client, headers, seat):
    response = client.post('/client-subscriptions/bulk-renew', headers=headers, json={
        'months': 1,
        'items': [
            {'seatId': seat.id, 'amountPaid': 10},
            {'seatId': 'missing-seat'},
        ]
    })

    assert response.status_code == 201
    data = response.get_json()['data']
    assert (data['total'], data['renewed'], data['failed']) == (2, 1, 1)
    first, second = data['results']
    assert first['ok'] is True
    assert first['seat']['activeUntil'] == '2025-04-30'
    assert second == {
        'seatId': 'missing-seat',
        'ok': False,
        'error': {'code': 'not_found', 'message': 'Seat missing-seat not found'},
    }


def test_bulk_renew_requires_items(client, headers):
    response = client.post('/client-subscriptions/bulk-renew', headers=headers, json={'items': []})

    assert response.status_code == 422
    assert 'items' in response.get_json()['fields']


def test_renew_platform_subscription_endpoint(client, headers, stranger_headers, ledger, owner):
    subscription = ledger.stack(owner=owner, cost='12.50', active_until=date(2025, 1, 31))

    response = client.post(f'/subscriptions/{subscription.id}/renew', headers=headers, json={})

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['subscription']['activeUntil'] == '2025-02-28'
    assert data['log']['amountPaid'] == 12.5

    foreign = client.post(f'/subscriptions/{subscription.id}/renew',
                          headers=stranger_headers, json={})
    assert foreign.status_code == 404
    assert PlatformRenewal.query.count() == 1


# ------------------ CRON ------------------
def test_cron_sweep_endpoint(client, ledger):
    subscription = ledger.stack(is_autopayable=True, active_until=date(2025, 3, 1))

    response = client.get('/cron/renew-subscriptions')

    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['processed'] == 1
    assert data['renewals'][0]['subscriptionId'] == subscription.id
    assert reload(subscription).active_until == date(2025, 4, 1)


def test_cron_sweep_checks_secret_when_configured(app, client, ledger):
    app.config['CRON_SECRET'] = 's3cret'
    subscription = ledger.stack(is_autopayable=True, active_until=date(2025, 3, 1))

    denied = client.get('/cron/renew-subscriptions', headers={'Authorization': 'Bearer wrong'})
    assert denied.status_code == 401
    assert reload(subscription).active_until == date(2025, 3, 1)

    allowed = client.get('/cron/renew-subscriptions', headers={'Authorization': 'Bearer s3cret'})
    assert allowed.status_code == 200


# ------------------ ANALYTICS ------------------
def test_analytics_endpoints(client, headers, ledger, owner, seat):
    ledger.client_payment(seat, 10)

    break_even = client.get('/analytics/break-even', headers=headers).get_json()['data']
    ranking = client.get('/analytics/clients', headers=headers).get_json()['data']
    receivables = client.get('/analytics/receivables?days=5', headers=headers).get_json()['data']
    summary = client.get('/analytics/summary', headers=headers).get_json()['data']
    trends = client.get('/analytics/trends?scale=daily', headers=headers).get_json()['data']
    discipline = client.get('/analytics/discipline', headers=headers).get_json()['data']

    assert break_even[0]['revenue'] == 10.0
    assert ranking['clients'][0]['clientName'] == 'Alice'
    assert ranking['totalRevenue'] == 10.0
    assert receivables['lookaheadDays'] == 5
    assert summary['totalPayments'] == 1
    assert len(trends) == 30
    assert discipline['totalPayments'] == 1


def test_receivables_rejects_negative_lookahead(client, headers):
    response = client.get('/analytics/receivables?days=-1', headers=headers)

    assert response.status_code == 422
    assert 'days' in response.get_json()['fields']


def test_history_endpoint(client, headers, ledger, seat):
    ledger.client_payment(seat, 10, paid_on=date(2025, 3, 1))
    ledger.platform_payment(seat.subscription, 6, paid_on=date(2025, 3, 2))

    response = client.get('/analytics/history?type=income&pageSize=5&ignored=1', headers=headers)

    data = response.get_json()['data']
    assert response.status_code == 200
    assert data['totalCount'] == 1
    assert data['pageSize'] == 5
    assert data['rows'][0]['clientName'] == 'Alice'


@pytest.mark.parametrize('query, field', [
    ('type=refund', 'type'),
    ('pageSize=0', 'pageSize'),
    ('dateFrom=yesterday', 'dateFrom'),
])
def test_history_endpoint_validates_query(client, headers, query, field):
    response = client.get(f'/analytics/history?{query}', headers=headers)

    assert response.status_code == 422
    assert field in response.get_json()['fields']
