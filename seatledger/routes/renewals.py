from flask import Blueprint, request, g

from seatledger.schemas import (
    renew_seat_schema, bulk_renew_schema, renew_platform_schema,
    seat_schema, renewal_log_schema, subscription_schema, platform_renewal_schema
)
from seatledger.services.renewals import (
    renew_client_subscription, renew_bulk_client_subscriptions, renew_platform_subscription
)
from seatledger.utils.auth import owner_required
from seatledger.utils.responses import success

renewals_bp = Blueprint('renewals', __name__)


def _seat_renewal_payload(renewal):
    return {
        'seat': seat_schema.dump(renewal.seat),
        'log': renewal_log_schema.dump(renewal.log),
    }


# ---------------- RENEW ONE SEAT (client pays me) ----------------
@renewals_bp.route('/client-subscriptions/<seat_id>/renew', methods=['POST'])
@owner_required
def renew_seat(seat_id):
    data = renew_seat_schema.load(request.get_json(silent=True) or {})

    renewal = renew_client_subscription(
        seat_id,
        amount_paid=data['amount_paid'],
        months=data['months'],
        notes=data['notes'],
        owner_id=g.owner.id
    )
    return success(_seat_renewal_payload(renewal), 201)


# ---------------- BULK RENEW SEATS ----------------
@renewals_bp.route('/client-subscriptions/bulk-renew', methods=['POST'])
@owner_required
def bulk_renew_seats():
    data = bulk_renew_schema.load(request.get_json(silent=True) or {})

    result = renew_bulk_client_subscriptions(data['items'], months=data['months'], owner_id=g.owner.id)

    results = []
    for outcome in result.outcomes:
        if outcome.ok:
            results.append({'seatId': outcome.seat_id, 'ok': True, **_seat_renewal_payload(outcome.renewal)})
        else:
            results.append({'seatId': outcome.seat_id, 'ok': False, 'error': outcome.error.to_dict()})

    return success({
        'total': result.total,
        'renewed': result.renewed,
        'failed': result.failed,
        'results': results,
    }, 201)


# ---------------- RENEW PLATFORM SUBSCRIPTION (I pay the platform) ----------------
@renewals_bp.route('/subscriptions/<subscription_id>/renew', methods=['POST'])
@owner_required
def renew_subscription(subscription_id):
    data = renew_platform_schema.load(request.get_json(silent=True) or {})

    renewal = renew_platform_subscription(
        subscription_id,
        amount_paid=data['amount_paid'],
        notes=data['notes'],
        owner_id=g.owner.id
    )
    return success({
        'subscription': subscription_schema.dump(renewal.subscription),
        'log': platform_renewal_schema.dump(renewal.log),
    }, 201)
