from flask import Blueprint, request, g, current_app

from seatledger.schemas import history_query_schema
from seatledger.services import analytics
from seatledger.utils.auth import owner_required
from seatledger.utils.responses import success, error

analytics_bp = Blueprint('analytics', __name__)


# ---------------- BREAK-EVEN ----------------
@analytics_bp.route('/break-even', methods=['GET'])
@owner_required
def break_even():
    rows = analytics.break_even(g.owner.id)
    return success([row.to_dict() for row in rows])


# ---------------- CLIENT RANKING (LTV) ----------------
@analytics_bp.route('/clients', methods=['GET'])
@owner_required
def client_ranking():
    clients, total_revenue = analytics.client_ranking(g.owner.id)
    return success({
        'clients': [c.to_dict() for c in clients],
        'totalRevenue': float(total_revenue),
    })


# ---------------- RECEIVABLES (OVERDUE / EXPIRING SOON) ----------------
@analytics_bp.route('/receivables', methods=['GET'])
@owner_required
def receivables():
    days = request.args.get('days', type=int)
    if days is None:
        days = current_app.config.get('RECEIVABLES_LOOKAHEAD_DAYS', 3)
    if days < 0:
        return error('Validation error', 422, fields={'days': ['Must be 0 or greater']}, code='invalid_input')
    return success(analytics.receivables(g.owner.id, lookahead_days=days))


# ---------------- SUMMARY KPIs ----------------
@analytics_bp.route('/summary', methods=['GET'])
@owner_required
def summary():
    return success(analytics.summary(g.owner.id))


# ---------------- REVENUE VS COST TRENDS ----------------
@analytics_bp.route('/trends', methods=['GET'])
@owner_required
def trends():
    scale = request.args.get('scale', 'monthly')
    return success(analytics.trends(g.owner.id, scale=scale))


# ---------------- PAYMENT DISCIPLINE ----------------
@analytics_bp.route('/discipline', methods=['GET'])
@owner_required
def discipline():
    return success(analytics.discipline(
        g.owner.id,
        plan_id=request.args.get('planId'),
        subscription_id=request.args.get('subscriptionId'),
        client_id=request.args.get('clientId')
    ))


# ---------------- LEDGER HISTORY (INCOME + COST) ----------------
@analytics_bp.route('/history', methods=['GET'])
@owner_required
def history():
    query = history_query_schema.load(request.args.to_dict())
    return success(analytics.history(g.owner.id, **query))
