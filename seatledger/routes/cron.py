from flask import Blueprint

from seatledger.tasks import run_autopay_sweep
from seatledger.utils.auth import cron_secret_required
from seatledger.utils.responses import success

cron_bp = Blueprint('cron', __name__)


# ---------------- SCHEDULED AUTOPAY SWEEP ----------------
@cron_bp.route('/renew-subscriptions', methods=['GET'])
@cron_secret_required
def renew_subscriptions():
    """Owner-agnostic: renews every due autopay subscription system-wide."""
    report = run_autopay_sweep()
    return success(report.to_dict())
