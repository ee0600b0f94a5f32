"""
Shared pytest fixtures: an app on in-memory SQLite with a fresh schema per
test, a test client, bearer-token headers and a small ledger factory.
"""
from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from seatledger import create_app, db
from seatledger.config import TestingConfig
from seatledger.models import (
    Owner, Platform, Plan, Subscription, Client, ClientSubscription, RenewalLog, PlatformRenewal
)

TODAY = date(2025, 3, 15)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class LedgerFactory:
    """Creates committed ledger rows with sensible defaults."""

    def _save(self, obj):
        db.session.add(obj)
        db.session.commit()
        return obj

    def owner(self, name='Reseller', email=None):
        email = email or f'{name.lower().replace(" ", ".")}@example.com'
        return self._save(Owner(name=name, email=email, password_hash='not-a-real-hash'))

    def platform(self, owner, name='StreamFlix'):
        return self._save(Platform(owner_id=owner.id, name=name))

    def plan(self, platform, name='Premium', cost='10.00', max_seats=None):
        return self._save(Plan(
            owner_id=platform.owner_id,
            platform_id=platform.id,
            name=name,
            cost=Decimal(cost),
            max_seats=max_seats
        ))

    def subscription(self, plan, label='Family 1', active_until=date(2025, 3, 31),
                     status='active', is_autopayable=False, start_date=date(2025, 1, 1)):
        return self._save(Subscription(
            owner_id=plan.owner_id,
            plan_id=plan.id,
            label=label,
            start_date=start_date,
            active_until=active_until,
            status=status,
            is_autopayable=is_autopayable
        ))

    def client(self, owner, name='Alice', phone=None):
        return self._save(Client(owner_id=owner.id, name=name, phone=phone))

    def seat(self, subscription, client, custom_price='5.00', active_until=date(2025, 3, 31),
             status='active', start_date=date(2025, 1, 1)):
        return self._save(ClientSubscription(
            subscription_id=subscription.id,
            client_id=client.id,
            custom_price=Decimal(custom_price),
            start_date=start_date,
            active_until=active_until,
            status=status
        ))

    def client_payment(self, seat, amount, paid_on=TODAY, due_on=None):
        due_on = due_on or paid_on
        return self._save(RenewalLog(
            client_subscription_id=seat.id,
            amount_paid=Decimal(str(amount)),
            expected_amount=Decimal(str(amount)),
            period_start=due_on,
            period_end=due_on,
            paid_on=paid_on,
            due_on=due_on,
            months_renewed=1
        ))

    def platform_payment(self, subscription, amount, paid_on=TODAY):
        return self._save(PlatformRenewal(
            subscription_id=subscription.id,
            amount_paid=Decimal(str(amount)),
            period_start=paid_on,
            period_end=paid_on,
            paid_on=paid_on
        ))

    def stack(self, owner=None, cost='10.00', max_seats=None, **subscription_kwargs):
        """Owner -> platform -> plan -> subscription in one go."""
        owner = owner or self.owner()
        platform = self.platform(owner)
        plan = self.plan(platform, cost=cost, max_seats=max_seats)
        return self.subscription(plan, **subscription_kwargs)


@pytest.fixture
def ledger(app):
    return LedgerFactory()


@pytest.fixture
def auth_headers(app):
    def make(owner):
        token = create_access_token(identity=owner.id)
        return {'Authorization': f'Bearer {token}'}
    return make


def reload(obj):
    """Re-read a row from the database, discarding anything cached in the session."""
    db.session.expire_all()
    return db.session.get(type(obj), obj.id)
