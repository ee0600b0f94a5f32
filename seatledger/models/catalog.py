from seatledger import db
from datetime import datetime
import uuid


class Platform(db.Model):
    __tablename__ = 'platforms'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.String(36), db.ForeignKey('owners.id'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Plan(db.Model):
    """A priced tier of a platform. `cost` is what the owner pays per month."""
    __tablename__ = 'plans'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = db.Column(db.String(36), db.ForeignKey('owners.id'), nullable=False, index=True)
    platform_id = db.Column(db.String(36), db.ForeignKey('platforms.id'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    cost = db.Column(db.Numeric(12, 2), nullable=False)
    max_seats = db.Column(db.Integer)  # None = unlimited
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    platform = db.relationship('Platform', backref='plans')
