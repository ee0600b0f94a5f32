from flask import Blueprint, request, g, current_app
from flask_jwt_extended import create_access_token

from seatledger import db, bcrypt
from seatledger.models import Owner
from seatledger.schemas import register_schema, login_schema, owner_schema
from seatledger.utils.auth import owner_required
from seatledger.utils.responses import success, error

auth_bp = Blueprint('auth', __name__)


# ------------------ REGISTER ------------------
@auth_bp.route('/register', methods=['POST'])
def register():
    data = register_schema.load(request.get_json(silent=True) or {})

    if Owner.query.filter_by(email=data['email']).first():
        return error('An account with this email already exists', 409, code='conflict')

    owner = Owner(
        name=data['name'],
        email=data['email'],
        password_hash=bcrypt.generate_password_hash(data['password']).decode('utf-8')
    )
    db.session.add(owner)
    db.session.commit()
    current_app.logger.info('Registered owner %s', owner.id)

    return success(owner_schema.dump(owner), 201)


# ------------------ LOGIN ------------------
@auth_bp.route('/login', methods=['POST'])
def login():
    data = login_schema.load(request.get_json(silent=True) or {})

    owner = Owner.query.filter_by(email=data['email']).first()
    if not owner or not bcrypt.check_password_hash(owner.password_hash, data['password']):
        return error('Invalid credentials', 401, code='unauthorized')

    # identity must be a string
    access_token = create_access_token(identity=owner.id, additional_claims={'email': owner.email})
    return success({'accessToken': access_token, 'user': owner_schema.dump(owner)})


# ------------------ PROFILE ------------------
@auth_bp.route('/profile', methods=['GET'])
@owner_required
def get_profile():
    return success(owner_schema.dump(g.owner))
