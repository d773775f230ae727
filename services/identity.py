from flask import current_app
from flask_jwt_extended import create_access_token
from sqlalchemy.exc import IntegrityError

from errors import InvalidCredentials, NotFound, ValidationError
from extensions import db
from models import ROLES, User

PROFILE_FIELDS = ('full_name', 'organization_name', 'phone', 'address')


def _require_text(data, fields):
    for field in fields:
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f'{field} must be a string')


def issue_token(user):
    """Bearer token carrying the account id (identity) and its role (claim)."""
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


def register(data):
    required_fields = ['email', 'password', 'full_name', 'role']
    for field in required_fields:
        if not str(data.get(field) or '').strip():
            raise ValidationError(f'Missing required field: {field}')
    _require_text(data, required_fields + list(PROFILE_FIELDS))

    email = str(data['email']).strip().lower()
    role = str(data['role']).strip().lower()
    if role not in ROLES:
        raise ValidationError('Role must be either donor or receiver')

    if User.query.filter_by(email=email).first():
        raise ValidationError('Email already exists')

    user = User(
        email=email,
        full_name=str(data['full_name']).strip(),
        organization_name=data.get('organization_name'),
        phone=data.get('phone'),
        address=data.get('address'),
        role=role,
    )
    user.set_password(data['password'])

    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError('Email already exists')
    current_app.logger.info("Registered %s account %s", role, user.id)
    return issue_token(user), user


def authenticate(email, password):
    # Wrong types fail like wrong values
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise InvalidCredentials()

    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None or not user.check_password(password):
        raise InvalidCredentials()
    return issue_token(user), user


def get_account(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


def update_profile(user_id, data):
    """Merges the editable profile fields; email, role and password are never touched."""
    user = get_account(user_id)
    _require_text(data, PROFILE_FIELDS)
    if 'full_name' in data and not str(data['full_name'] or '').strip():
        raise ValidationError('full_name cannot be empty')

    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])

    db.session.commit()
    return user
