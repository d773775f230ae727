from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from services import identity
from utils import current_user_id, json_body

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/api/auth/signup', methods=['POST'])
def signup():
    data = json_body()
    token, user = identity.register(data)
    return jsonify({'token': token, 'user': user.to_dict()}), 201


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    data = json_body()
    token, user = identity.authenticate(data.get('email'), data.get('password'))
    return jsonify({'token': token, 'user': user.to_dict()}), 200


@auth_bp.route('/api/auth/profile', methods=['GET'])
@auth_bp.route('/api/auth/me', methods=['GET'])
@jwt_required()
def get_profile():
    """ Refreshes user data on page reload. """
    user = identity.get_account(current_user_id())
    return jsonify(user.to_dict()), 200


@auth_bp.route('/api/auth/profile', methods=['PATCH'])
@jwt_required()
def update_profile():
    data = json_body()
    user = identity.update_profile(current_user_id(), data)
    return jsonify(user.to_dict()), 200


@auth_bp.route('/api/auth/users/<int:user_id>', methods=['GET'])
def get_public_user(user_id):
    """ Name and organization only; used to label the other side of a pickup. """
    user = identity.get_account(user_id)
    return jsonify(user.to_public_dict()), 200
