from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required

from services import conversations
from utils import current_user_id, json_body

messaging_bp = Blueprint('messaging', __name__)


# ==========================================
#  1. INBOX (one entry per donation)
# ==========================================
@messaging_bp.route('/api/messages/conversations', methods=['GET'])
@jwt_required()
def get_conversations():
    return jsonify(conversations.list_conversations(current_user_id())), 200


# ==========================================
#  2. THREAD FOR A DONATION
# ==========================================
@messaging_bp.route('/api/messages/<int:donation_id>', methods=['GET'])
@jwt_required()
def get_thread(donation_id):
    """ Oldest first; clients poll this while a chat is open. """
    return jsonify([m.to_dict() for m in conversations.list_thread(donation_id)]), 200


# ==========================================
#  3. SEND MESSAGE
# ==========================================
@messaging_bp.route('/api/messages', methods=['POST'])
@jwt_required()
def send_message():
    data = json_body()
    message = conversations.send_message(current_user_id(), data)
    return jsonify(message.to_dict()), 201
