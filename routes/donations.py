from flask import Blueprint, current_app, request, jsonify, send_from_directory
from flask_jwt_extended import jwt_required, get_jwt

from models import ROLE_DONOR
from services import feed, lifecycle, stats
from utils import current_user_id, json_body, role_required

donations_bp = Blueprint('donations', __name__)


# ==========================================
#  1. CREATE DONATION
# ==========================================
@donations_bp.route('/api/donations', methods=['POST'])
@role_required(ROLE_DONOR)
def create_donation():
    # Multipart when a photo is attached, JSON otherwise
    if request.mimetype == 'multipart/form-data':
        data = request.form
    else:
        data = json_body()

    donation = lifecycle.create_donation(current_user_id(), data, request.files.get('image'))
    return jsonify(donation.to_dict()), 201


# ==========================================
#  2. PUBLIC FEED
# ==========================================
@donations_bp.route('/api/donations/feed', methods=['GET'])
def get_feed():
    """
    Available, unexpired donations.
    Nearest first when lat/lng are supplied, newest first otherwise.
    """
    lat = request.args.get('lat', type=float)
    lng = request.args.get('lng', type=float)
    return jsonify(feed.build_feed(lat=lat, lng=lng)), 200


# ==========================================
#  3. MY DONATIONS
# ==========================================
@donations_bp.route('/api/donations/my-donations', methods=['GET'])
@jwt_required()
def get_my_donations():
    role = get_jwt().get('role')
    donations = lifecycle.list_mine(current_user_id(), role)
    return jsonify([d.to_dict() for d in donations]), 200


# ==========================================
#  4. GLOBAL STATS
# ==========================================
@donations_bp.route('/api/donations/stats/global', methods=['GET'])
def get_global_stats():
    return jsonify(stats.global_stats()), 200


# ==========================================
#  5. SINGLE DONATION
# ==========================================
@donations_bp.route('/api/donations/<int:donation_id>', methods=['GET'])
def get_single_donation(donation_id):
    return jsonify(lifecycle.get_donation(donation_id).to_dict()), 200


# ==========================================
#  6. STATUS TRANSITIONS
# ==========================================
@donations_bp.route('/api/donations/<int:donation_id>/status', methods=['PATCH'])
@jwt_required()
def update_status(donation_id):
    """ Claim (receiver), complete (original donor) or release. """
    data = json_body()
    donation = lifecycle.change_status(
        donation_id, current_user_id(), get_jwt().get('role'), data.get('status'))
    return jsonify(donation.to_dict()), 200


@donations_bp.route('/api/donations/<int:donation_id>/cancel-claim', methods=['PATCH'])
@jwt_required()
def cancel_claim(donation_id):
    donation = lifecycle.release(donation_id, current_user_id())
    return jsonify({'message': 'Order returned to donation pool', 'donation': donation.to_dict()}), 200


# ==========================================
#  7. DELETE DONATION
# ==========================================
@donations_bp.route('/api/donations/<int:donation_id>', methods=['DELETE'])
@role_required(ROLE_DONOR)
def delete_donation(donation_id):
    lifecycle.delete_donation(donation_id, current_user_id())
    return jsonify({'message': 'Donation deleted permanently'}), 200


# ==========================================
#  8. UPLOADED PHOTOS
# ==========================================
@donations_bp.route('/api/uploads/<filename>', methods=['GET'])
def uploaded_image(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
