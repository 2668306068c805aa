from datetime import datetime

from flask import Blueprint, jsonify
from flask_jwt_extended import current_user

from app.errors import ValidationError
from app.policy import authorize
from app.services import bank_requests, inventory
from app.validation import get_json_object, text_field, validate_blood_type

# Define Blueprint for the blood bank (stock + bank requests)
blood_bank_bp = Blueprint('blood_bank_bp', __name__)


# GET stock levels aggregated from Available units
@blood_bank_bp.route('/stock', methods=['GET'])
@authorize('stock.view')
def get_stock():
    return jsonify({'success': True, 'data': inventory.stock_levels()}), 200


# PUT add or subtract units
@blood_bank_bp.route('/stock', methods=['PUT'])
@authorize('stock.update')
def update_stock():
    data = get_json_object()

    action = data.get('action')
    blood_type = data.get('blood_type')
    quantity = data.get('quantity')

    if action == 'add':
        donation_date = None
        if data.get('donation_date'):
            try:
                donation_date = datetime.fromisoformat(data['donation_date'])
            except (TypeError, ValueError):
                raise ValidationError('donation_date must be an ISO 8601 date')
        inventory.add_units(
            blood_type,
            quantity,
            donor_id=data.get('donor_id'),
            manual_donor_name=text_field(data, 'manual_donor_name') or None,
            manual_donor_phone=text_field(data, 'manual_donor_phone') or None,
            donation_date=donation_date,
            added_by=current_user.id,
        )
    elif action == 'subtract':
        inventory.subtract_units(blood_type, quantity, removed_by=current_user.id)
    elif action == 'set':
        raise ValidationError('Set action is not supported in granular tracking mode. Please use Add or Remove.')
    else:
        raise ValidationError('Action must be add or subtract')

    return jsonify({
        'success': True,
        'data': {
            'blood_type': blood_type,
            'quantity': quantity,
            'action': action,
            'stock': inventory.stock_levels(),
        },
    }), 200


# GET Available units of one blood type with their donors
@blood_bank_bp.route('/donors/<path:blood_type>', methods=['GET'])
@authorize('stock.units_by_type')
def get_units_by_blood_type(blood_type):
    if not validate_blood_type(blood_type):
        raise ValidationError('Please provide a valid blood type')
    units = inventory.available_units(blood_type)
    return jsonify({'success': True, 'count': len(units), 'data': [unit.to_dict() for unit in units]}), 200


# POST a new bank request
@blood_bank_bp.route('/requests', methods=['POST'])
@authorize('bank_request.create')
def create_request():
    data = get_json_object()
    bank_request = bank_requests.create_bank_request(current_user, data)
    return jsonify({'success': True, 'data': bank_request.to_dict()}), 201


# GET bank requests (own requests, or all for admins)
@blood_bank_bp.route('/requests', methods=['GET'])
@authorize('bank_request.list')
def get_requests():
    requests = bank_requests.list_bank_requests(current_user)
    return jsonify({'success': True, 'count': len(requests), 'data': [r.to_dict() for r in requests]}), 200


# PUT approve or reject a bank request
@blood_bank_bp.route('/requests/<int:id>', methods=['PUT'])
@authorize('bank_request.resolve')
def update_request_status(id):
    data = get_json_object(required=False)
    if not data or 'status' not in data:
        raise ValidationError('Missing required field: status')
    bank_request = bank_requests.resolve_bank_request(id, data['status'], current_user)
    return jsonify({
        'success': True,
        'message': f'Request marked as {bank_request.status}',
        'data': bank_request.to_dict(),
    }), 200


# PUT mark an approved request as received
@blood_bank_bp.route('/requests/<int:id>/complete', methods=['PUT'])
@authorize('bank_request.complete')
def complete_request(id):
    bank_request = bank_requests.complete_bank_request(id, current_user)
    return jsonify({
        'success': True,
        'message': 'Blood unit(s) marked as received. Request completed.',
        'data': bank_request.to_dict(),
    }), 200


# DELETE a finished bank request from history
@blood_bank_bp.route('/requests/<int:id>', methods=['DELETE'])
@authorize('bank_request.delete')
def delete_request(id):
    bank_requests.delete_bank_request(id, current_user)
    return jsonify({'success': True, 'message': 'Record successfully removed from history', 'data': {}}), 200
