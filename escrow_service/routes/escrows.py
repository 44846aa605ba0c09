from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from escrow_service.routes import current_actor, get_services

escrow_bp = Blueprint('escrows', __name__)


@escrow_bp.route('/escrows/all', methods=['GET'])
@jwt_required()
def list_all_escrows():
    """
    List every escrow (admin only)
    ---
    tags:
      - Escrows
    security:
      - Bearer: []
    responses:
      200:
        description: List of escrows
      403:
        description: Admin rights required
    """
    escrows = get_services().escrows.list_all_escrows(current_actor())
    return jsonify([e.to_dict() for e in escrows]), 200


@escrow_bp.route('/escrows', methods=['GET'])
@jwt_required()
def list_escrows():
    """
    List escrows the caller is a party to
    ---
    tags:
      - Escrows
    security:
      - Bearer: []
    responses:
      200:
        description: List of escrows
    """
    escrows = get_services().escrows.list_escrows(current_actor())
    return jsonify([e.to_dict() for e in escrows]), 200


@escrow_bp.route('/escrows/<escrow_id>', methods=['GET'])
@jwt_required()
def get_escrow(escrow_id):
    """
    Get an escrow with its line items and disputes
    ---
    tags:
      - Escrows
    parameters:
      - in: path
        name: escrow_id
        required: true
        type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Escrow details
      403:
        description: Not a party to this escrow
      404:
        description: Escrow not found
    """
    escrow = get_services().escrows.get_escrow(escrow_id, current_actor())
    return jsonify(escrow.to_dict(include_disputes=True)), 200


@escrow_bp.route('/escrows', methods=['POST'])
@jwt_required()
def create_escrow():
    """
    Create an escrow as buyer
    ---
    tags:
      - Escrows
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - products
            - seller_id
          properties:
            products:
              type: array
              items:
                type: object
                properties:
                  product_id:
                    type: string
                  quantity:
                    type: integer
            seller_id:
              type: string
            escrow_days:
              type: integer
    security:
      - Bearer: []
    responses:
      201:
        description: Escrow created
      400:
        description: Invalid input
      403:
        description: Only buyers can create escrows
    """
    data = request.get_json(silent=True) or {}
    escrow = get_services().escrows.create_escrow(
        current_actor(),
        seller_id=data.get('seller_id'),
        line_items=data.get('products'),
        escrow_period_days=data.get('escrow_days'),
    )
    return jsonify(escrow.to_dict()), 201


@escrow_bp.route('/escrows/<escrow_id>/status', methods=['PATCH'])
@jwt_required()
def update_escrow_status(escrow_id):
    """
    Move an escrow to a new status
    ---
    tags:
      - Escrows
    parameters:
      - in: path
        name: escrow_id
        required: true
        type: string
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status:
              type: string
              enum: [pending, awaiting_delivery, delivered, completed, disputed, refunded, canceled, expired]
    security:
      - Bearer: []
    responses:
      200:
        description: Status updated
      403:
        description: Not authorized for this transition
      409:
        description: Escrow already in that status or modified concurrently
      422:
        description: No such transition
    """
    data = request.get_json(silent=True) or {}
    escrow = get_services().escrows.transition(escrow_id, current_actor(), data.get('status'))
    return jsonify(escrow.to_dict()), 200


@escrow_bp.route('/escrows/<escrow_id>/expiry', methods=['PATCH'])
@jwt_required()
def update_expiry_date(escrow_id):
    """
    Reset the expiry date to now plus the given days (admin only)
    ---
    tags:
      - Escrows
    parameters:
      - in: path
        name: escrow_id
        required: true
        type: string
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - days
          properties:
            days:
              type: integer
    security:
      - Bearer: []
    responses:
      200:
        description: Expiry updated
      400:
        description: Invalid number of days
      403:
        description: Admin rights required
    """
    data = request.get_json(silent=True) or {}
    escrow = get_services().escrows.extend_expiry(escrow_id, current_actor(), data.get('days'))
    return jsonify(escrow.to_dict()), 200


@escrow_bp.route('/escrows/process-expired', methods=['POST'])
@jwt_required()
def process_expired_escrows():
    """
    Expire overdue escrows and refund their buyers (admin only)
    ---
    tags:
      - Escrows
    security:
      - Bearer: []
    responses:
      200:
        description: Number of escrows processed
      403:
        description: Admin rights required
    """
    count = get_services().sweeper.sweep_expired(actor=current_actor())
    return jsonify({'message': f'Processed {count} expired escrows', 'count': count}), 200
