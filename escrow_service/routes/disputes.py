from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from escrow_service.routes import current_actor, get_services

dispute_bp = Blueprint('disputes', __name__)


@dispute_bp.route('/disputes/all', methods=['GET'])
@jwt_required()
def list_all_disputes():
    """
    List every dispute, pending first (admin only)
    ---
    tags:
      - Disputes
    security:
      - Bearer: []
    responses:
      200:
        description: List of disputes
      403:
        description: Admin rights required
    """
    disputes = get_services().disputes.list_all_disputes(current_actor())
    return jsonify([d.to_dict() for d in disputes]), 200


@dispute_bp.route('/disputes', methods=['GET'])
@jwt_required()
def list_disputes():
    """
    List disputes the caller raised or whose escrow they are party to
    ---
    tags:
      - Disputes
    security:
      - Bearer: []
    responses:
      200:
        description: List of disputes
    """
    disputes = get_services().disputes.list_disputes(current_actor())
    return jsonify([d.to_dict() for d in disputes]), 200


@dispute_bp.route('/disputes/<dispute_id>', methods=['GET'])
@jwt_required()
def get_dispute(dispute_id):
    """
    Get a dispute with its comments
    ---
    tags:
      - Disputes
    parameters:
      - in: path
        name: dispute_id
        required: true
        type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Dispute details
      403:
        description: Not authorized to view this dispute
      404:
        description: Dispute not found
    """
    dispute = get_services().disputes.get_dispute(dispute_id, current_actor())
    return jsonify(dispute.to_dict(include_comments=True)), 200


@dispute_bp.route('/disputes', methods=['POST'])
@jwt_required()
def create_dispute():
    """
    Open a dispute on an escrow
    ---
    tags:
      - Disputes
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - escrow_id
            - reason
          properties:
            escrow_id:
              type: string
            reason:
              type: string
            evidence:
              type: array
              items:
                type: string
    security:
      - Bearer: []
    responses:
      201:
        description: Dispute opened, escrow is now disputed
      403:
        description: Not a party to this escrow
      409:
        description: Dispute already open or escrow not disputable
    """
    data = request.get_json(silent=True) or {}
    if not data.get('escrow_id'):
        return jsonify({'success': False, 'error_code': 'VALIDATION_ERROR',
                        'message': 'Escrow ID and reason are required'}), 400
    dispute = get_services().disputes.open_dispute(
        data['escrow_id'],
        current_actor(),
        reason=data.get('reason'),
        evidence=data.get('evidence'),
    )
    return jsonify(dispute.to_dict()), 201


@dispute_bp.route('/disputes/<dispute_id>/resolve', methods=['PATCH'])
@jwt_required()
def resolve_dispute(dispute_id):
    """
    Resolve or reject a pending dispute (admin only)
    ---
    tags:
      - Disputes
    parameters:
      - in: path
        name: dispute_id
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
              enum: [resolved, rejected]
            admin_notes:
              type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Dispute closed and escrow settled
      400:
        description: Invalid outcome
      403:
        description: Admin rights required
      409:
        description: Dispute already closed
    """
    data = request.get_json(silent=True) or {}
    dispute = get_services().disputes.resolve_dispute(
        dispute_id,
        current_actor(),
        outcome=data.get('status'),
        admin_notes=data.get('admin_notes'),
    )
    return jsonify(dispute.to_dict()), 200


@dispute_bp.route('/disputes/<dispute_id>/comments', methods=['GET'])
@jwt_required()
def get_comments(dispute_id):
    """
    List a dispute's comments, oldest first
    ---
    tags:
      - Disputes
    parameters:
      - in: path
        name: dispute_id
        required: true
        type: string
    security:
      - Bearer: []
    responses:
      200:
        description: List of comments
      403:
        description: Not authorized to view this dispute
    """
    comments = get_services().disputes.list_comments(dispute_id, current_actor())
    return jsonify([c.to_dict() for c in comments]), 200


@dispute_bp.route('/disputes/<dispute_id>/comments', methods=['POST'])
@jwt_required()
def add_comment(dispute_id):
    """
    Comment on a dispute
    ---
    tags:
      - Disputes
    parameters:
      - in: path
        name: dispute_id
        required: true
        type: string
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - content
          properties:
            content:
              type: string
            attachments:
              type: array
              items:
                type: string
    security:
      - Bearer: []
    responses:
      201:
        description: Comment added
      403:
        description: Not authorized to comment on this dispute
    """
    data = request.get_json(silent=True) or {}
    comment = get_services().disputes.add_comment(
        dispute_id,
        current_actor(),
        content=data.get('content'),
        attachments=data.get('attachments'),
    )
    return jsonify(comment.to_dict()), 201
