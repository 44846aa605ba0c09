from flask import Blueprint, jsonify, request
from flask_jwt_extended import jwt_required

from escrow_service.routes import current_actor, get_services

wallet_bp = Blueprint('wallet', __name__)


@wallet_bp.route('/wallet/balance', methods=['GET'])
@jwt_required()
def get_wallet_balance():
    """
    Get the caller's wallet balance
    ---
    tags:
      - Wallet
    security:
      - Bearer: []
    responses:
      200:
        description: Current balance
    """
    balance = get_services().ledger.get_balance(current_actor().user_id)
    return jsonify({'balance': float(balance)}), 200


@wallet_bp.route('/wallet/withdraw', methods=['POST'])
@jwt_required()
def withdraw_funds():
    """
    Withdraw funds to an external account
    ---
    tags:
      - Wallet
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - amount
            - account_details
          properties:
            amount:
              type: number
            account_details:
              type: string
    security:
      - Bearer: []
    responses:
      200:
        description: Withdrawal successful
      400:
        description: Invalid amount or missing account details
      402:
        description: Insufficient funds
    """
    data = request.get_json(silent=True) or {}
    receipt = get_services().ledger.withdraw(
        current_actor().user_id,
        data.get('amount'),
        data.get('account_details'),
    )
    return jsonify({
        'success': True,
        'message': 'Withdrawal successful',
        'transaction': receipt,
    }), 200


@wallet_bp.route('/wallet/transactions', methods=['GET'])
@jwt_required()
def list_wallet_transactions():
    """
    List the caller's ledger movements, newest first
    ---
    tags:
      - Wallet
    security:
      - Bearer: []
    responses:
      200:
        description: List of wallet transactions
    """
    entries = get_services().ledger.history(current_actor().user_id)
    return jsonify([e.to_dict() for e in entries]), 200
