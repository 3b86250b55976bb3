# api/subscribe.py
"""
Waitlist subscription API
"""

from flask import Blueprint, request, jsonify, current_app
import logging

from core.errors import ValidationError, DuplicateError, StorageError

subscribe_bp = Blueprint('subscribe', __name__)
logger = logging.getLogger(__name__)

VALIDATION_MESSAGES = {
    ValidationError.MISSING: 'Email is required',
    ValidationError.MALFORMED: 'Invalid email',
}


@subscribe_bp.route('/api/subscribe', methods=['POST'])
def subscribe():
    """
    Add an email to the waiting list and send the welcome message
    """
    data = request.get_json(silent=True) or {}
    email = data.get('email') if isinstance(data, dict) else None

    try:
        result = current_app.subscription_service.subscribe(email)
    except ValidationError as e:
        return jsonify({'error': VALIDATION_MESSAGES[e.reason]}), 400
    except DuplicateError:
        return jsonify({'error': 'Already subscribed'}), 400
    except StorageError as e:
        logger.error(f"Subscription storage error: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify({'message': result.message}), 201
