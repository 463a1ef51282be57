from flask import Blueprint, jsonify, current_app

rooms = Blueprint('rooms', __name__)


def _store():
    return current_app.extensions['room_store']


@rooms.route('', methods=['GET'])
def list_rooms():
    """
    Returns a summary of every room held in memory (debug view).
    """
    return jsonify(_store().summaries()), 200


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room_state(room_id):
    """
    Returns the same snapshot connected clients receive in room-update.
    """
    snapshot = _store().snapshot(room_id)
    if not snapshot:
        return jsonify({'error': 'Room not found'}), 404

    return jsonify(snapshot), 200
