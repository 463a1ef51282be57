from datetime import timedelta
from typing import List

from planit import socketio


def sweep_expired_rooms(app) -> List[str]:
    """Run one expiration pass and close the socket groups of expired rooms.

    Rooms go once their age exceeds ROOM_TTL_HOURS, whatever their activity.
    Actions that still reference a swept room resolve as "Room not found".
    """
    store = app.extensions['room_store']
    ttl = timedelta(hours=int(app.config.get('ROOM_TTL_HOURS', 12)))
    namespace = app.config.get('SOCKETIO_NAMESPACE', '/')
    expired = store.expire_rooms(ttl)
    for room_id in expired:
        socketio.close_room(room_id, namespace=namespace)
        app.logger.info(f"[sweep] room={room_id} expired after {ttl}")
    return expired


def start_expiry_sweeper(app) -> None:
    """Start the periodic expiration sweep as a background task.

    - No-ops in TESTING mode unless ENABLE_SWEEPER_IN_TESTS is set
    - No-ops when ROOM_SWEEP_INTERVAL_SEC is 0
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SWEEPER_IN_TESTS'):
        return
    interval = int(app.config.get('ROOM_SWEEP_INTERVAL_SEC', 0))
    if interval <= 0:
        return

    def _worker(delay: int):
        while True:
            socketio.sleep(delay)
            with app.app_context():
                try:
                    sweep_expired_rooms(app)
                except Exception:
                    # Keep sweeping on the next tick
                    app.logger.exception("[sweep-failed]")

    app.logger.info(f"[sweep-start] interval={interval}s ttl={app.config.get('ROOM_TTL_HOURS')}h")
    socketio.start_background_task(_worker, interval)
