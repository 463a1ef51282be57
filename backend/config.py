import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated list of browser origins allowed to talk to the server
    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGIN', 'http://localhost:5173').split(',') if o.strip()]
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/')
    # Rooms are dropped once they are older than this, regardless of activity
    ROOM_TTL_HOURS = int(os.environ.get('ROOM_TTL_HOURS', '12'))
    # Expiration sweep interval (seconds). 0 disables.
    ROOM_SWEEP_INTERVAL_SEC = int(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '600'))
    # Reject votes that are not one of the room's card values
    ENFORCE_CARD_VALUES = os.environ.get('ENFORCE_CARD_VALUES', '1') not in ('0', 'false', 'False')
    PORT = int(os.environ.get('PORT', '3001'))
