from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or Config.CORS_ORIGINS
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One room store per process, shared by socket handlers, routes and the sweeper
    from planit.services.rooms import RoomStore
    store = RoomStore()
    flask_app.extensions['room_store'] = store

    # Import and register blueprints here
    from planit.main import main
    flask_app.register_blueprint(main)

    from planit.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers against this app's store
    from planit.socketio_events import Gateway
    gateway = Gateway(socketio, store, namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))
    gateway.register()
    flask_app.extensions['room_gateway'] = gateway

    from planit.services.rooms.expiry import start_expiry_sweeper
    start_expiry_sweeper(flask_app)

    return flask_app
