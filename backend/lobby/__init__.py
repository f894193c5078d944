from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from lobby.main import main
    flask_app.register_blueprint(main)

    from lobby.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Session event hooks feeding the room counter
    import lobby.services.rooms.stats  # noqa: F401

    from lobby.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    # Flask-Login user loader
    from lobby.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('cleanup-rooms')
    @click.option('--dry-run', is_flag=True, help='Only list the rooms that would be deleted.')
    def cleanup_rooms_command(dry_run):
        """Deletes rooms idle past the waiting window (cron entry point)."""
        from lobby.services.rooms.sweeper import select_stale_rooms, sweep_stale_rooms
        with flask_app.app_context():
            if dry_run:
                for room in select_stale_rooms():
                    print(f"{room.id} players={room.player_count} waiting_since={room.waiting_since.isoformat()}")
                return
            result = sweep_stale_rooms()
            print(f"selected={result['selected']} deleted={result['deleted']} failed={len(result['failed'])}")

    @click.command('delete-room')
    @click.argument('room_id')
    def delete_room_command(room_id):
        """Deletes a room and its players."""
        from lobby.services.rooms.sweeper import delete_room
        with flask_app.app_context():
            if delete_room(room_id):
                print(f'Deleted room {room_id}.')
            else:
                print(f'No room found with id: {room_id!r}')

    @click.command('room-stats')
    def room_stats_command():
        """Prints the running room count."""
        from lobby.services.rooms.stats import get_room_count
        with flask_app.app_context():
            print(f"rooms={get_room_count()}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(cleanup_rooms_command)
    flask_app.cli.add_command(delete_room_command)
    flask_app.cli.add_command(room_stats_command)

    # Started here so any server importing the app runs the sweep
    from lobby.services.rooms.sweeper import start_cleanup_scheduler
    start_cleanup_scheduler(flask_app)

    return flask_app
