try:
    from backend.doodle.server import create_app
except ImportError:  # pragma: no cover
    from doodle.server import create_app

app, socketio = create_app()
