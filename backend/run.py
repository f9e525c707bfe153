from highpick import create_app, socketio
from highpick.services.rounds import get_round_machine

app = create_app()

if __name__ == '__main__':
    if app.config.get('GAME_AUTOSTART'):
        get_round_machine(app).start()
    # Use SocketIO server to enable websockets in dev.
    # The reloader would spawn a second process with its own round loop.
    socketio.run(app, debug=True, use_reloader=False)
