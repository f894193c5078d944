from lobby import create_app, socketio

# create_app also starts the cleanup scheduler unless it is disabled
app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    socketio.run(app, debug=True)
