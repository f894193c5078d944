from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, current_user
import uuid
from lobby import db
from lobby.models import User

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the lobby server!'})

@main.route('/api/session', methods=['POST'])
def sign_in():
    """Anonymous sign-in: reuses the current session user or mints a new uid."""
    if current_user.is_authenticated:
        return jsonify(current_user.to_dict())
    data = request.get_json(silent=True) or {}
    display_name = (data.get('display_name') or '').strip()[:64] or None
    user = User(id=uuid.uuid4().hex, display_name=display_name)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    current_app.logger.info(f"[sign-in] uid={user.id}")
    return jsonify(user.to_dict()), 201

@main.route('/api/session', methods=['GET'])
def get_session():
    if not current_user.is_authenticated:
        return jsonify({'error': 'Not signed in.', 'code': 'not_signed_in'}), 401
    return jsonify(current_user.to_dict())

@main.route('/api/session/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'success': True})
