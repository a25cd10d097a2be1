import logging
from flask import Blueprint, render_template, redirect, url_for, flash, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from services.file_service import FileService

logger = logging.getLogger(__name__)

home_bp = Blueprint('home', __name__)


@home_bp.route('/', methods=['GET'])
@jwt_required(optional=True)
def index():
    if get_jwt_identity():
        return redirect(url_for('home.dashboard'))
    return render_template('home/index.html')


@home_bp.route('/Home/Dashboard', methods=['GET'])
@jwt_required()
def dashboard():
    user_id = get_jwt_identity()
    try:
        data = FileService(current_app.extensions['backend']).get_dashboard(user_id)
    except Exception as e:
        logger.exception('Error loading dashboard for %s', user_id)
        flash(f"Error loading dashboard: {e}", "error")
        data = None
    return render_template('home/dashboard.html', dashboard=data, user_name=data["user_name"] if data else None)


@home_bp.route('/Home/Privacy', methods=['GET'])
def privacy():
    return render_template('home/privacy.html')
