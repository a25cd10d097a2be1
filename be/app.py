import logging
from flask import Flask, request, redirect, url_for, render_template
from flask_jwt_extended import JWTManager, unset_jwt_cookies
from common.db import db
from common.response import fail
from commands import register_commands
from routes.auth_routes import auth_bp
from routes.file_routes import file_bp
from routes.home_routes import home_bp
from services.backend import BackendClient, create_storage
from services.user_service import UserService

logger = logging.getLogger(__name__)


def _configure_logging(app):
    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _wants_json():
    return (
        request.is_json
        or request.headers.get('X-Requested-With') == 'XMLHttpRequest'
        or request.accept_mimetypes.best == 'application/json'
    )


def _login_required_response(reason):
    """会话缺失/失效：JSON 请求返回 401，页面请求跳转登录"""
    logger.info('Unauthenticated request to %s: %s', request.path, reason)
    if _wants_json():
        response, status = fail("User not authenticated", 401)
    else:
        response, status = redirect(url_for('auth.login_form', next=request.path)), 302
    unset_jwt_cookies(response)
    return response, status


def create_app(config_object='config.Config', overrides=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)
    _configure_logging(app)

    db.init_app(app)
    jwt = JWTManager(app)
    app.extensions['backend'] = BackendClient(db.session, create_storage(app.config))

    # 检查 token 是否在黑名单
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return UserService.is_token_revoked(jwt_payload["jti"])

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _login_required_response(reason)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _login_required_response(reason)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _login_required_response("token expired")

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return _login_required_response("token revoked")

    @app.context_processor
    def inject_csrf_token():
        return {"csrf_token": request.cookies.get(app.config.get('JWT_ACCESS_CSRF_COOKIE_NAME', 'csrf_access_token'), '')}

    @app.errorhandler(404)
    def not_found(e):
        if _wants_json():
            return fail("Not found", 404)
        return render_template('error.html', status=404, message="The requested item was not found."), 404

    @app.errorhandler(413)
    def too_large(e):
        return fail("File is too large", 413)

    @app.errorhandler(500)
    def server_error(e):
        logger.error('Unhandled error on %s: %s', request.path, e)
        return render_template('error.html', status=500, message="Something went wrong."), 500

    app.register_blueprint(auth_bp, url_prefix='/Auth')
    app.register_blueprint(file_bp, url_prefix='/File')
    app.register_blueprint(home_bp)
    register_commands(app)

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=True)
