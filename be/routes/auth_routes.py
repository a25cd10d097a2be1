import logging
from urllib.parse import urlparse
from flask import Blueprint, request, render_template, redirect, url_for, flash, current_app
from flask_jwt_extended import (
    create_access_token,
    jwt_required,
    get_jwt,
    set_access_cookies,
    unset_jwt_cookies,
)
from services.user_service import UserService

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

INVALID_CREDENTIALS = "Invalid email or password"


def _safe_next(target):
    """Only same-site paths are accepted as a post-login redirect."""
    if not target or not target.startswith('/') or target.startswith('//') or '\\' in target:
        return None
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc:
        return None
    return target


def _user_service():
    return UserService(
        current_app.extensions['backend'],
        default_limit_mb=current_app.config.get('DEFAULT_STORAGE_LIMIT_MB', 1024),
    )


@auth_bp.route('/Register', methods=['GET'])
def register_form():
    return render_template('auth/register.html', form={})


@auth_bp.route('/Register', methods=['POST'])
def register():
    form = request.form
    email = form.get('email', '').strip()
    password = form.get('password', '')
    confirm_password = form.get('confirm_password', '')
    full_name = form.get('full_name', '').strip()

    if not email or not password or not full_name:
        error = "Email, password and full name are required"
    elif '@' not in email:
        error = "Please enter a valid email address"
    else:
        try:
            _, error = _user_service().register(email, password, confirm_password, full_name)
        except Exception as e:
            logger.exception('Registration failed for %s', email)
            error = f"Registration failed: {e}"

    if error:
        return render_template('auth/register.html', form=form, error=error)

    flash("Registration successful! Please login.", "success")
    return redirect(url_for('auth.login_form'))


@auth_bp.route('/Login', methods=['GET'])
def login_form():
    return render_template('auth/login.html', form={}, next_url=_safe_next(request.args.get('next')))


@auth_bp.route('/Login', methods=['POST'])
def login():
    form = request.form
    email = form.get('email', '').strip()
    password = form.get('password', '')
    remember_me = form.get('remember_me', '').lower() in ('1', 'true', 'on', 'yes')
    next_url = _safe_next(form.get('next') or request.args.get('next'))

    if not email or not password:
        return render_template('auth/login.html', form=form, next_url=next_url, error="Email and password are required")

    try:
        user = _user_service().login(email, password)
    except Exception as e:
        logger.exception('Login failed for %s', email)
        return render_template('auth/login.html', form=form, next_url=next_url, error=f"Login failed: {e}")

    if not user:
        # 邮箱不存在和密码错误返回同一提示
        return render_template('auth/login.html', form=form, next_url=next_url, error=INVALID_CREDENTIALS)

    token = create_access_token(
        identity=user.id,
        additional_claims={"email": user.email, "name": user.full_name, "role": user.role},
    )
    response = redirect(next_url or url_for('home.dashboard'))
    # 记住我：持久 cookie，否则为浏览器会话 cookie
    max_age = None
    if remember_me:
        max_age = int(current_app.config['JWT_ACCESS_TOKEN_EXPIRES'].total_seconds())
    set_access_cookies(response, token, max_age=max_age)
    logger.info('User %s logged in (remember_me=%s)', user.id, remember_me)
    return response


@auth_bp.route('/Logout', methods=['POST'])
@jwt_required(optional=True)
def logout():
    claims = get_jwt()
    if claims:
        UserService.logout(claims["jti"])
        logger.info('User %s logged out', claims.get("sub"))
    response = redirect(url_for('home.index'))
    unset_jwt_cookies(response)
    return response
