import pytest
from app import create_app
from common.db import db
from config import TestConfig
from services.file_service import FileService
from services.user_service import UserService

PASSWORD = "secret123"


@pytest.fixture
def test_app(tmp_path):
    app = create_app(TestConfig, overrides={"UPLOAD_DIR": str(tmp_path / "uploads")})
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(test_app):
    return test_app.test_client()


@pytest.fixture
def backend(test_app):
    return test_app.extensions['backend']


@pytest.fixture
def user_service(backend):
    return UserService(backend)


@pytest.fixture
def file_service(backend):
    return FileService(backend)


@pytest.fixture
def user(user_service):
    user, err = user_service.register("alice@example.com", PASSWORD, PASSWORD, "Alice")
    assert err is None
    return user


def register(client, email, password=PASSWORD, confirm=None, full_name="Alice"):
    return client.post("/Auth/Register", data={
        "email": email,
        "password": password,
        "confirm_password": password if confirm is None else confirm,
        "full_name": full_name,
    })


def login(client, email, password=PASSWORD, remember_me=False):
    data = {"email": email, "password": password}
    if remember_me:
        data["remember_me"] = "true"
    return client.post("/Auth/Login", data=data)


@pytest.fixture
def auth_client(client, backend):
    """注册并登录一个用户，cookie 保存在 test client 中"""
    register(client, "bob@example.com", full_name="Bob")
    res = login(client, "bob@example.com")
    assert res.status_code == 302, res.data
    client.user_id = backend.find_user_by_email("bob@example.com").id
    return client
