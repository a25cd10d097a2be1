import io
from decimal import Decimal
import pytest
from models.file import File
from models.folder import Folder

MB = 1024 * 1024


def _upload(client, content=b"hello world", name="hello.txt", folder_id=""):
    data = {
        "file": (io.BytesIO(content), name),
        "folderId": "" if folder_id is None else str(folder_id),
    }
    return client.post("/File/Upload", data=data, content_type="multipart/form-data")


def _create_folder(client, name, parent=None):
    res = client.post("/File/CreateFolder", json={"folderName": name, "parentFolderId": parent})
    body = res.get_json()
    assert body["success"], body
    return body["folder"]["id"]


# ------------------------------
# 上传 / 下载
# ------------------------------
def test_upload_file(auth_client, file_service):
    res = _upload(auth_client)
    body = res.get_json()
    assert res.status_code == 200
    assert body["success"] is True
    assert body["message"] == "File uploaded successfully"
    assert body["file"]["fileName"] == "hello.txt"
    assert body["file"]["fileType"] == "text/plain"
    assert body["file"]["filePath"].startswith(f"{auth_client.user_id}/")

    files = file_service.list_files(auth_client.user_id)
    assert [f.file_name for f in files] == ["hello.txt"]


def test_upload_without_file(auth_client):
    res = auth_client.post("/File/Upload", data={"folderId": ""}, content_type="multipart/form-data")
    assert res.get_json() == {"success": False, "message": "No file selected"}


def test_upload_empty_file(auth_client):
    res = _upload(auth_client, content=b"")
    assert res.get_json()["message"] == "No file selected"


def test_upload_into_unknown_folder(auth_client):
    res = _upload(auth_client, folder_id=999)
    assert res.get_json() == {"success": False, "message": "Folder not found"}


def test_upload_with_malformed_folder_id(auth_client, backend):
    res = _upload(auth_client, folder_id="abc")
    assert res.get_json() == {"success": False, "message": "Invalid folder id"}
    assert backend.count_files(auth_client.user_id) == 0


def test_upload_over_limit(auth_client, backend):
    user = backend.get_user(auth_client.user_id)
    with backend.transaction():
        user.storage_limit_mb = Decimal("1")

    res = _upload(auth_client, content=b"x" * (2 * MB), name="big.bin")
    assert res.get_json() == {"success": False, "message": "Storage limit exceeded"}
    assert backend.count_files(auth_client.user_id) == 0
    assert backend.get_user(auth_client.user_id).storage_used_mb == Decimal("0")


def test_download_file(auth_client):
    file_id = _upload(auth_client, content=b"download me", name="notes.txt").get_json()["file"]["id"]
    res = auth_client.get("/File/Download", query_string={"id": file_id})
    assert res.status_code == 200
    assert res.data == b"download me"
    assert "attachment" in res.headers["Content-Disposition"]
    assert "notes.txt" in res.headers["Content-Disposition"]


def test_download_unknown_file(auth_client):
    assert auth_client.get("/File/Download", query_string={"id": 12345}).status_code == 404
    assert auth_client.get("/File/Download").status_code == 404


def test_download_missing_blob_redirects_to_manager(auth_client, backend):
    file_id = _upload(auth_client).get_json()["file"]["id"]
    record = backend.get_file(file_id)
    backend.storage.delete_file(record.file_path)

    res = auth_client.get("/File/Download", query_string={"id": file_id})
    assert res.status_code == 302
    assert res.headers["Location"].endswith("/File/Manager")


# ------------------------------
# 删除
# ------------------------------
def test_delete_file(auth_client, backend, file_service):
    file_id = _upload(auth_client, content=b"a" * MB, name="one.bin").get_json()["file"]["id"]
    assert backend.get_user(auth_client.user_id).storage_used_mb == Decimal("1")

    res = auth_client.post("/File/Delete", json={"fileId": file_id})
    assert res.get_json() == {"success": True, "message": "File deleted successfully"}
    assert file_service.list_files(auth_client.user_id) == []
    assert backend.get_user(auth_client.user_id).storage_used_mb == Decimal("0")

    # 软删除：记录仍在
    assert backend.get_file(file_id, include_deleted=True).is_deleted is True


def test_delete_file_twice(auth_client):
    file_id = _upload(auth_client).get_json()["file"]["id"]
    auth_client.post("/File/Delete", json={"fileId": file_id})
    res = auth_client.post("/File/Delete", json={"fileId": file_id})
    assert res.get_json() == {"success": False, "message": "File not found"}


def test_delete_requires_id(auth_client):
    assert auth_client.post("/File/Delete", json={}).get_json()["success"] is False
    res = auth_client.post("/File/DeleteFolder", json={"folderId": "abc"})
    assert res.get_json() == {"success": False, "message": "Invalid folder id"}


def test_cannot_delete_other_users_file(auth_client, backend, file_service, user):
    record = file_service.upload(user.id, b"private", "private.txt")
    res = auth_client.post("/File/Delete", json={"fileId": record.id})
    assert res.get_json()["message"] == "File not found"
    assert backend.get_file(record.id).is_deleted is False


# ------------------------------
# 文件夹
# ------------------------------
def test_create_folder(auth_client, file_service):
    folder_id = _create_folder(auth_client, "docs")
    child_id = _create_folder(auth_client, "reports", parent=folder_id)
    assert [f.folder_name for f in file_service.list_folders(auth_client.user_id)] == ["docs"]
    assert [f.id for f in file_service.list_folders(auth_client.user_id, folder_id)] == [child_id]


def test_create_folder_requires_name(auth_client):
    res = auth_client.post("/File/CreateFolder", json={"folderName": "  "})
    assert res.get_json() == {"success": False, "message": "Folder name is required"}


def test_create_folder_unknown_parent(auth_client):
    res = auth_client.post("/File/CreateFolder", json={"folderName": "x", "parentFolderId": 42})
    assert res.get_json() == {"success": False, "message": "Parent folder not found"}


def test_create_folder_with_malformed_parent_id(auth_client, file_service):
    res = auth_client.post("/File/CreateFolder", json={"folderName": "x", "parentFolderId": "abc"})
    assert res.get_json() == {"success": False, "message": "Invalid parent folder id"}
    assert file_service.list_folders(auth_client.user_id) == []


def test_delete_folder(auth_client, backend, file_service):
    docs = _create_folder(auth_client, "docs")
    nested = _create_folder(auth_client, "nested", parent=docs)
    _upload(auth_client, name="a.txt", folder_id=docs)
    _upload(auth_client, name="b.txt", folder_id=nested)
    _upload(auth_client, name="root.txt")

    res = auth_client.post("/File/DeleteFolder", json={"folderId": docs})
    assert res.get_json() == {"success": True, "message": "Folder deleted successfully"}

    assert file_service.list_folders(auth_client.user_id) == []
    remaining = backend.list_files(auth_client.user_id, all_folders=True)
    assert [f.file_name for f in remaining] == ["root.txt"]


def test_delete_unknown_folder(auth_client):
    res = auth_client.post("/File/DeleteFolder", json={"folderId": 77})
    assert res.get_json() == {"success": False, "message": "Folder not found"}


def test_rename(auth_client, backend):
    folder_id = _create_folder(auth_client, "old")
    file_id = _upload(auth_client).get_json()["file"]["id"]

    res = auth_client.post("/File/Rename", json={"itemId": file_id, "newName": "renamed.txt", "isFolder": False})
    assert res.get_json()["success"] is True
    res = auth_client.post("/File/Rename", json={"itemId": folder_id, "newName": "new", "isFolder": True})
    assert res.get_json()["success"] is True

    assert backend.get_file(file_id).file_name == "renamed.txt"
    assert backend.get_folder(folder_id).folder_name == "new"

    res = auth_client.post("/File/Rename", json={"itemId": file_id, "newName": ""})
    assert res.get_json()["success"] is False


# ------------------------------
# 搜索 / 页面
# ------------------------------
def test_search(auth_client):
    folder_id = _create_folder(auth_client, "docs")
    _upload(auth_client, name="Report-2024.pdf")
    _upload(auth_client, name="nested-report.txt", folder_id=folder_id)
    _upload(auth_client, name="photo.png")

    body = auth_client.get("/File/Search", query_string={"query": "REPORT"}).get_json()
    assert body["success"] is True
    assert [f["fileName"] for f in body["files"]] == ["Report-2024.pdf"]

    body = auth_client.get("/File/Search", query_string={"query": "report", "all": "1"}).get_json()
    assert sorted(f["fileName"] for f in body["files"]) == ["Report-2024.pdf", "nested-report.txt"]


def test_search_with_empty_query_lists_root_files(auth_client):
    folder_id = _create_folder(auth_client, "docs")
    _upload(auth_client, name="a.txt")
    _upload(auth_client, name="b.txt")
    _upload(auth_client, name="inside.txt", folder_id=folder_id)

    body = auth_client.get("/File/Search", query_string={"query": " "}).get_json()
    assert body["success"] is True
    assert [f["fileName"] for f in body["files"]] == ["a.txt", "b.txt"]

    body = auth_client.get("/File/Search").get_json()
    assert [f["fileName"] for f in body["files"]] == ["a.txt", "b.txt"]


def test_manager_page(auth_client):
    docs = _create_folder(auth_client, "docs")
    reports = _create_folder(auth_client, "reports", parent=docs)
    _upload(auth_client, name="inside.txt", folder_id=reports)

    res = auth_client.get("/File/Manager")
    assert res.status_code == 200
    assert b"docs" in res.data

    res = auth_client.get("/File/Manager", query_string={"folderId": reports})
    assert res.status_code == 200
    assert b"/docs/reports" in res.data
    assert b"inside.txt" in res.data


def test_manager_type_filter(auth_client):
    _upload(auth_client, content=b"\x89PNG", name="pic.png")
    _upload(auth_client, name="readme.txt")

    res = auth_client.get("/File/Manager", query_string={"type": "image"})
    assert b"pic.png" in res.data
    assert b"readme.txt" not in res.data


def test_manager_unknown_folder_shows_error(auth_client):
    res = auth_client.get("/File/Manager", query_string={"folderId": 999})
    assert res.status_code == 200
    assert b"Error loading files: Folder not found" in res.data


def test_dashboard_page(auth_client):
    _upload(auth_client, name="recent.txt")
    res = auth_client.get("/Home/Dashboard")
    assert res.status_code == 200
    assert b"Welcome, Bob" in res.data
    assert b"recent.txt" in res.data


def test_privacy_page(client):
    assert client.get("/Home/Privacy").status_code == 200
