import io
import logging
from flask import Blueprint, request, send_file, render_template, redirect, url_for, flash, abort, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from common.errors import CloudDriveError, NotFoundError, ValidationError
from common.response import success, fail
from services.file_service import FileService

logger = logging.getLogger(__name__)

file_bp = Blueprint('file', __name__)


def _file_service():
    return FileService(current_app.extensions['backend'])


def _as_int(value, field):
    """Empty means not given. Anything else must be a whole number."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")


@file_bp.errorhandler(ValidationError)
def validation_failed(e):
    return fail(str(e))


def _error_message(e):
    if isinstance(e, CloudDriveError):
        return str(e)
    logger.exception('Unexpected error in %s', request.path)
    return str(e) or "An unexpected error occurred"


def _empty_manager(folder_id):
    return {
        "user_name": "User",
        "files": [],
        "folders": [],
        "current_folder_id": folder_id,
        "current_folder_path": "/",
        "parent_folder_id": None,
        "storage_used": 0,
        "storage_limit": 1024,
        "storage_percent": 0.0,
        "current_filter_type": None,
    }


@file_bp.route('/Manager', methods=['GET'])
@jwt_required()
def manager():
    user_id = get_jwt_identity()
    folder_id = request.args.get('folderId', type=int)
    file_type = request.args.get('type') or None
    service = _file_service()
    try:
        current = service.get_folder(folder_id, user_id) if folder_id is not None else None
        if folder_id is not None and current is None:
            raise NotFoundError("Folder not found")
        dashboard = service.get_dashboard(user_id)
        model = {
            "user_name": dashboard["user_name"],
            "files": service.list_files(user_id, folder_id, file_type),
            "folders": service.list_folders(user_id, folder_id),
            "current_folder_id": folder_id,
            "current_folder_path": service.get_folder_path(folder_id, user_id),
            "parent_folder_id": current.parent_folder_id if current else None,
            "storage_used": dashboard["storage_used"],
            "storage_limit": dashboard["storage_limit"],
            "storage_percent": dashboard["storage_percent"],
            "current_filter_type": file_type,
        }
    except Exception as e:
        flash(f"Error loading files: {_error_message(e)}", "error")
        model = _empty_manager(folder_id)
    return render_template('file/manager.html', model=model, user_name=model["user_name"])


@file_bp.route('/Upload', methods=['POST'])
@jwt_required()
def upload_file():
    user_id = get_jwt_identity()
    file_obj = request.files.get("file")
    folder_id = _as_int(request.form.get("folderId"), "folder id")
    if not file_obj or not file_obj.filename:
        return fail("No file selected")
    data = file_obj.read()
    if not data:
        return fail("No file selected")
    try:
        record = _file_service().upload(user_id, data, file_obj.filename, folder_id, file_obj.mimetype)
    except Exception as e:
        return fail(_error_message(e))
    return success("File uploaded successfully", file=record.to_dict())


@file_bp.route('/CreateFolder', methods=['POST'])
@jwt_required()
def create_folder():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    folder_name = (data.get("folderName") or '').strip()
    if not folder_name:
        return fail("Folder name is required")
    try:
        folder = _file_service().create_folder(user_id, folder_name, _as_int(data.get("parentFolderId"), "parent folder id"))
    except Exception as e:
        return fail(_error_message(e))
    return success("Folder created successfully", folder=folder.to_dict())


@file_bp.route('/Delete', methods=['POST'])
@jwt_required()
def delete_file():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    file_id = _as_int(data.get("fileId"), "file id")
    if file_id is None:
        return fail("File id is required")
    try:
        _file_service().delete_file(file_id, user_id)
    except Exception as e:
        return fail(_error_message(e))
    return success("File deleted successfully")


@file_bp.route('/DeleteFolder', methods=['POST'])
@jwt_required()
def delete_folder():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    folder_id = _as_int(data.get("folderId"), "folder id")
    if folder_id is None:
        return fail("Folder id is required")
    try:
        _file_service().delete_folder(folder_id, user_id)
    except Exception as e:
        return fail(_error_message(e))
    return success("Folder deleted successfully")


@file_bp.route('/Rename', methods=['POST'])
@jwt_required()
def rename_item():
    user_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    item_id = _as_int(data.get("itemId"), "item id")
    new_name = (data.get("newName") or '').strip()
    if item_id is None or not new_name:
        return fail("Item id and new name are required")
    try:
        _file_service().rename(user_id, item_id, new_name, bool(data.get("isFolder")))
    except Exception as e:
        return fail(_error_message(e))
    return success("Renamed successfully")


@file_bp.route('/Download', methods=['GET'])
@jwt_required()
def download_file():
    user_id = get_jwt_identity()
    file_id = request.args.get("id", type=int)
    if file_id is None:
        abort(404)
    try:
        record, content = _file_service().download(file_id, user_id)
    except NotFoundError:
        abort(404)
    except Exception as e:
        flash(f"Error downloading file: {_error_message(e)}", "error")
        return redirect(url_for('file.manager'))
    return send_file(
        io.BytesIO(content),
        mimetype=record.file_type or "application/octet-stream",
        as_attachment=True,
        download_name=record.file_name,
    )


@file_bp.route('/Search', methods=['GET'])
@jwt_required()
def search_files():
    user_id = get_jwt_identity()
    query = request.args.get("query", "").strip()
    recursive = request.args.get("all", "").lower() in ('1', 'true', 'yes')
    try:
        files = _file_service().search(user_id, query, recursive=recursive)
    except Exception as e:
        return fail(_error_message(e))
    return success("ok", files=[f.to_dict() for f in files])
