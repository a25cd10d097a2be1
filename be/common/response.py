from flask import jsonify


def success(msg="ok", **data):
    return jsonify({"success": True, "message": msg, **data})


def fail(msg="error", status=200):
    return jsonify({"success": False, "message": msg}), status
