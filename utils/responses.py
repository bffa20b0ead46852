from flask import jsonify


def api_response(data=None, message="Success", status=200):
    """Uniform envelope: {statusCode, data, message, success}."""
    body = {
        "statusCode": status,
        "data": {} if data is None else data,
        "message": message,
        "success": status < 400,
    }
    return jsonify(body), status
