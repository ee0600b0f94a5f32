from flask import jsonify


def success(data, status=200):
    return jsonify({'ok': True, 'data': data}), status


def error(message, status=400, fields=None, code=None):
    body = {'ok': False, 'error': message}
    if code:
        body['code'] = code
    if fields:
        body['fields'] = fields
    return jsonify(body), status
