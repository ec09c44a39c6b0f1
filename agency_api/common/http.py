# agency_api/common/http.py
"""
Response envelopes used by every blueprint and error handler.

    {"success": true,  "data": ..., "meta": {"page": 1, "size": 20, "total": 3}}
    {"success": false, "error": {"message": ..., "code": ..., "errors": {...}}}
"""
from flask import jsonify


def ok(data=None, status=200, **meta):
    body = {"success": True, "data": data}
    if meta:
        body["meta"] = meta
    return jsonify(body), status


def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    err = {"message": message}
    # empty extras are left out of the body
    for key, value in (("code", code), ("detail", detail), ("errors", errors)):
        if value:
            err[key] = value
    return jsonify({"success": False, "error": err}), status
