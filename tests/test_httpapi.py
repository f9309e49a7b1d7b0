import jwt
import pytest
from dataclasses import dataclass, field
from flask import Blueprint, Flask

from asynctracker.common import (
    InvalidJwtClaimsFormat,
    JwtCustomClaims,
    PayloadValidationFailed,
    Role,
    ServiceError,
    TokenNotFound,
)
from asynctracker.httpapi import (
    bind_payload,
    current_claims,
    decode_token,
    install_jwt,
    require_roles,
    response_error,
    response_ok,
)

SIGNING_KEY = "secret"


@dataclass
class _Req:
    name: str = field(metadata={"required": True})
    note: str = ""


def _token(user_id, role):
    return jwt.encode(JwtCustomClaims(user_id, role).to_dict(), SIGNING_KEY, algorithm="HS256")


def _make_app():
    app = Flask(__name__)
    bp = Blueprint("api", __name__, url_prefix="/api")
    install_jwt(bp, SIGNING_KEY)

    @bp.get("/whoami")
    @require_roles(Role.ADMIN, Role.MANAGER)
    def whoami():
        return response_ok(current_claims())

    open_bp = Blueprint("open", __name__)

    @open_bp.post("/echo")
    def echo():
        try:
            payload = bind_payload(_Req)
        except PayloadValidationFailed as exc:
            return response_error(exc), 400
        return response_ok(payload)

    @open_bp.get("/guarded")
    @require_roles(Role.ADMIN)
    def guarded():
        return response_ok(None)

    app.register_blueprint(bp)
    app.register_blueprint(open_bp)
    return app


@pytest.fixture
def client():
    return _make_app().test_client()


def test_response_ok_envelope():
    assert response_ok(None) == {"status": "ok", "data": None}
    assert response_ok({"a": [1, 2]}) == {"status": "ok", "data": {"a": [1, 2]}}


def test_response_error_envelope():
    assert response_error(TokenNotFound()) == {
        "status": "error",
        "error": "token not found in request context",
    }


def test_decode_token_round_trip():
    claims = decode_token(_token("u-1", "developer"), SIGNING_KEY)
    assert claims.user_id == "u-1"
    assert claims.role == "developer"


def test_decode_token_wrong_key():
    with pytest.raises(ServiceError):
        decode_token(_token("u-1", "developer"), "token")


def test_decode_token_bad_claims():
    bad = jwt.encode({"user_id": 5, "role": "admin"}, SIGNING_KEY, algorithm="HS256")
    with pytest.raises(InvalidJwtClaimsFormat):
        decode_token(bad, SIGNING_KEY)


def test_missing_token_rejected(client):
    resp = client.get("/api/whoami")
    assert resp.status_code == 403
    assert resp.get_json()["status"] == "error"


def test_garbled_token_rejected(client):
    resp = client.get("/api/whoami", headers={"Authorization": "Bearer token"})
    assert resp.status_code == 403
    assert resp.get_json()["status"] == "error"


def test_allowed_role_passes(client):
    bearer = _token("u-9", "manager")
    resp = client.get("/api/whoami", headers={"Authorization": f"Bearer {bearer}"})
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok", "data": {"user_id": "u-9", "role": "manager"}}


def test_disallowed_role_rejected(client):
    bearer = _token("u-9", "developer")
    resp = client.get("/api/whoami", headers={"Authorization": f"Bearer {bearer}"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "insufficient privileges"


def test_require_roles_without_jwt_is_server_error(client):
    resp = client.get("/guarded")
    assert resp.status_code == 500
    assert resp.get_json()["error"] == "token not found in request context"


def test_bind_payload_success(client):
    resp = client.post("/echo", json={"name": "alice", "extra": 1})
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"name": "alice", "note": ""}


def test_bind_payload_missing_required(client):
    resp = client.post("/echo", json={"note": "x"})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "payload validation failed"


def test_bind_payload_malformed_body(client):
    resp = client.post("/echo", data=b"{nope", content_type="application/json")
    assert resp.status_code == 400
    assert resp.get_json()["status"] == "error"


def test_current_claims_without_token():
    app = Flask(__name__)
    with app.test_request_context():
        with pytest.raises(TokenNotFound):
            current_claims()