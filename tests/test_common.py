import pytest

from asynctracker.common import (
    AccountNotFound,
    InsufficientPrivileges,
    InvalidCredentials,
    InvalidJwtClaimsFormat,
    JwtCustomClaims,
    NoDevelopersAvailable,
    PayloadValidationFailed,
    Role,
    ServiceError,
    TaskNotFound,
    TokenNotFound,
    UnknownUser,
)


@pytest.mark.parametrize(
    "error_type, text",
    [
        (PayloadValidationFailed, "payload validation failed"),
        (InvalidCredentials, "invalid credentials"),
        (InvalidJwtClaimsFormat, "invalid jwt claims format"),
        (InsufficientPrivileges, "insufficient privileges"),
        (TokenNotFound, "token not found in request context"),
        (AccountNotFound, "account not found"),
        (TaskNotFound, "task not found"),
        (NoDevelopersAvailable, "no developers available"),
        (UnknownUser, "unknown user"),
    ],
)
def test_error_messages(error_type, text):
    error = error_type()
    assert str(error) == text
    assert isinstance(error, ServiceError)


def test_error_custom_message():
    assert str(TaskNotFound("custom")) == "custom"


def test_role_lookup_by_value():
    assert Role("admin") is Role.ADMIN
    with pytest.raises(ValueError):
        Role("janitor")


def test_claims_to_dict_omits_unset_claims():
    claims = JwtCustomClaims(user_id="u-1", role=Role.MANAGER)
    assert claims.to_dict() == {"user_id": "u-1", "role": "manager"}


def test_claims_round_trip():
    claims = JwtCustomClaims(
        user_id="u-1", role="developer", iss="auth", aud=["task"], exp=1700000000, jti="id-1"
    )
    assert JwtCustomClaims.from_dict(claims.to_dict()) == claims


def test_claims_from_dict_defaults_missing_fields():
    claims = JwtCustomClaims.from_dict({})
    assert claims.user_id == ""
    assert claims.role == ""
    assert claims.exp is None


@pytest.mark.parametrize(
    "data",
    [
        "not a mapping",
        {"user_id": 7, "role": "admin"},
        {"user_id": "u", "role": ["admin"]},
        {"user_id": "u", "role": "admin", "exp": "soon"},
        {"user_id": "u", "role": "admin", "exp": True},
        {"user_id": "u", "role": "admin", "aud": [1, 2]},
    ],
)
def test_claims_from_dict_rejects_malformed(data):
    with pytest.raises(InvalidJwtClaimsFormat):
        JwtCustomClaims.from_dict(data)