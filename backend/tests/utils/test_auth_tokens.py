from datetime import timedelta

import pytest
from deskbook.utils.auth import ADMIN_ROLE, check_password, create_access_token, decode_access_token


def test_round_trip_carries_role() -> None:
    token = create_access_token(subject="admin", secret="s")
    claims = decode_access_token(token, secret="s", algorithms=["HS256"])
    assert claims == {"sub": "admin", "role": ADMIN_ROLE}


def test_expired_token_is_rejected() -> None:
    token = create_access_token(subject="admin", secret="s", expires_delta=timedelta(seconds=-1))
    with pytest.raises(ValueError):
        decode_access_token(token, secret="s", algorithms=["HS256"])


def test_wrong_secret_is_rejected() -> None:
    token = create_access_token(subject="admin", secret="s")
    with pytest.raises(ValueError):
        decode_access_token(token, secret="other", algorithms=["HS256"])


def test_check_password() -> None:
    assert check_password("pw", "pw")
    assert not check_password("pw", "PW")
    assert not check_password("pw", None)
