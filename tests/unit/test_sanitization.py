from utils.logger import sanitize_log_data


def test_password_redaction():
    data = {"username": "alice", "password": "supersecret123"}
    sanitized = sanitize_log_data(data)

    assert sanitized["username"] == "alice"
    assert sanitized["password"] == "***REDACTED***"


def test_token_partial_redaction():
    data = {"refreshToken": "Xb3kq9Lm2PzT7vRw1YcN8sHd4fGj6aEu"}
    sanitized = sanitize_log_data(data)

    assert sanitized["refreshToken"] == "Xb3kq9Lm..."
    assert "Rw1YcN8sHd4fGj6aEu" not in sanitized["refreshToken"]


def test_short_token_fully_redacted():
    sanitized = sanitize_log_data({"access_token": "abc"})

    assert sanitized["access_token"] == "***REDACTED***"


def test_nested_dict_sanitization():
    data = {
        "body": {
            "username": "alice",
            "password": "secret123"
        }
    }
    sanitized = sanitize_log_data(data)

    assert sanitized["body"]["username"] == "alice"
    assert sanitized["body"]["password"] == "***REDACTED***"
    # original is untouched
    assert data["body"]["password"] == "secret123"


def test_non_sensitive_data_unchanged():
    data = {"user_id": 123, "username": "alice", "role": "ADMIN"}

    assert sanitize_log_data(data) == data
