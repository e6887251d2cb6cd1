"""AWS credential lookup."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dh_common.errors import ConfigurationError

ACCESS_KEY_ENV = "AWS_ACCESS_KEY_ID"
SECRET_KEY_ENV = "AWS_SECRET_ACCESS_KEY"


@dataclass(frozen=True)
class Auth:
    access_key: str
    secret_key: str


def env_auth() -> Auth:
    """Read credentials from the environment or fail naming what is missing."""
    access_key = os.environ.get(ACCESS_KEY_ENV, "")
    secret_key = os.environ.get(SECRET_KEY_ENV, "")
    missing = [
        name
        for name, value in ((ACCESS_KEY_ENV, access_key), (SECRET_KEY_ENV, secret_key))
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"AWS credentials not provided: set {' and '.join(missing)} "
            "or pass an access key and secret key",
            context={"missing": missing},
        )
    return Auth(access_key=access_key, secret_key=secret_key)
