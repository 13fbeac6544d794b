"""Runtime settings loaded from ``HPCONTRACT_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError

from aumai_hpcontract.errors import InvalidInputError
from aumai_hpcontract.models import Platform

DEFAULT_CERT_URL_TEMPLATE = (
    "https://hpvsvpcubuntu.s3.us.cloud-object-storage.appdomain.cloud/"
    "s390x-{patch}/ibm-hyper-protect-container-runtime-{major}-{minor}"
    "-s390x-{patch}-encrypt.crt"
)

ENV_PREFIX = "HPCONTRACT_"


class Settings(BaseModel):
    """Tunables shared by the library and the CLI."""

    cert_url_template: str = DEFAULT_CERT_URL_TEMPLATE
    http_timeout: float = Field(default=30.0, gt=0)
    expiry_warning_days: int = Field(default=180, ge=0)
    rsa_key_size: int = Field(default=4096, ge=2048)
    log_level: str = "WARNING"
    platform: Platform = Platform.hpvs
    cert_version: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from *environ* (defaults to :data:`os.environ`).

        Unset or blank variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}", "").strip()
            if raw:
                values[name] = raw
        if "platform" in values:
            values["platform"] = Platform.parse(values["platform"]).value
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise InvalidInputError(f"invalid {ENV_PREFIX}* setting - {exc}") from exc


__all__ = ["DEFAULT_CERT_URL_TEMPLATE", "ENV_PREFIX", "Settings"]
