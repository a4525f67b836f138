"""Operator settings read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

from . import crd


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    log_level: str = os.getenv("INGRESS_OPERATOR_LOG_LEVEL", "INFO")

    # Periodic reconciliation
    timer_interval_s: float = _env_float("INGRESS_OPERATOR_TIMER_INTERVAL_S", 60.0)

    # Readiness wait; the timeout must stay larger than the interval.
    readiness_interval_s: float = _env_float("INGRESS_OPERATOR_READINESS_INTERVAL_S", 5.0)
    readiness_timeout_s: float = _env_float("INGRESS_OPERATOR_READINESS_TIMEOUT_S", 300.0)

    # Identity provider objects in the IAM namespace
    auth_idp_configmap: str = os.getenv("INGRESS_OPERATOR_AUTH_IDP_CONFIGMAP", crd.AUTH_IDP_CONFIGMAP)
    oidc_credentials_secret: str = os.getenv(
        "INGRESS_OPERATOR_OIDC_CREDENTIALS_SECRET", crd.OIDC_CREDENTIALS_SECRET
    )


settings = Settings()
