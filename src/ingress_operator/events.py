"""Kubernetes event sinks for reconciliation outcomes."""

import logging

import kopf

logger = logging.getLogger(__name__)

NORMAL = "Normal"
WARNING = "Warning"


class KopfEventRecorder:
    """Posts events on the owning custom resource through kopf."""

    def __init__(self, body):
        self.body = body

    def record(self, type, reason, message):
        if type == WARNING:
            logger.warning(f"{reason}: {message}")
        else:
            logger.info(f"{reason}: {message}")
        kopf.event(self.body, type=type, reason=reason, message=message)
