"""Provider webhook intake.

The provider retries any delivery that is not answered with a success, so
`WebhookReconciler.handle` acknowledges everything it is given. Problems are
logged, never raised.
"""

import json
from typing import Any, Union

from leadcaller.calls import CallLifecycleManager
from leadcaller.logging_config import get_logger
from leadcaller.payloads import normalize_payload

logger = get_logger(__name__)

ACKNOWLEDGED = {"received": True}


class WebhookReconciler:
    """Turns raw webhook deliveries into call lifecycle transitions."""

    def __init__(self, lifecycle: CallLifecycleManager):
        self.lifecycle = lifecycle

    def handle(self, body: Union[bytes, str, dict[str, Any], None]) -> dict[str, bool]:
        """Process one delivery. Always returns the acknowledgement."""
        try:
            payload = json.loads(body) if isinstance(body, (bytes, str)) else body
            event = normalize_payload(payload)
            logger.info(
                "webhook_received",
                type=event.type,
                provider_call_id=event.call_id,
                status=event.status,
            )
            if not isinstance(payload, dict):
                logger.warning("webhook_payload_not_object", payload_type=type(payload).__name__)
                return dict(ACKNOWLEDGED)
            self.lifecycle.reconcile(event)
        except ValueError as e:
            logger.warning("webhook_payload_invalid", error=str(e))
        except Exception:
            logger.exception("webhook_processing_failed")
        return dict(ACKNOWLEDGED)
