from __future__ import annotations

import logging

from chat_relay.api.middleware.correlation_id import CorrelationIdFilter

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(correlation_id)s]: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    cid_filter = CorrelationIdFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(cid_filter)
