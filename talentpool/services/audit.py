"""
Audit side channel.

Audit events are written to the ``talentpool.audit`` logger as one JSON
document per line; a log shipper forwards them to the audit store. Writing
an event is best-effort and never fails the operation that triggered it.
"""

import json
import logging
from typing import Any, Dict, Optional

from talentpool.database import utcnow

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("talentpool.audit")


def log_audit_event(
    event_type: str,
    category: str,
    subcategory: str,
    entity_type: str,
    entity_id: str,
    actor_id: Optional[str],
    action: str,
    description: str,
    entity_name: Optional[str] = None,
    actor_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> None:
    try:
        event = {
            "timestamp": utcnow().isoformat(),
            "eventType": event_type,
            "category": category,
            "subcategory": subcategory,
            "entityType": entity_type,
            "entityId": entity_id,
            "entityName": entity_name,
            "actorId": actor_id,
            "actorName": actor_name,
            "actorType": "user",
            "action": action,
            "description": description,
            "metadata": metadata or {},
        }
        audit_logger.info(json.dumps(event, default=str))
    except Exception as e:
        logger.warning(f"Failed to write audit event {category}/{subcategory}: {e}")
