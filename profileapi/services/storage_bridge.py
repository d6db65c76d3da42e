"""
Cross-domain storage bridge

Sibling sites that cannot share a cookie keep the anonymous id in the
localStorage of the service's own origin. The service serves ``/storage.html``
(rendered below) inside a hidden iframe; parent pages talk to it through
``window.postMessage``:

    request : {type: "get" | "set" | "backup", key, value?, requestId}
    response: {requestId, success: true, value} | {requestId, success: false, error}

Messages from origins outside the allow-list are dropped without a reply. On
load the document posts ``{type: "storage-ready"}`` to its parent.

``StorageBridge.handle`` applies the protocol over any mutable mapping for
server-side consumers. The operation table, error prefixes and origin matcher
come from ``schemas.bridge`` and ``core.origins`` and are compiled into the
served document, so both sides follow the same rules.
"""

import json
import logging
from string import Template
from typing import Any, Dict, Iterable, List, MutableMapping, Optional

from pydantic import ValidationError as PydanticValidationError

from profileapi.core.origins import allows_all, build_origin_regex, is_origin_allowed
from profileapi.schemas.bridge import (
    INVALID_MESSAGE_ERROR,
    MISSING_VALUE_ERROR,
    READ_OPERATIONS,
    READY_MESSAGE_TYPE,
    UNKNOWN_OPERATION_ERROR,
    WRITE_OPERATIONS,
    StorageMessage,
    StorageResponse,
    bridge_protocol,
)

logger = logging.getLogger(__name__)


STORAGE_DOCUMENT = Template("""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Profile Service Storage</title>
</head>
<body>
    <script>
        (function () {
            var protocol = $protocol;
            var allowAll = $allow_all;
            var originPattern = $origin_pattern;
            var originMatcher = originPattern ? new RegExp(originPattern) : null;

            function isAllowed(origin) {
                if (allowAll) {
                    return true;
                }
                return !!(originMatcher && origin && originMatcher.test(origin));
            }

            function isWellFormed(data) {
                return !!data && typeof data === 'object' &&
                    typeof data.type === 'string' &&
                    typeof data.key === 'string' &&
                    typeof data.requestId === 'string' &&
                    (data.value === undefined || data.value === null || typeof data.value === 'string');
            }

            function apply(data) {
                if (!isWellFormed(data)) {
                    throw new Error(protocol.errors.invalid + ': expected string type, key and requestId');
                }
                if (protocol.read.indexOf(data.type) !== -1) {
                    return window.localStorage.getItem(data.key);
                }
                if (protocol.write.indexOf(data.type) !== -1) {
                    if (data.value === undefined || data.value === null) {
                        throw new Error(protocol.errors.missingValue + ': ' + data.type);
                    }
                    window.localStorage.setItem(data.key, data.value);
                    return data.value;
                }
                throw new Error(protocol.errors.unknownOperation + ': ' + data.type);
            }

            window.addEventListener('message', function (event) {
                if (!isAllowed(event.origin)) {
                    return;
                }

                var data = event.data;
                var requestId = data && typeof data === 'object' ? data.requestId : undefined;
                var reply;
                try {
                    reply = { requestId: requestId, success: true, value: apply(data) };
                } catch (error) {
                    reply = { requestId: requestId, success: false, error: error.message };
                }

                if (event.source) {
                    event.source.postMessage(reply, event.origin);
                }
            });

            if (window.parent && window.parent !== window) {
                window.parent.postMessage({ type: protocol.readyType }, '*');
            }
        })();
    </script>
</body>
</html>
""")


class StorageBridge:
    """Protocol handler for storage bridge messages"""

    def __init__(
        self,
        allowed_origins: Iterable[str],
        storage: Optional[MutableMapping[str, str]] = None,
    ):
        self.allowed_origins: List[str] = list(allowed_origins)
        self.storage: MutableMapping[str, str] = storage if storage is not None else {}

    @staticmethod
    def ready_message() -> Dict[str, str]:
        return {"type": READY_MESSAGE_TYPE}

    def render_document(self) -> str:
        """HTML/JS for ``/storage.html`` with the allow-list and protocol compiled in."""
        return STORAGE_DOCUMENT.substitute(
            protocol=json.dumps(bridge_protocol()),
            allow_all=json.dumps(allows_all(self.allowed_origins)),
            origin_pattern=json.dumps(build_origin_regex(self.allowed_origins)),
        )

    def handle(self, origin: Optional[str], data: Any) -> Optional[Dict[str, Any]]:
        """Process one message; return the reply, or None when it must be dropped.

        Never raises: failures become ``success: false`` replies.
        """
        if not is_origin_allowed(origin, self.allowed_origins):
            logger.warning(f"Storage bridge: origin not allowed: {origin}")
            return None

        request_id = data.get("requestId") if isinstance(data, dict) else None
        try:
            message = StorageMessage.model_validate(data)
            value = self._apply(message)
            return StorageResponse(request_id=message.request_id, success=True, value=value).to_message()
        except PydanticValidationError as e:
            error = f"{INVALID_MESSAGE_ERROR}: {e.errors()[0].get('msg')}"
        except Exception as e:
            error = str(e) or type(e).__name__

        return StorageResponse(request_id=request_id, success=False, error=error).to_message()

    def _apply(self, message: StorageMessage) -> Optional[str]:
        if message.type in READ_OPERATIONS:
            return self.storage.get(message.key)
        if message.type in WRITE_OPERATIONS:
            if message.value is None:
                raise ValueError(f"{MISSING_VALUE_ERROR}: {message.type}")
            self.storage[message.key] = message.value
            return message.value
        raise ValueError(f"{UNKNOWN_OPERATION_ERROR}: {message.type}")
