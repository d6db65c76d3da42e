"""Wire format of the cross-domain storage bridge (window.postMessage payloads)."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

READY_MESSAGE_TYPE = "storage-ready"
READ_OPERATIONS = ("get",)
WRITE_OPERATIONS = ("set", "backup")
BRIDGE_OPERATIONS = READ_OPERATIONS + WRITE_OPERATIONS

# Reply error prefixes; the served document reports the same ones
INVALID_MESSAGE_ERROR = "Invalid storage message"
MISSING_VALUE_ERROR = "Missing value for storage operation"
UNKNOWN_OPERATION_ERROR = "Unknown storage operation"


def bridge_protocol() -> Dict[str, Any]:
    """Protocol table embedded in ``/storage.html``"""
    return {
        "readyType": READY_MESSAGE_TYPE,
        "read": list(READ_OPERATIONS),
        "write": list(WRITE_OPERATIONS),
        "errors": {
            "invalid": INVALID_MESSAGE_ERROR,
            "missingValue": MISSING_VALUE_ERROR,
            "unknownOperation": UNKNOWN_OPERATION_ERROR,
        },
    }


class StorageMessage(BaseModel):
    """Request posted by the parent page"""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    key: str
    value: Optional[str] = None
    request_id: str = Field(..., alias="requestId")


class StorageResponse(BaseModel):
    """Reply posted back to the requesting window"""

    model_config = ConfigDict(populate_by_name=True)

    request_id: Optional[str] = Field(None, alias="requestId")
    success: bool
    value: Optional[str] = None
    error: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"requestId": self.request_id, "success": self.success}
        if self.success:
            message["value"] = self.value
        else:
            message["error"] = self.error
        return message
