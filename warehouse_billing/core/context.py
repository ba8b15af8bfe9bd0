"""
Request correlation passed explicitly through the billing operations.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

HEADER_NAME = "X-Correlation-Id"
ALT_HEADER_NAME = "Correlation-Id"


@dataclass(frozen=True)
class RequestContext:
    """Correlation identifiers for one caller request."""
    correlation_id: str
    trace_id: Optional[str] = None

    @classmethod
    def new(cls, trace_id: Optional[str] = None) -> "RequestContext":
        return cls(correlation_id=str(uuid.uuid4()), trace_id=trace_id)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RequestContext":
        """Take the correlation id from request headers, generating one if absent."""
        lowered = {k.lower(): v for k, v in headers.items()}
        for name in (HEADER_NAME, ALT_HEADER_NAME):
            value = lowered.get(name.lower())
            if value and value.strip():
                return cls(correlation_id=value.strip(), trace_id=lowered.get("x-trace-id"))
        return cls.new(trace_id=lowered.get("x-trace-id"))

    def log_extra(self, **fields) -> Dict[str, object]:
        """Fields for a logging ``extra=`` argument."""
        extra: Dict[str, object] = {"correlation_id": self.correlation_id}
        if self.trace_id is not None:
            extra["trace_id"] = self.trace_id
        extra.update(fields)
        return extra


def log_extra(context: Optional[RequestContext], **fields) -> Dict[str, object]:
    """``extra=`` fields for an optional context."""
    if context is None:
        return dict(fields)
    return context.log_extra(**fields)
