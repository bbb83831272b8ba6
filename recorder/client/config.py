"""
config.py — Client recorder configuration.

An explicit, immutable value handed to BatchBuffer / Transport / SessionRecorder.
There is no module-level client settings object: two recorders in
one process (two tabs) can point at different backends.
"""
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ENDPOINT_BASE = "http://localhost:8080/api/sessions"


class RecorderConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint_base: str = DEFAULT_ENDPOINT_BASE
    batch_size: int = Field(default=50, ge=1)          # flush as soon as this many events are pending
    batch_timeout_ms: int = Field(default=5000, ge=0)  # ...or this long after the first pending event
    request_timeout_s: float = Field(default=10.0, gt=0)

    @property
    def batch_timeout_s(self) -> float:
        return self.batch_timeout_ms / 1000.0

    def url_for(self, kind: str) -> str:
        """Message kinds are addressed by path suffix: <endpoint_base>/<kind>."""
        return f"{self.endpoint_base.rstrip('/')}/{kind}"
