"""
Client side of the recorder: buffers capture-engine events and ships them
to the ingestion API.

    config = RecorderConfig(endpoint_base="http://localhost:8080/api/sessions")
    recorder = SessionRecorder(config, engine, page, lifecycle=lifecycle)
    recorder.start()
"""
from recorder.client.buffer import BatchBuffer
from recorder.client.config import RecorderConfig
from recorder.client.engines import CaptureEngine, PageInfo, ReplayEngine, generate_session_id
from recorder.client.lifecycle import PageLifecycle, Subscription
from recorder.client.recorder import SessionRecorder
from recorder.client.transport import BeaconSender, Transport

__all__ = [
    "BatchBuffer",
    "BeaconSender",
    "CaptureEngine",
    "PageInfo",
    "PageLifecycle",
    "RecorderConfig",
    "ReplayEngine",
    "SessionRecorder",
    "Subscription",
    "Transport",
    "generate_session_id",
]
