from .backends import (
    BackendSelection,
    BackendType,
    LocalModelBackend,
    RemoteAPIBackend,
    SelfHostedServerBackend,
    TranscriptionBackend,
    create_backend,
    select_backend,
)
from .local_model import LocalModelHandle
from .retry import RetryExecutor, RetryPolicy, TranscriptionResult, placeholder_for

__all__ = [
    "BackendSelection",
    "BackendType",
    "TranscriptionBackend",
    "RemoteAPIBackend",
    "SelfHostedServerBackend",
    "LocalModelBackend",
    "create_backend",
    "select_backend",
    "LocalModelHandle",
    "RetryExecutor",
    "RetryPolicy",
    "TranscriptionResult",
    "placeholder_for",
]
