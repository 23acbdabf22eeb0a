from .registry import (
    AVAILABLE_MODELS,
    DownloadStatus,
    ModelInfo,
    delete_model,
    get_all_models_with_status,
    get_model_by_id,
    get_model_download_status,
    is_model_downloaded,
)

__all__ = [
    "ModelInfo",
    "AVAILABLE_MODELS",
    "DownloadStatus",
    "get_model_by_id",
    "is_model_downloaded",
    "get_model_download_status",
    "get_all_models_with_status",
    "delete_model",
]
