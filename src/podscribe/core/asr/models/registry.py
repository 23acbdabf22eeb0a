import json
import os
import shutil
from dataclasses import dataclass
from typing import List, Literal, Optional

from ..file_utils import get_models_dir, is_valid_streaming_model

GITHUB_RELEASE_BASE = (
    "https://github.com/k2-fsa/sherpa-onnx/releases/download/asr-models"
)


@dataclass
class ModelInfo:
    id: str
    name: str
    type: str

    @property
    def url(self) -> str:
        return f"{GITHUB_RELEASE_BASE}/{self.id}.tar.bz2"


def load_models() -> List[ModelInfo]:
    json_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), "models.json")
    with open(json_path, "r", encoding="utf-8") as f:
        return [ModelInfo(**item) for item in json.load(f)]


AVAILABLE_MODELS: List[ModelInfo] = load_models()


DownloadStatus = Literal["downloaded", "not_downloaded"]


def get_model_by_id(model_id: str) -> Optional[ModelInfo]:
    for model in AVAILABLE_MODELS:
        if model.id == model_id:
            return model
    return None


def is_model_downloaded(model_id: str, models_dir: Optional[str] = None) -> bool:
    model_path = os.path.join(models_dir or get_models_dir(), model_id)
    return is_valid_streaming_model(model_path)


def get_model_download_status(model_id: str) -> DownloadStatus:
    return "downloaded" if is_model_downloaded(model_id) else "not_downloaded"


def get_all_models_with_status() -> List[tuple[ModelInfo, DownloadStatus]]:
    return [(model, get_model_download_status(model.id)) for model in AVAILABLE_MODELS]


def delete_model(model_id: str) -> tuple[bool, str]:
    model_path = os.path.join(get_models_dir(), model_id)

    if not os.path.exists(model_path):
        return False, f"Model '{model_id}' not found"

    if not os.path.isdir(model_path):
        return False, f"'{model_id}' is not a directory"

    try:
        shutil.rmtree(model_path)
        return True, f"Deleted '{model_id}'"
    except OSError as e:
        return False, f"Failed to delete model: {e}"
