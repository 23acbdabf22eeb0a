import os
from typing import List, Optional

import platformdirs

COMPONENTS = ("encoder", "decoder", "joiner")


def get_models_dir() -> str:
    return os.path.join(platformdirs.user_data_dir("podscribe", appauthor=False), "models")


def resolve_model_path(model_id_or_path: str, models_dir: Optional[str] = None) -> str:
    if os.path.isabs(model_id_or_path):
        return model_id_or_path
    return os.path.join(models_dir or get_models_dir(), model_id_or_path)


def _onnx_files(directory: str) -> List[str]:
    try:
        return sorted(f for f in os.listdir(directory) if f.endswith(".onnx"))
    except OSError:
        return []


def find_component(directory: str, component: str, prefer_int8: bool = True) -> Optional[str]:
    """Find the ONNX file for a streaming transducer component.

    Streaming model archives name their files like
    ``encoder-epoch-99-avg-1.int8.onnx``; the int8 variant is preferred.
    """
    candidates = [f for f in _onnx_files(directory) if f.startswith(component)]
    if not candidates:
        return None

    int8 = [f for f in candidates if ".int8." in f]
    plain = [f for f in candidates if ".int8." not in f]
    ordered = (int8 + plain) if prefer_int8 else (plain + int8)
    return os.path.join(directory, ordered[0])


def find_tokens(directory: str) -> Optional[str]:
    path = os.path.join(directory, "tokens.txt")
    return path if os.path.exists(path) else None


def missing_components(model_path: str) -> List[str]:
    missing = [c for c in COMPONENTS if find_component(model_path, c) is None]
    if find_tokens(model_path) is None:
        missing.append("tokens")
    return missing


def is_valid_streaming_model(model_path: str) -> bool:
    return os.path.isdir(model_path) and not missing_components(model_path)
