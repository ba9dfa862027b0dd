"""Versioned dictionary encoding of values, tangent maps and noise models.

Every encoded entity is a JSON-compatible dict carrying ``"type"`` and
``"version"``. ``decode`` rejects unknown types and versions with
``ValueError``.
"""

import json
import numpy as np
from typing import Any, Callable, Dict

from ..geometry.camera import Cal3_S2, CalibratedCamera, PinholeCamera
from ..geometry.pose2 import Pose2
from ..geometry.pose3 import Pose3, Rot3
from ..optimization.noise import Diagonal, Gaussian, Isotropic, NoiseModel, Robust, Unit
from ..optimization.values import Values, VectorValues

FORMAT_VERSION = 1


def _header(type_name: str) -> Dict[str, Any]:
    return {"type": type_name, "version": FORMAT_VERSION}


def encode(entity: Any) -> Dict[str, Any]:
    """Encode a single entity to a dict."""
    if isinstance(entity, Pose2):
        return {**_header("Pose2"), "x": entity.x(), "y": entity.y(), "theta": entity.theta()}
    elif isinstance(entity, Rot3):
        return {**_header("Rot3"), "matrix": entity.matrix().tolist()}
    elif isinstance(entity, Pose3):
        return {
            **_header("Pose3"),
            "rotation": entity.rotation().matrix().tolist(),
            "translation": entity.translation().tolist(),
        }
    elif isinstance(entity, Cal3_S2):
        return {**_header("Cal3_S2"), "vector": entity.vector().tolist()}
    elif isinstance(entity, CalibratedCamera):
        return {**_header("CalibratedCamera"), "pose": encode(entity.pose())}
    elif isinstance(entity, PinholeCamera):
        return {
            **_header("PinholeCamera"),
            "pose": encode(entity.pose()),
            "calibration": encode(entity.calibration()),
        }
    elif isinstance(entity, (float, int, np.floating)) and not isinstance(entity, bool):
        return {**_header("Scalar"), "value": float(entity)}
    elif isinstance(entity, np.ndarray):
        return {**_header("Vector"), "data": np.asarray(entity, dtype=float).reshape(-1).tolist()}
    elif isinstance(entity, NoiseModel):
        return _encode_noise(entity)
    elif isinstance(entity, Values):
        return encode_values(entity)
    elif isinstance(entity, VectorValues):
        return {
            **_header("VectorValues"),
            "entries": [{"key": key, "vector": v.tolist()} for key, v in entity.items()],
        }
    raise ValueError(f"Cannot encode entity of type {type(entity).__name__}")


def _encode_noise(model: NoiseModel) -> Dict[str, Any]:
    if isinstance(model, Unit):
        return {**_header("Unit"), "dim": model.dim()}
    elif isinstance(model, Isotropic):
        return {**_header("Isotropic"), "dim": model.dim(), "sigma": model.sigma()}
    elif isinstance(model, Diagonal):
        return {**_header("Diagonal"), "sigmas": model.sigmas().tolist()}
    elif isinstance(model, Gaussian):
        return {**_header("Gaussian"), "sqrt_information": model.R().tolist()}
    elif isinstance(model, Robust):
        return {**_header("Robust"), "loss": model.loss_type, "k": model.k, "base": _encode_noise(model.base)}
    raise ValueError(f"Cannot encode noise model of type {type(model).__name__}")


def encode_values(values: Values) -> Dict[str, Any]:
    """Encode a Values with one entry per key, in key order."""
    return {
        **_header("Values"),
        "entries": [{"key": key, "value": encode(value)} for key, value in values.items()],
    }


def decode_values(data: Dict[str, Any]) -> Values:
    values = decode(data)
    if not isinstance(values, Values):
        raise ValueError(f"Expected encoded Values, got {data.get('type')!r}")
    return values


def _decode_values(data: Dict[str, Any]) -> Values:
    values = Values()
    for entry in data["entries"]:
        values.insert(int(entry["key"]), decode(entry["value"]))
    return values


def _decode_vector_values(data: Dict[str, Any]) -> VectorValues:
    return VectorValues({int(entry["key"]): np.array(entry["vector"], dtype=float) for entry in data["entries"]})


_DECODERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "Pose2": lambda d: Pose2(d["x"], d["y"], d["theta"]),
    "Rot3": lambda d: Rot3(np.array(d["matrix"], dtype=float)),
    "Pose3": lambda d: Pose3(Rot3(np.array(d["rotation"], dtype=float)), np.array(d["translation"], dtype=float)),
    "Cal3_S2": lambda d: Cal3_S2.from_vector(np.array(d["vector"], dtype=float)),
    "CalibratedCamera": lambda d: CalibratedCamera(decode(d["pose"])),
    "PinholeCamera": lambda d: PinholeCamera(decode(d["pose"]), decode(d["calibration"])),
    "Scalar": lambda d: float(d["value"]),
    "Vector": lambda d: np.array(d["data"], dtype=float),
    "Unit": lambda d: Unit(d["dim"]),
    "Isotropic": lambda d: Isotropic(d["dim"], d["sigma"]),
    "Diagonal": lambda d: Diagonal(np.array(d["sigmas"], dtype=float)),
    "Gaussian": lambda d: Gaussian(np.array(d["sqrt_information"], dtype=float)),
    "Robust": lambda d: Robust(decode(d["base"]), d["loss"], d["k"]),
    "Values": _decode_values,
    "VectorValues": _decode_vector_values,
}


def decode(data: Dict[str, Any]) -> Any:
    """Decode a dict produced by ``encode``.

    Raises:
        ValueError: If the type is unknown or the version unsupported
    """
    if not isinstance(data, dict) or "type" not in data:
        raise ValueError("Encoded entity must be a dict with a 'type' field")
    type_name = data["type"]
    if type_name not in _DECODERS:
        raise ValueError(f"Unknown entity type: {type_name}")
    version = data.get("version")
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported {type_name} version: {version}")
    try:
        return _DECODERS[type_name](data)
    except KeyError as e:
        raise ValueError(f"Malformed {type_name}: missing field {e}") from None


def save_values(values: Values, path: str) -> None:
    """Write a Values to a JSON file."""
    with open(path, "w") as f:
        json.dump(encode_values(values), f, indent=2)


def load_values(path: str) -> Values:
    """Read a Values written by ``save_values``."""
    with open(path) as f:
        return decode_values(json.load(f))
