from __future__ import annotations

import enum
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Union

import numpy as np

from raster import Raster


# =============== Transform kinds ===============
class TransformKind(str, enum.Enum):
    INVERT = "invert"
    GRAYSCALE = "grayscale"
    SEPIA = "sepia"
    BRIGHTEN = "brighten"
    SHIFT_RIGHT = "shift_right"
    SHIFT_LEFT = "shift_left"
    EMBOSS = "emboss"
    BLUR = "blur"
    GRAY_WORLD = "gray_world"
    AUTOLEVELS = "autolevels"
    IDEAL_REFLECTOR = "ideal_reflector"
    DILATE = "dilate"
    ERODE = "erode"
    MEDIAN = "median"
    SOBEL = "sobel"
    SCHARR = "scharr"

    @classmethod
    def parse(cls, name: Union[str, "TransformKind"]) -> "TransformKind":
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower().replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise KeyError(f"Unknown transform '{name}'. Available: {', '.join(k.value for k in cls)}") from None


# =============== Base ===============
@dataclass
class BaseTransform:
    """One output row at a time, computed only from the untouched source.

    Two-pass transforms override `prepare` to scan the whole source once;
    the driver hands the returned statistic back to every `compute_row` call
    of that pass.
    """
    def prepare(self, source: Raster) -> Optional[Any]:
        return None

    def compute_row(self, source: Raster, y: int, stats: Optional[Any] = None) -> np.ndarray:  # pragma: no cover
        """Return the (W, 3) RGB values of output row y."""
        raise NotImplementedError

    def params(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============== Registry ===============
class TransformRegistry:
    def __init__(self) -> None:
        self._by_kind: Dict[TransformKind, type[BaseTransform]] = {}

    def register(self, kind: Union[str, TransformKind], cls: type[BaseTransform]) -> None:
        self._by_kind[TransformKind.parse(kind)] = cls

    def names(self) -> list[str]:
        return sorted(k.value for k in self._by_kind)

    def __contains__(self, kind: object) -> bool:
        try:
            return TransformKind.parse(kind) in self._by_kind  # type: ignore[arg-type]
        except KeyError:
            return False

    def get(self, kind: Union[str, TransformKind]) -> type[BaseTransform]:
        key = TransformKind.parse(kind)
        if key not in self._by_kind:
            raise KeyError(f"No transform registered for '{key.value}'. Available: {', '.join(self.names()) or '(none)'}")
        return self._by_kind[key]

    def create(self, kind: Union[str, TransformKind], **kwargs) -> BaseTransform:
        cls = self.get(kind)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise TypeError(f"{cls.__name__} got unknown parameter(s): {', '.join(unknown)}")
        return cls(**kwargs)


REGISTRY = TransformRegistry()
