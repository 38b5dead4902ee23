from __future__ import annotations

import argparse
import io
import logging
import mimetypes
import os
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse, unquote

import requests
from PIL import Image, ImageOps

# Import registry & transforms (registration happens at import time)
from driver import BackgroundPass, Stage, run_pipeline
from raster import Raster
from registry import REGISTRY, TransformKind

# =============== Logging ===============
log = logging.getLogger("pixelfx")


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== Input: fetch & decode ===============
class FileFetcher:
    """Read bytes from an http(s) URL, a file:// URL or a local path."""

    def __init__(self, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "pixelfx/1.0"})

    def fetch(self, src: str) -> Tuple[bytes, Optional[str]]:
        parsed = urlparse(src)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            log.info("Fetching: %s", src)
            r = self._session.get(src, timeout=self.timeout)
            r.raise_for_status()
            return r.content, r.headers.get("Content-Type")
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            return self._fetch_local(local_path)
        # single letters are Windows drive prefixes, not schemes
        if scheme == "" or len(scheme) == 1:
            return self._fetch_local(src)
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    @staticmethod
    def _fetch_local(path_str: str) -> Tuple[bytes, Optional[str]]:
        p = Path(path_str)
        if not p.is_file():
            raise FileNotFoundError(f"Input file not found: {p}")
        return p.read_bytes(), mimetypes.guess_type(p.name)[0]


class ImageLoader:
    """Decode bytes into an RGB/RGBA raster. Optional max-size for speed/RAM."""

    def load(self, raw: bytes, *, max_size: Optional[int] = None) -> Raster:
        try:
            img = Image.open(io.BytesIO(raw))
            img.load()
        except Exception as e:
            raise ValueError(f"Failed to decode image: {e}") from e

        img = ImageOps.exif_transpose(img)
        if img.mode == "L":
            img = ImageOps.colorize(img, "black", "white")
        img = img.convert("RGBA" if "A" in img.getbands() else "RGB")

        if max_size:
            img.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
        return Raster.from_pil(img)


def _infer_format_from_path(p: Path) -> str:
    ext = p.suffix.lower()
    if ext in (".jpg", ".jpeg"):
        return "JPEG"
    if ext == ".bmp":
        return "BMP"
    if ext == ".webp":
        return "WEBP"
    return "PNG"


def save_raster(raster: Raster, out: Path) -> None:
    img = raster.to_pil()
    fmt = _infer_format_from_path(out)
    if fmt in ("JPEG", "BMP") and img.mode == "RGBA":
        img = img.convert("RGB")
    out.parent.mkdir(parents=True, exist_ok=True)
    img.save(out, format=fmt)


# =============== Extras (k=v parameter overrides) ===============
def _coerce(v: str) -> Any:
    if v.isdigit() or (v.startswith("-") and v[1:].isdigit()):
        return int(v)
    try:
        return float(v)
    except ValueError:
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
    return v


def _parse_kv_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for p in pairs or []:
        if "=" not in p:
            raise ValueError(f"Expected key=value, got '{p}'")
        k, v = p.split("=", 1)
        out[k.strip()] = _coerce(v.strip())
    return out


def _parse_pipeline(text: str) -> List[str]:
    stages = [s.strip().lower() for s in text.split("|") if s.strip()]
    if not stages:
        raise ValueError("Empty --pipeline. Example: grayscale|sobel")
    return stages


def _split_stage_extras(stages: List[str], raw_extras: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Extras can be:
      - Unprefixed:        key=val          (applies to every stage that has `key`)
      - By name:           name.key=val     (applies to stages called `name`; must be in the pipeline)
      - By index (0-based) 0.key=val        (applies to the stage at index 0)
      - 'all.key=val'      alias of unprefixed
    Merge order per stage: (unprefixed/all) -> (by-name) -> (by-index).
    Unprefixed keys are dropped for stages that do not take them.
    """
    global_extras: Dict[str, Any] = {}
    name_targets: Dict[str, Dict[str, Any]] = {}
    index_targets: Dict[int, Dict[str, Any]] = {}

    for k, v in raw_extras.items():
        if "." not in k:
            global_extras[k] = v
            continue
        prefix, key = k.split(".", 1)
        prefix = prefix.strip().lower()
        key = key.strip()
        if prefix == "all":
            global_extras[key] = v
        elif prefix.isdigit():
            idx = int(prefix)
            if not 0 <= idx < len(stages):
                raise ValueError(f"Extra '{k}' targets stage {idx}, pipeline has {len(stages)}")
            index_targets.setdefault(idx, {})[key] = v
        else:
            try:
                name = TransformKind.parse(prefix).value
            except KeyError:
                raise ValueError(f"Extra '{k}' targets unknown transform '{prefix}'") from None
            if name not in stages:
                raise ValueError(f"Extra '{k}' targets '{name}', which is not in the pipeline")
            name_targets.setdefault(name, {})[key] = v

    stage_extras: List[Dict[str, Any]] = []
    for i, name in enumerate(stages):
        accepted = set(REGISTRY.create(name).params())
        merged = {k: v for k, v in global_extras.items() if k in accepted}
        merged.update(name_targets.get(name, {}))
        merged.update(index_targets.get(i, {}))
        stage_extras.append(merged)
    return stage_extras


def _build_stages(pipeline: str, extra: Optional[List[str]]) -> List[Stage]:
    names = _parse_pipeline(pipeline)
    unknown = [s for s in names if s not in REGISTRY]
    if unknown:
        raise SystemExit(f"Unknown transform(s) in pipeline: {', '.join(unknown)}")
    # canonical names so name.key extras match however the stage was spelled
    stages = [TransformKind.parse(s).value for s in names]
    stage_extras = _split_stage_extras(stages, _parse_kv_pairs(extra))
    return list(zip(stages, stage_extras))


class _ProgressLogger:
    """Log pipeline progress every `step` percent at DEBUG."""

    def __init__(self, step: int = 10) -> None:
        self.step = step
        self._last = -step

    def __call__(self, pct: int) -> None:
        if pct >= self._last + self.step or (pct == 100 and self._last != 100):
            self._last = pct
            log.debug("Progress: %d%%", pct)


# =============== CLI ===============
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Apply pixel transforms to an image (pipeline support)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")

    sub = p.add_subparsers(dest="cmd", required=True)

    lp = sub.add_parser("list", help="List transforms and their parameters.")
    lp.set_defaults(func=cmd_list)

    rp = sub.add_parser("run", help="Run one or more transforms (pipeline).")
    rp.add_argument("--url", required=True, help="HTTP(S) URL, file:// URL, or local path.")
    rp.add_argument("--pipeline", required=True, help="Pipe transforms as 't1|t2|t3'. (Quote on PowerShell)")
    rp.add_argument("--out", type=Path, required=True, help="Output image file (png/jpg/bmp/webp).")
    rp.add_argument("--max-size", type=int, default=None, help="Downscale input longest side before processing.")
    rp.add_argument("--reverse", action="store_true", help="Visit rows bottom to top (same result).")
    rp.add_argument(
        "--extra",
        nargs="*",
        help=(
            "Extra k=v pairs. Unprefixed apply to every stage that accepts the key. "
            "Use name.key=val or index.key=val for per-stage (e.g., sepia.k=30 or 1.shift=25)."
        ),
    )
    rp.set_defaults(func=cmd_run)

    bp = sub.add_parser("bench", help="Micro-benchmark a pipeline.")
    bp.add_argument("--url", required=True)
    bp.add_argument("--pipeline", required=True, help="Pipe transforms as 't1|t2|t3'.")
    bp.add_argument("--max-size", type=int, default=None)
    bp.add_argument("--runs", type=int, default=3)
    bp.add_argument("--extra", nargs="*")
    bp.set_defaults(func=cmd_bench)

    return p


# =============== Commands ===============
def cmd_list(_args: argparse.Namespace) -> int:
    for name in REGISTRY.names():
        params = REGISTRY.create(name).params()
        shown = ", ".join(f"{k}={v}" for k, v in params.items())
        print(f"{name}{'  (' + shown + ')' if shown else ''}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        # Parse pipeline first (so errors show early)
        stages = _build_stages(args.pipeline, args.extra)

        raw, ctype = FileFetcher().fetch(args.url)
        src = ImageLoader().load(raw, max_size=args.max_size)
        log.info("Loaded %s (%dx%d, %s)", args.url, src.width, src.height, ctype or "unknown type")

        job = BackgroundPass(src, stages, on_progress=_ProgressLogger(), reverse=args.reverse).start()
        try:
            out = job.wait()
        except KeyboardInterrupt:
            # let the worker stop at its next row before giving up
            job.cancel()
            out = job.wait()
        if out is None:
            log.warning("Cancelled; nothing written")
            return 130

        save_raster(out, args.out)
        log.info("Saved %s (%dx%d)", args.out, out.width, out.height)
        return 0

    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        stages = _build_stages(args.pipeline, args.extra)
        raw, _ = FileFetcher().fetch(args.url)
        src = ImageLoader().load(raw, max_size=args.max_size)

        times = []
        for _ in range(max(1, args.runs)):
            t0 = time.perf_counter()
            run_pipeline(src, stages)
            times.append(time.perf_counter() - t0)
        avg = sum(times) / len(times)
        names = "|".join(name for name, _ in stages)
        print(
            f"{names} on {src.width}x{src.height}: {len(times)} run(s) - avg {avg*1000:.2f} ms, "
            f"min {min(times)*1000:.2f} ms, max {max(times)*1000:.2f} ms"
        )
        return 0
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
