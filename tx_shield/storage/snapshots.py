import os, json, hashlib, time, logging
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

SNAPSHOT_DIR = Path(os.getenv("SNAPSHOT_DIR", "/tmp/tx_shield_snapshots"))

TTL_MIN = int(os.getenv("SNAPSHOT_TTL_MINUTES", "5"))

def cache_key(payload: Mapping[str, Any]) -> str:
    # canonical JSON so key order in the request body does not matter
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)

def _fname(key: str, directory: Optional[Path] = None) -> Path:
    h = hashlib.sha256(key.strip().encode("utf-8")).hexdigest()
    return (directory or SNAPSHOT_DIR) / f"{h}.json"

def save_snapshot(key: str, payload: dict, directory: Optional[Path] = None) -> str:
    path = _fname(key, directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, separators=(",", ":"), default=str)
    os.replace(tmp, path)  # atomic
    return str(path)

def _is_fresh(path: Path, ttl_min: int) -> bool:
    if ttl_min <= 0:
        return True
    try:
        age = time.time() - path.stat().st_mtime
        return age <= ttl_min * 60
    except FileNotFoundError:
        return False

def load_snapshot(key: str, directory: Optional[Path] = None, ttl_min: Optional[int] = None) -> Optional[dict]:
    path = _fname(key, directory)
    if not path.exists():
        return None
    if not _is_fresh(path, TTL_MIN if ttl_min is None else ttl_min):
        clear_snapshot(key, directory)
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("unreadable snapshot %s: %s", path, e)
        return None

def clear_snapshot(key: str, directory: Optional[Path] = None) -> None:
    path = _fname(key, directory)
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("could not remove snapshot %s: %s", path, e)
