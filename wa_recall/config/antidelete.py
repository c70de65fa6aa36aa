import os
from pathlib import Path

from .loader import section

_DEFAULT_DB_FILE = Path(__file__).resolve().parent.parent.parent / "data" / "antidelete.json.gz"


def _flag(raw: object) -> bool:
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


class AntiDelete:
    def __init__(self, config: dict | None = None) -> None:
        cfg = section(config, "antidelete")

        self.ENABLED: bool = _flag(cfg.get("enabled", os.getenv("ANTI_DELETE", "true")))
        # "same" -> original chat, "inbox" -> bot's own account, anything else -> owner DM
        self.PATH: str = str(cfg.get("path", os.getenv("ANTI_DELETE_PATH", "inbox"))).strip().lower()
        self.DB_FILE: str = str(cfg.get("db_file", os.getenv("ANTI_DELETE_DB", str(_DEFAULT_DB_FILE))))

        self.TTL_MINUTES: int = int(cfg.get("ttl_minutes", os.getenv("ANTI_DELETE_TTL_MINUTES", "30")))
        self.MAX_ENTRIES: int = int(cfg.get("max_entries", os.getenv("ANTI_DELETE_MAX_ENTRIES", "1000")))
        self.SWEEP_BATCH: int = int(cfg.get("sweep_batch", os.getenv("ANTI_DELETE_SWEEP_BATCH", "100")))
        self.TIMEZONE: str = str(cfg.get("timezone", os.getenv("TIMEZONE", "America/Port-au-Prince")))

    @property
    def TTL_MS(self) -> int:
        return self.TTL_MINUTES * 60 * 1000
