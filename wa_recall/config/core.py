import os

from .loader import section


class Core:
    def __init__(self, config: dict | None = None) -> None:
        cfg = section(config)

        self.PREFIX: str = str(cfg.get("prefix", os.getenv("PREFIX", ".")))
        self.OWNER_NUMBER: str = str(cfg.get("owner_number", os.getenv("OWNER_NUMBER", ""))).strip()
        self.BRIDGE_URL: str = str(cfg.get("bridge_url", os.getenv("BRIDGE_URL", "ws://localhost:9400/ws/rpc")))

        required = [
            ("OWNER_NUMBER", self.OWNER_NUMBER),
            ("PREFIX", self.PREFIX),
            ("BRIDGE_URL", self.BRIDGE_URL),
        ]
        missing = [name for name, val in required if not val]
        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")

    @property
    def OWNER_JID(self) -> str:
        """Protocol address of the configured owner."""
        return f"{self.OWNER_NUMBER}@s.whatsapp.net"
