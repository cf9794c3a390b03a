import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass
class Settings:
    # Ledger
    admin_identity: str = os.getenv("LEDGER_ADMIN", "admin")
    identity: str = os.getenv("LEDGER_IDENTITY", os.getenv("LEDGER_ADMIN", "admin"))
    db_file: str = os.getenv("LEDGER_DB_FILE", "ledger.db")

    # Networks: "local" opens db_file directly, "remote" talks to the API
    network: str = os.getenv("LEDGER_NETWORK", "local")
    remote_url: str = os.getenv("LEDGER_REMOTE_URL", "http://127.0.0.1:8000")
    http_timeout: float = float(os.getenv("LEDGER_HTTP_TIMEOUT", "10"))

    # API
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")

    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
