"""Process configuration, read from environment variables."""

import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from pydantic import BaseModel

from .store import File, InMemory, SQLite, Store

StorageKind = Literal["memory", "file", "sqlite"]


class Config(BaseModel):
    """Deployment settings for a Parley process.

    Attributes
    ----------
    default_api_key : str
        Credential for the default provider, provisioned by the deployer
        (``GROQ_API_KEY``). Other providers always need the caller's own key.
    storage : {"memory", "file", "sqlite"}
        Which store backend to build (``PARLEY_STORAGE``).
    data_dir : Path
        Where the file and sqlite backends keep their data
        (``PARLEY_DATA_DIR``).
    """

    default_api_key: str = ""
    storage: StorageKind = "memory"
    data_dir: Path = Path("parley_data")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        environ = os.environ if environ is None else environ
        values = {
            "default_api_key": environ.get("GROQ_API_KEY", ""),
            "storage": environ.get("PARLEY_STORAGE", "memory").lower(),
        }
        if environ.get("PARLEY_DATA_DIR"):
            values["data_dir"] = environ["PARLEY_DATA_DIR"]
        return cls(**values)

    def build_store(self) -> Store:
        if self.storage == "file":
            return File(str(self.data_dir))
        if self.storage == "sqlite":
            return SQLite(str(self.data_dir / "parley.db"))
        return InMemory()
