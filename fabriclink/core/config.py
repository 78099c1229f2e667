"""Application configuration loaded from environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend
    backend_host: str = "0.0.0.0"
    backend_port: int = 9200
    log_level: str = "INFO"

    # Paths (relative to project root)
    maps_dir: str = "maps"

    # Header resolution
    fuzzy_min_confidence: float = 0.5

    # Merged-cell reconstruction
    merge_max_distance: int = 3
    category_row_min_cells: int = 5
    category_row_min_fill_ratio: float = 0.3
    # Columns whose values legitimately span several spreadsheet rows.
    # Port columns must never be listed here.
    merge_fields: list[str] = [
        "server_label",
        "switch_label",
        "is_external",
        "link_group_ifname",
        "link_group_lag_mode",
        "link_group_ct_names",
        "server_tags",
    ]

    @property
    def project_root(self) -> Path:
        return Path(__file__).parent.parent.parent

    model_config = {"env_file": ".env", "env_prefix": "", "extra": "ignore"}


settings = Settings()
