"""
Configuration loader for nomenclature datasets.

Handles loading version and correlation file locations from YAML files and
building a ready-to-query catalog from them.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import logging

from tqdm import tqdm

from .correlation import CorrelationTable
from .registry import NomenclatureCatalog, NomenclatureRegistry

logger = logging.getLogger(__name__)

_VERSION_KEYS = {
    "entries", "delimiter", "encoding", "code_column", "description_column",
    "effective_from", "effective_to", "current", "jurisdictions",
}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    # Relative paths resolve against the config file unless base_dir says otherwise
    config.setdefault("base_dir", str(config_path.parent))

    logger.info(f"Loaded configuration from {config_path}")
    return config


def get_version_config(
    config: Dict[str, Any],
    version: str
) -> Optional[Dict[str, Any]]:
    """
    Get configuration for a specific nomenclature version.

    Args:
        config: Full configuration dictionary
        version: Version identifier (e.g. "2022")

    Returns:
        Version configuration or None if not found
    """
    versions = config.get("versions") or {}
    return versions.get(str(version))


def get_search_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Search mode and limit from the config, falling back to prefix/10."""
    search = config.get("search") or {}
    return {
        "mode": search.get("mode", "prefix"),
        "limit": int(search.get("limit", 10)),
    }


def _resolve(config: Dict[str, Any], path: str) -> Path:
    path = Path(path)
    if path.is_absolute():
        return path
    return Path(config.get("base_dir", ".")) / path


def build_catalog(
    config: Dict[str, Any],
    show_progress: bool = False
) -> Tuple[NomenclatureCatalog, Optional[CorrelationTable]]:
    """
    Load every configured version and correlation table.

    Args:
        config: Configuration dictionary (see DEFAULT_CONFIG)
        show_progress: Show a progress bar while loading versions

    Returns:
        Tuple of (catalog, correlation table or None when none is configured)
    """
    catalog = NomenclatureCatalog()
    versions = config.get("versions") or {}

    items = list(versions.items())
    if show_progress:
        items = tqdm(items, desc="Loading versions", unit="version")

    for version, version_cfg in items:
        version = str(version)
        unknown = set(version_cfg) - _VERSION_KEYS
        if unknown:
            raise ValueError(f"Unknown keys for version {version}: {sorted(unknown)}")

        registry = NomenclatureRegistry.from_file(
            _resolve(config, version_cfg["entries"]),
            version=version,
            delimiter=version_cfg.get("delimiter", ","),
            encoding=version_cfg.get("encoding", "utf-8"),
            code_column=version_cfg.get("code_column", "code"),
            description_column=version_cfg.get("description_column", "description"),
        )
        catalog.add_registry(
            registry,
            effective_from=version_cfg.get("effective_from"),
            effective_to=version_cfg.get("effective_to"),
            make_current=version_cfg.get("current"),
        )

        for jurisdiction, national_cfg in (version_cfg.get("jurisdictions") or {}).items():
            if isinstance(national_cfg, str):
                national_cfg = {"entries": national_cfg}
            national = NomenclatureRegistry.from_file(
                _resolve(config, national_cfg["entries"]),
                version=version,
                jurisdiction=str(jurisdiction),
                delimiter=national_cfg.get("delimiter", ","),
                encoding=national_cfg.get("encoding", "utf-8"),
            )
            catalog.add_registry(national)

    tables = []
    for correlation_cfg in config.get("correlations") or []:
        if isinstance(correlation_cfg, str):
            correlation_cfg = {"file": correlation_cfg}
        tables.append(CorrelationTable.from_file(
            _resolve(config, correlation_cfg["file"]),
            delimiter=correlation_cfg.get("delimiter", ","),
            encoding=correlation_cfg.get("encoding", "utf-8"),
        ))

    table = None
    if tables:
        table = tables[0] if len(tables) == 1 else CorrelationTable.merge(*tables)

    logger.info(
        f"Built catalog with versions {catalog.versions()} "
        f"and {len(table) if table else 0} correlation edges"
    )
    return catalog, table


# Default configuration template
DEFAULT_CONFIG = """
# HS Code Mapper Configuration
#
# This file defines the nomenclature datasets and correlation tables to load

versions:
  "2017":
    entries: "data/hs2017_entries.csv"
    delimiter: ","
    encoding: "utf-8"
    code_column: "code"
    description_column: "description"
    effective_from: "2017-01-01"
    effective_to: "2022-01-01"

  "2022":
    entries: "data/hs2022_entries.csv"
    effective_from: "2022-01-01"
    current: true
    jurisdictions:
      US: "data/hts2022_us_entries.csv"

correlations:
  - file: "data/hs2017_hs2022_correlation.csv"

search:
  mode: "prefix"
  limit: 10

log_level: "INFO"

# Base directory for relative paths (defaults to the config file's directory)
# base_dir: "."
"""


def create_default_config(output_path: str):
    """
    Create a default configuration file.

    Args:
        output_path: Path where to save the config file
    """
    output_path = Path(output_path)

    if output_path.exists():
        logger.warning(f"Config file already exists: {output_path}")
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(DEFAULT_CONFIG)

    logger.info(f"Created default config at {output_path}")
