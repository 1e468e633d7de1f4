"""地図表示設定の読み込み"""
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml

from ...shared.exceptions.errors import ConfigurationError
from ..geocoding.domain.models import Coordinate

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config" / "map_config.yaml"


@lru_cache(maxsize=None)
def load_map_config(config_path: Optional[str] = None) -> dict[str, Any]:
    """
    地図表示設定を読み込む

    Args:
        config_path: 設定ファイルのパス（Noneの場合は同梱の設定）

    Returns:
        dict: 設定内容

    Raises:
        ConfigurationError: 読み込めない、または必須セクションが無い場合
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to load map config {path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigurationError(f"Map config {path} is not a mapping")
    for section in ("map", "styles", "markers"):
        if section not in config:
            raise ConfigurationError(f"Map config {path} has no '{section}' section")
    return config


def style_url(name: str) -> str:
    """
    スタイル名をスタイルURLに変換

    Raises:
        ConfigurationError: 未知のスタイル名の場合
    """
    styles = load_map_config()["styles"]
    if name not in styles:
        raise ConfigurationError(f"Unknown map style: {name} (available: {', '.join(styles)})")
    return styles[name]


def default_center() -> Coordinate:
    center = load_map_config()["map"]["default_center"]
    return Coordinate(longitude=center["longitude"], latitude=center["latitude"])


def default_zoom() -> int:
    return int(load_map_config()["map"]["default_zoom"])


def location_zoom() -> int:
    return int(load_map_config()["map"].get("location_zoom", default_zoom()))
