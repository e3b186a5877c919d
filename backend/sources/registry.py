from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

from sources.tiles import HttpTileSource, TileSource
from sources.types import ServiceConfig, SourceConfig


def _repo_root() -> Path:
    # .../backend/sources/registry.py -> repo root is 2 levels up
    return Path(__file__).resolve().parents[2]


def config_path() -> Path:
    return Path(
        os.getenv("SNAPSHOT_CONFIG_PATH")
        or (_repo_root() / "config" / "snapshot.yaml")
    )


@dataclass(frozen=True)
class Source:
    config: SourceConfig
    tiles: TileSource

    @property
    def id(self) -> str:
        return self.config.id


class UnknownSourceError(LookupError):
    def __init__(self, source_id: str):
        super().__init__(f"Unknown source: {source_id}")
        self.source_id = source_id


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid service config yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def load_config() -> ServiceConfig:
    path = config_path()
    if not path.exists():
        raise FileNotFoundError(f"Service config not found: {path}")
    return ServiceConfig.model_validate(_load_yaml(path))


def build_sources(cfg: ServiceConfig) -> dict[str, Source]:
    out: dict[str, Source] = {}
    for src in cfg.sources:
        if src.id in out:
            raise ValueError(f"Duplicate source id: {src.id}")
        out[src.id] = Source(
            config=src, tiles=HttpTileSource(src.tiles, timeout_s=src.timeoutS)
        )
    return out


class SourceRegistry:
    """
    Read-only lookup of configured sources, built once at startup.
    """

    def __init__(self, sources: dict[str, Source]):
        self._sources = dict(sources)

    def __iter__(self):
        return iter(self._sources.values())

    def __len__(self) -> int:
        return len(self._sources)

    def get_public(self, source_id: str) -> Source:
        src = self._sources.get(source_id)
        if src is None or not src.config.public:
            raise UnknownSourceError(source_id)
        return src

    async def close(self) -> None:
        for src in self._sources.values():
            close = getattr(src.tiles, "close", None)
            if close is not None:
                await close()


def clear_config_cache() -> None:
    """
    Forget the parsed config so the next `load_config()` re-reads the file.
    """
    load_config.cache_clear()
