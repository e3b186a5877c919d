from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


SnapshotFormat = Literal["png", "jpeg"]


class SourceConfig(BaseModel):
    """
    A base-map tile source that snapshots can be rendered from.

    `tiles` is a URL template with `{z}`, `{x}`, `{y}` placeholders.
    """

    id: str = Field(pattern=r"^[A-Za-z][-A-Za-z0-9_]*$")
    public: bool = True
    static: bool = False
    formats: list[str] = Field(default_factory=lambda: ["png"])
    maxwidth: int = Field(default=1024, ge=1)
    maxheight: int = Field(default=1024, ge=1)
    minzoom: int = Field(default=0, ge=0)
    maxzoom: int = Field(default=18, ge=0, le=30)
    tiles: str
    # Extra headers attached to every snapshot response of this source.
    headers: dict[str, str] = Field(default_factory=dict)
    jpegQuality: int = Field(default=90, ge=1, le=100)
    timeoutS: float = Field(default=10.0, gt=0.0)

    @model_validator(mode="after")
    def _check_zoom_range(self) -> "SourceConfig":
        if self.minzoom > self.maxzoom:
            raise ValueError(f"Source '{self.id}': minzoom > maxzoom")
        return self


class AllowedDomains(BaseModel):
    https: list[str] = Field(default_factory=list)
    http: list[str] = Field(default_factory=list)


class MapdataConfig(BaseModel):
    apiPath: str = "/w/api.php"
    timeoutS: float = Field(default=10.0, gt=0.0)
    userAgent: str = "snapshot-service"


class ServiceConfig(BaseModel):
    sources: list[SourceConfig] = Field(default_factory=list)
    # Overlays are enabled only when this is set.
    allowedDomains: AllowedDomains | None = None
    mapdata: MapdataConfig = Field(default_factory=MapdataConfig)
