from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError
from .formats import OutputFormat
from .io import read_mapping

CONFIG_FILENAMES = ("srcset.toml", "srcset.yaml", "srcset.yml")
CONFIG_SECTION = "srcset"

DEFAULT_INCLUDE = ("**/*.html",)
DEFAULT_EXCLUDE: tuple[str, ...] = ()
DEFAULT_WIDTHS = (320, 640, 768, 1024, 1280, 1600)
DEFAULT_FORMATS = {
    OutputFormat.PNG: True,
    OutputFormat.WEBP: True,
    OutputFormat.AVIF: False,
    OutputFormat.JPEG: True,
}
DEFAULT_QUALITY = 80
DEFAULT_OUT_DIR = "dist"
DEFAULT_ASSETS_DIR = "assets"


class OutputFormatFlags(BaseModel):
    model_config = ConfigDict(extra="forbid")
    png: Optional[bool] = None
    webp: Optional[bool] = None
    avif: Optional[bool] = None
    jpeg: Optional[bool] = None


class UserOptions(BaseModel):
    """Overrides supplied by the user; anything left as None takes the default."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)
    include: Optional[list[str]] = None
    exclude: Optional[list[str]] = None
    output_widths: Optional[list[int]] = Field(default=None, alias="outputWidths")
    output_formats: Optional[OutputFormatFlags] = Field(default=None, alias="outputFormats")
    asset_name_prefix: Optional[str] = Field(default=None, alias="assetNamePrefix")
    quality: Optional[int] = None

    @field_validator("output_widths")
    @classmethod
    def validate_widths(cls, v: Optional[list[int]]) -> Optional[list[int]]:
        if v is not None:
            bad = [w for w in v if w <= 0]
            if bad:
                raise ValueError(f"output widths must be positive integers, got {bad}")
        return v


class ResolvedOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    include: tuple[str, ...] = DEFAULT_INCLUDE
    exclude: tuple[str, ...] = DEFAULT_EXCLUDE
    output_widths: tuple[int, ...] = DEFAULT_WIDTHS
    output_formats: tuple[OutputFormat, ...]
    asset_name_prefix: str = ""
    quality: int = Field(default=DEFAULT_QUALITY, ge=1, le=100)
    root: Optional[Path] = None
    public_dir: Optional[Path] = None
    out_dir: str = DEFAULT_OUT_DIR
    assets_dir: str = DEFAULT_ASSETS_DIR

    @field_validator("output_formats")
    @classmethod
    def validate_formats(cls, v: tuple[OutputFormat, ...]) -> tuple[OutputFormat, ...]:
        if not v:
            raise ValueError("at least one output format must be enabled")
        order = list(OutputFormat)
        return tuple(sorted(set(v), key=order.index))

    @property
    def roots_configured(self) -> bool:
        return self.root is not None and self.public_dir is not None

    def with_roots(
        self,
        root: str | Path,
        public_dir: str | Path = "public",
        assets_dir: Optional[str] = None,
        out_dir: Optional[str] = None,
    ) -> "ResolvedOptions":
        root_path = Path(root)
        public_path = Path(public_dir)
        if not public_path.is_absolute():
            public_path = root_path / public_path
        assets_path = (assets_dir or self.assets_dir).strip("/")
        if not assets_path:
            raise ConfigurationError(f"assets_dir must name a directory, got {assets_dir!r}")
        return self.model_copy(
            update={
                "root": root_path,
                "public_dir": public_path,
                "assets_dir": assets_path,
                "out_dir": out_dir or self.out_dir,
            }
        )

    def _require_roots(self) -> None:
        if not self.roots_configured:
            raise ConfigurationError(
                "Filesystem roots are not configured; call with_roots() before rendering"
            )

    def source_path(self, src: str) -> Path:
        self._require_roots()
        return self.public_dir / src.lstrip("/")

    def output_dir(self) -> Path:
        self._require_roots()
        return self.root / self.out_dir / self.assets_dir


OptionsInput = Union[UserOptions, Mapping[str, Any], None]


def resolve_options(overrides: OptionsInput = None, path: Optional[Path] = None) -> ResolvedOptions:
    """Merge user overrides onto the defaults and validate the result once."""
    try:
        if overrides is None:
            user = UserOptions()
        elif isinstance(overrides, UserOptions):
            user = overrides
        else:
            user = UserOptions.model_validate(dict(overrides))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options: {e}", path=path) from e

    flags = dict(DEFAULT_FORMATS)
    if user.output_formats is not None:
        for fmt in OutputFormat:
            enabled = getattr(user.output_formats, fmt.value)
            if enabled is not None:
                flags[fmt] = enabled

    try:
        return ResolvedOptions(
            include=tuple(user.include) if user.include is not None else DEFAULT_INCLUDE,
            exclude=tuple(user.exclude) if user.exclude is not None else DEFAULT_EXCLUDE,
            output_widths=(
                tuple(user.output_widths) if user.output_widths is not None else DEFAULT_WIDTHS
            ),
            output_formats=tuple(fmt for fmt, enabled in flags.items() if enabled),
            asset_name_prefix=user.asset_name_prefix or "",
            quality=user.quality if user.quality is not None else DEFAULT_QUALITY,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options: {e}", path=path) from e


def load_config(config_path: Path) -> UserOptions:
    if not config_path.exists():
        raise ConfigurationError("Config file not found", path=config_path)

    try:
        data = read_mapping(config_path)
    except Exception as e:
        raise ConfigurationError(f"Failed to parse config: {e}", path=config_path) from e

    section = data.get(CONFIG_SECTION, data)
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{CONFIG_SECTION}] must be a table", path=config_path)

    try:
        return UserOptions.model_validate(section)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", path=config_path) from e


def find_config(start_dir: Optional[Path] = None) -> Optional[Path]:
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()
    for directory in [current, *current.parents]:
        for name in CONFIG_FILENAMES:
            candidate = directory / name
            if candidate.exists():
                return candidate
    return None
