"""Pydantic models describing esbuild invocations and their outcome."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EsBuildConfig(BaseModel):
    """Options rendered into the esbuild command line."""

    entry_points: List[str] = Field(default_factory=list)
    outdir: Optional[str] = None
    watch: bool = False
    bundle: bool = True
    minify: bool = False
    sourcemap: Union[bool, str] = False
    splitting: bool = False
    format: Optional[str] = Field(default="esm", description="esm, cjs or iife.")
    platform: Optional[str] = None
    target: Optional[str] = None
    loader: Dict[str, str] = Field(default_factory=dict, description="Extension to loader, e.g. {'.svg': 'file'}.")
    external: List[str] = Field(default_factory=list)
    public_path: Optional[str] = None
    entry_names: Optional[str] = None
    chunk_names: Optional[str] = None
    asset_names: Optional[str] = None
    log_level: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict, description="Passthrough flags rendered as --key=value.")

    model_config = ConfigDict(extra="forbid")

    def to_args(self) -> List[str]:
        if not self.entry_points:
            raise ValueError("esbuild requires at least one entry point")
        if not self.outdir:
            raise ValueError("esbuild requires an output directory")

        args: List[str] = []
        if self.bundle:
            args.append("--bundle")
        if self.minify:
            args.append("--minify")
        if self.sourcemap is True:
            args.append("--sourcemap")
        elif self.sourcemap:
            args.append(f"--sourcemap={self.sourcemap}")
        if self.splitting:
            args.append("--splitting")
        for flag, value in (
            ("format", self.format),
            ("platform", self.platform),
            ("target", self.target),
            ("public-path", self.public_path),
            ("entry-names", self.entry_names),
            ("chunk-names", self.chunk_names),
            ("asset-names", self.asset_names),
            ("log-level", self.log_level),
        ):
            if value:
                args.append(f"--{flag}={value}")
        for extension, loader in sorted(self.loader.items()):
            args.append(f"--loader:{extension}={loader}")
        for module in self.external:
            args.append(f"--external:{module}")
        args.extend(_render_options(self.options))
        if self.watch:
            args.append("--watch=forever")
        args.append(f"--outdir={self.outdir}")
        args.extend(self.entry_points)
        return args


def _render_options(options: Dict[str, Any]) -> List[str]:
    rendered: List[str] = []
    for key, value in options.items():
        flag = key.replace("_", "-")
        if value is None or value is False:
            continue
        if value is True:
            rendered.append(f"--{flag}")
        elif isinstance(value, (list, tuple)):
            rendered.extend(f"--{flag}={item}" for item in value)
        else:
            rendered.append(f"--{flag}={value}")
    return rendered


class BuildLocation(BaseModel):
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    line_text: Optional[str] = Field(default=None, alias="lineText")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BuildMessage(BaseModel):
    """One problem reported by esbuild for a build cycle."""

    text: str
    location: Optional[BuildLocation] = None

    model_config = ConfigDict(extra="ignore")


class BuildEvent(BaseModel):
    """Outcome of one watch-mode rebuild."""

    success: bool
    errors: List[BuildMessage] = Field(default_factory=list)
    warnings: List[BuildMessage] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class ExecuteResult(BaseModel):
    returncode: int
    output: str = ""


class BundleResult(BaseModel):
    dist: Path
    result: ExecuteResult
