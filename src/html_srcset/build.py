from __future__ import annotations

import concurrent.futures as cf
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .filters import normalize_path
from .markup import has_markers
from .options import OptionsInput
from .plugin import HtmlSrcsetPlugin
from .provenance import VariantLog
from .render.codec import ImageCodec

logger = logging.getLogger(__name__)

STATE_DIRNAME = ".srcset"
SKIP_DIRNAMES = {"node_modules", ".git"}


@dataclass
class DocumentResult:
    path: str
    included: bool
    changed: bool = False
    rewritten: int = 0
    failures: list[str] = field(default_factory=list)
    output_path: Optional[Path] = None
    duration_sec: float = 0.0
    error: Optional[str] = None


@dataclass
class BuildResult:
    success: bool
    output_dir: Optional[Path] = None
    documents: list[DocumentResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_sec: float = 0.0

    @property
    def rewritten(self) -> int:
        return sum(d.rewritten for d in self.documents)


def discover_documents(root: Path, skip_dirs: list[Path]) -> list[Path]:
    skip = [d.resolve() for d in skip_dirs]
    found: list[Path] = []
    for path in sorted(root.rglob("*.html")):
        if not path.is_file():
            continue
        rel_parts = path.relative_to(root).parts[:-1]
        if any(part.startswith(".") or part in SKIP_DIRNAMES for part in rel_parts):
            continue
        resolved = path.resolve()
        if any(resolved.is_relative_to(d) for d in skip):
            continue
        found.append(path)
    return found


def _process_document(
    plugin: HtmlSrcsetPlugin,
    root: Path,
    out_root: Path,
    doc: Path,
    dry_run: bool,
) -> DocumentResult:
    start = time.monotonic()
    rel = normalize_path(doc.relative_to(root).as_posix())
    included = plugin.should_process(rel)
    result = DocumentResult(path=rel, included=included)

    try:
        html = doc.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        result.error = f"Failed reading {rel}: {e}"
        result.duration_sec = time.monotonic() - start
        return result

    if dry_run:
        result.changed = included and has_markers(html)
        result.duration_sec = time.monotonic() - start
        return result

    rewrite = plugin.transform_document(html, rel)
    output = html
    if rewrite is not None:
        output = rewrite.html
        result.changed = rewrite.changed
        result.rewritten = rewrite.rewritten
        result.failures = list(rewrite.failures)

    out_path = out_root / rel
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(output, encoding="utf-8")
        result.output_path = out_path
    except OSError as e:
        result.error = f"Failed writing {out_path}: {e}"

    result.duration_sec = time.monotonic() - start
    return result


def build_site(
    root: Path,
    public_dir: str | Path = "public",
    out_dir: str = "dist",
    assets_dir: str = "assets",
    options: OptionsInput = None,
    threads: int = 4,
    dry_run: bool = False,
    codec: Optional[ImageCodec] = None,
) -> BuildResult:
    """Transform every HTML document under root into root/out_dir.

    Each document is an independent task. Configuration errors abort the
    build; image failures only leave the affected elements unchanged.
    """
    start = time.monotonic()
    root = Path(root)
    out_root = root / out_dir
    variant_log = VariantLog(out_root / STATE_DIRNAME / "variants.jsonl")

    plugin = HtmlSrcsetPlugin(options, codec=codec, on_source_set=variant_log)
    plugin.configure(root, public_dir, assets_dir=assets_dir, out_dir=out_dir)

    result = BuildResult(success=False, output_dir=out_root)
    docs = discover_documents(root, [plugin.options.public_dir, out_root])
    if not docs:
        result.warnings.append(f"No HTML documents found under {root}")

    with cf.ThreadPoolExecutor(max_workers=max(1, threads)) as ex:
        futures = [ex.submit(_process_document, plugin, root, out_root, d, dry_run) for d in docs]
        for fut in cf.as_completed(futures):
            result.documents.append(fut.result())

    result.documents.sort(key=lambda d: d.path)
    for doc in result.documents:
        if doc.error:
            result.errors.append(doc.error)
        for src in doc.failures:
            result.warnings.append(f"{doc.path}: image left unchanged: {src}")

    result.success = not result.errors
    result.duration_sec = time.monotonic() - start
    if not dry_run:
        _write_build_log(result, out_root / STATE_DIRNAME)
    return result


def _write_build_log(result: BuildResult, state_dir: Path) -> Path:
    state_dir.mkdir(parents=True, exist_ok=True)
    log_path = state_dir / "build.log"
    lines = [
        f"Build {'SUCCESS' if result.success else 'FAILED'}",
        f"Documents: {len(result.documents)}, elements rewritten: {result.rewritten}",
        "",
        "Documents:",
    ]
    for doc in result.documents:
        if not doc.included:
            status = "-"
        elif doc.error:
            status = "✗"
        else:
            status = "✓"
        lines.append(f"  {status} {doc.path}: {doc.rewritten} rewritten ({doc.duration_sec:.2f}s)")

    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        for w in result.warnings:
            lines.append(f"  - {w}")

    if result.errors:
        lines.append("")
        lines.append("Errors:")
        for e in result.errors:
            lines.append(f"  - {e}")

    log_path.write_text("\n".join(lines), encoding="utf-8")
    return log_path
