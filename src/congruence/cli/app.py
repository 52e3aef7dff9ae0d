# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import json
import logging
import mimetypes
import os
from pathlib import Path
from typing import Any, Iterator, List, NoReturn, Optional

import typer

from ..domain.config import DEFAULT_CONFIG, LAYER_NAMES, SimilarityConfig, merge_config
from ..domain.errors import AnalysisTimeoutError, ConfigurationError, CongruenceError, FilesystemError
from ..domain.models import FileDescriptor, FileMetadata
from ..ports.filesystem import FilesystemPort
from ..wiring import create_default_service

from ..logging_config import setup_logging

setup_logging()

app = typer.Typer(help="Congruence CLI - multi-layer file similarity analysis")

logger = logging.getLogger(__name__)


def _parse_disable(disable: Optional[str]) -> set[str]:
    """
    Parse and validate --disable value into a normalised set of layer names.
    Raises Typer BadParameter if an unknown layer is provided.
    """
    if not disable:
        return set()
    parts = {p.strip().lower() for p in disable.split(",") if p.strip()}
    unknown = parts - set(LAYER_NAMES)
    if unknown:
        raise typer.BadParameter(
            f"Unknown layer(s): {', '.join(sorted(unknown))}. "
            f"Valid options: {', '.join(LAYER_NAMES)}"
        )
    return parts


class LocalFS(FilesystemPort):
    """Local filesystem adapter that turns paths into descriptor parts."""

    def walk(self, root: Path) -> Iterator[Path]:
        root = Path(root)
        if root.is_file():
            yield root
            return
        for dirpath, _dirnames, filenames in os.walk(root):
            d = Path(dirpath)
            for name in sorted(filenames):
                yield d / name

    def stat(self, path: Path) -> FileMetadata:
        try:
            st = path.stat()
        except OSError as e:
            raise FilesystemError(f"cannot stat {path}: {e}") from e
        mime_type, _encoding = mimetypes.guess_type(path.name)
        return FileMetadata(
            size=st.st_size,
            extension=path.suffix.lower(),
            mime_type=mime_type,
            modified_ns=getattr(st, "st_mtime_ns", int(st.st_mtime * 1e9)),
        )

    def read_text(self, path: Path, max_bytes: int) -> Optional[str]:
        try:
            if path.stat().st_size > max_bytes:
                return None
            data = path.read_bytes()
        except OSError as e:
            raise FilesystemError(f"cannot read {path}: {e}") from e
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("LocalFS.read_text: %s is not UTF-8 text; comparing without content", path)
            return None


def load_descriptor(fs: FilesystemPort, path: Path, config: SimilarityConfig) -> FileDescriptor:
    path = Path(path)
    metadata = fs.stat(path)
    return FileDescriptor(
        path=str(path),
        content=fs.read_text(path, config.max_content_size),
        metadata=metadata,
    )


def _load_config(config_path: Optional[Path], disable: Optional[str]) -> SimilarityConfig:
    disabled = _parse_disable(disable)
    try:
        config = DEFAULT_CONFIG
        if config_path is not None:
            data = json.loads(Path(config_path).read_text(encoding="utf-8"))
            config = SimilarityConfig.from_dict(data)
        if disabled:
            config = merge_config(config, {"enabled_layers": {name: False for name in disabled}})
    except (OSError, ValueError) as e:
        raise typer.BadParameter(f"Cannot read config file: {e}")
    except ConfigurationError as e:
        raise typer.BadParameter(f"Invalid configuration: {e}")
    return config


def _emit(payload: Any, out: Optional[Path]) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if out is None:
        typer.echo(text)
        return
    out = Path(out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text + "\n", encoding="utf-8")
    typer.echo(f"Wrote result to {out}")


def _fail(e: CongruenceError) -> NoReturn:
    label = "Timed out" if isinstance(e, AnalysisTimeoutError) else "Error"
    typer.echo(f"{label}: {e}", err=True)
    raise typer.Exit(code=1)


# ------------------------------
# CLI Commands
# ------------------------------


@app.command()
def compare(
    source: Path = typer.Option(
        ..., "--source", exists=True, dir_okay=False, resolve_path=True, help="First file"
    ),
    target: Path = typer.Option(
        ..., "--target", exists=True, dir_okay=False, resolve_path=True, help="Second file"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", exists=True, dir_okay=False, help="JSON configuration file"
    ),
    disable: Optional[str] = typer.Option(
        None, "--disable", help="Comma-separated layers to turn off: " + ",".join(LAYER_NAMES)
    ),
    out: Optional[Path] = typer.Option(None, "--out", help="Write the JSON result here"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Compare two files and print the similarity verdict as JSON.
    """
    if verbose:
        setup_logging(verbose=True)
        logger.debug("Verbose logging enabled")

    config = _load_config(config_path, disable)
    fs = LocalFS()
    try:
        with create_default_service(config) as service:
            result = service.analyze_similarity(
                load_descriptor(fs, source, config), load_descriptor(fs, target, config)
            )
    except CongruenceError as e:
        _fail(e)
    _emit(result.to_dict(), out)


@app.command()
def find(
    target: Path = typer.Option(
        ..., "--target", exists=True, dir_okay=False, resolve_path=True, help="File to match"
    ),
    candidates: List[Path] = typer.Option(
        ...,
        "--candidates",
        exists=True,
        resolve_path=True,
        help="Candidate file or directory (repeatable; directories are walked)",
    ),
    min_score: float = typer.Option(
        0.0, "--min-score", min=0.0, max=1.0, help="Minimum score for a best match"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", exists=True, dir_okay=False, help="JSON configuration file"
    ),
    disable: Optional[str] = typer.Option(
        None, "--disable", help="Comma-separated layers to turn off: " + ",".join(LAYER_NAMES)
    ),
    out: Optional[Path] = typer.Option(None, "--out", help="Write the JSON result here"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable verbose logging"),
):
    """
    Rank candidate files by similarity to a target and print the batch as JSON.
    """
    if verbose:
        setup_logging(verbose=True)
        logger.debug("Verbose logging enabled")

    config = _load_config(config_path, disable)
    fs = LocalFS()
    try:
        target_desc = load_descriptor(fs, target, config)
        # The target itself is never its own candidate.
        paths = [p for root in candidates for p in fs.walk(root) if p.resolve() != target]
        descriptors = [load_descriptor(fs, p, config) for p in paths]
        with create_default_service(config) as service:
            batch = service.find_similar_files(target_desc, descriptors, min_score=min_score)
    except CongruenceError as e:
        _fail(e)
    _emit(batch.to_dict(), out)
