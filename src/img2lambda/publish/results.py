"""Writing of published Lambda layer ARNs to results files."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable

import yaml

from ..exceptions import ResultsWriteError

logger = logging.getLogger(__name__)


def dump_json(arns: list[str]) -> str:
    return json.dumps(arns, indent=2)


def dump_yaml(arns: list[str]) -> str:
    return yaml.safe_dump(arns, default_flow_style=False)


RESULT_FORMATS: dict[str, tuple[str, Callable[[list[str]], str]]] = {
    "json": ("layers.json", dump_json),
    "yaml": ("layers.yaml", dump_yaml),
}


def write_atomic(path: Path, content: str) -> None:
    """Write a file through a temporary sibling so it is complete or absent."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            tmp_file.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_results(
    arns: list[str], output_dir: Path, formats: Iterable[str] = ("json", "yaml")
) -> list[Path]:
    """Write the ordered layer ARN list in each requested format.

    Formats are written one after another; a failure stops before the next
    format is attempted.

    Args:
        arns: Layer version ARNs in image layer order
        output_dir: Directory to write into
        formats: Any of "json" and "yaml"

    Returns:
        Paths of the written files

    Raises:
        ResultsWriteError: If a format is unknown or a file cannot be written
    """
    output_dir = Path(output_dir)
    paths = []

    for result_format in formats:
        if result_format not in RESULT_FORMATS:
            raise ResultsWriteError(f"Unsupported results format: {result_format}")

        filename, dump = RESULT_FORMATS[result_format]
        path = output_dir / filename
        try:
            write_atomic(path, dump(arns))
        except (OSError, yaml.YAMLError) as e:
            raise ResultsWriteError(f"Failed to write {path}: {e}") from e

        logger.debug(f"Wrote {len(arns)} layer ARNs to {path}")
        paths.append(path)

    return paths
