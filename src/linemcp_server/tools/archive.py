"""ZIP archive operations: extract, create, list, test and info."""

from __future__ import annotations

import shutil
import zipfile
from collections.abc import Callable
from datetime import datetime
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Literal

from pydantic import Field

from linemcp.cancellation import CancellationToken
from linemcp.errors import ToolError
from linemcp.protocol import ToolResponse
from linemcp.tools import ToolDefinition, ToolParameters
from linemcp_server.tools.common import AllowedDirectories, summarize_lines

DEFAULT_MAX_SIZE_BYTES = 1024 * 1024 * 1024
SUPPORTED_SUFFIXES = (".zip",)
_READ_CHUNK = 64 * 1024

Operation = Literal["extract", "create", "list", "test", "info"]


class ArchiveOptions(ToolParameters):
    """Archive operation options."""

    overwrite: bool = Field(
        default=False, description="Overwrite existing files (default: false)"
    )
    compression_level: int = Field(
        default=6,
        ge=0,
        le=9,
        description="Compression level 0-9 for creating archives (default: 6)",
    )
    dry_run: bool = Field(
        default=False, description="Preview operations without executing"
    )
    max_size_bytes: int = Field(
        default=DEFAULT_MAX_SIZE_BYTES,
        gt=0,
        description="Maximum extraction size in bytes (default: 1GB)",
    )
    include_patterns: list[str] | None = Field(
        default=None, description="Glob patterns to include (e.g. ['*.txt'])"
    )
    exclude_patterns: list[str] | None = Field(
        default=None, description="Glob patterns to exclude (e.g. ['*.tmp'])"
    )


class ArchiveOperationParams(ToolParameters):
    """Parameters for the archive_operations tool."""

    operation: Operation = Field(
        description=(
            "Type of archive operation: 'extract', 'create', 'list', 'test', 'info'"
        )
    )
    archive_path: str | None = Field(
        default=None,
        description="Path to existing archive file (for extract/list/test/info)",
    )
    source_path: str | None = Field(
        default=None, description="Files or directory to compress (for create)"
    )
    archive_output_path: str | None = Field(
        default=None, description="Path where the new archive is written (for create)"
    )
    extract_to_path: str | None = Field(
        default=None, description="Directory to extract files into (for extract)"
    )
    options: ArchiveOptions | None = Field(
        default=None, description="Archive operation options"
    )


def validate_archive_params(params: ArchiveOperationParams) -> str | None:
    """Check that the paths required by the chosen operation are present."""
    if params.operation == "extract":
        if not params.archive_path or not params.extract_to_path:
            return (
                "Archive path and extract destination path are required for "
                "extract operation"
            )
    elif params.operation == "create":
        if not params.source_path or not params.archive_output_path:
            return (
                "Source path and archive output path are required for create "
                "operation"
            )
    elif not params.archive_path:
        return f"Archive path is required for {params.operation} operation"
    return None


def should_include(
    name: str, include: list[str] | None, exclude: list[str] | None
) -> bool:
    """Apply exclude globs first, then include globs when any are given."""
    if exclude and any(fnmatchcase(name, pattern) for pattern in exclude):
        return False
    if include:
        return any(fnmatchcase(name, pattern) for pattern in include)
    return True


def is_safe_entry(name: str) -> bool:
    """Reject absolute entries, drive letters and parent-directory segments."""
    normalized = name.replace("\\", "/")
    if normalized.startswith("/") or ":" in normalized:
        return False
    parts = PurePosixPath(normalized).parts
    return bool(parts) and ".." not in parts


def _ratio(original: int, compressed: int) -> float:
    if original == 0:
        return 0.0
    return (1 - compressed / original) * 100


def _entry_date(info: zipfile.ZipInfo) -> datetime:
    return datetime(*info.date_time)


def _open_archive(allowed: AllowedDirectories, raw_path: str) -> Path:
    path = allowed.resolve(raw_path)
    if not path.is_file():
        raise FileNotFoundError(f"Archive file not found: {raw_path}")
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported archive format: {path.suffix or '(none)'}")
    return path


def _report(lines: list[str], errors: list[str]) -> ToolResponse:
    if errors:
        lines = [*lines, "", "Errors:", *(f"  {error}" for error in errors)]
        return ToolResponse.error("\n".join(lines))
    return ToolResponse.success("\n".join(lines))


def _extract(
    params: ArchiveOperationParams,
    options: ArchiveOptions,
    allowed: AllowedDirectories,
    cancellation: CancellationToken,
) -> ToolResponse:
    archive_path = _open_archive(allowed, params.archive_path or "")
    target_root = allowed.resolve(params.extract_to_path or "")
    if not options.dry_run:
        target_root.mkdir(parents=True, exist_ok=True)

    total_size = 0
    extracted = 0
    skipped = 0
    results: list[str] = []
    errors: list[str] = []
    with zipfile.ZipFile(archive_path) as archive:
        for info in archive.infolist():
            cancellation.raise_if_cancelled()
            if info.is_dir():
                continue
            if not should_include(
                info.filename, options.include_patterns, options.exclude_patterns
            ):
                skipped += 1
                continue
            if not is_safe_entry(info.filename):
                errors.append(f"Unsafe path detected: {info.filename}")
                continue
            if total_size + info.file_size > options.max_size_bytes:
                errors.append(
                    f"Extraction size limit exceeded ({options.max_size_bytes:,} bytes)"
                )
                break

            target = (target_root / info.filename).resolve()
            try:
                target.relative_to(target_root)
            except ValueError:
                errors.append(f"Unsafe path detected: {info.filename}")
                continue

            if target.exists() and not options.overwrite:
                results.append(f"Skipped: {info.filename} (file exists)")
                skipped += 1
                continue
            if options.dry_run:
                results.append(f"[DRY RUN] Would extract: {info.filename} -> {target}")
            else:
                try:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(info) as source, target.open("wb") as sink:
                        shutil.copyfileobj(source, sink)
                except (OSError, zipfile.BadZipFile) as exc:
                    errors.append(f"Failed to extract {info.filename}: {exc}")
                    continue
                results.append(f"Extracted: {info.filename}")
            total_size += info.file_size
            extracted += 1

    if options.dry_run:
        summary = f"[DRY RUN] Would extract {extracted} files ({total_size:,} bytes)"
    else:
        summary = (
            f"Extracted {extracted} files ({total_size:,} bytes), skipped {skipped}"
        )
    lines = [summary]
    if results:
        lines += ["", "Processed files:", *summarize_lines(results)]
    return _report(lines, errors)


def _collect_files(
    source: Path,
    options: ArchiveOptions,
    exclude_path: Path,
    cancellation: CancellationToken,
) -> list[tuple[Path, str]]:
    if source.is_file():
        return [(source, source.name)]
    files = []
    for path in sorted(source.rglob("*")):
        cancellation.raise_if_cancelled()
        if not path.is_file() or path.resolve() == exclude_path:
            continue
        relative = path.relative_to(source).as_posix()
        if should_include(relative, options.include_patterns, options.exclude_patterns):
            files.append((path, relative))
    return files


def _create(
    params: ArchiveOperationParams,
    options: ArchiveOptions,
    allowed: AllowedDirectories,
    cancellation: CancellationToken,
) -> ToolResponse:
    source = allowed.resolve(params.source_path or "")
    if not source.exists():
        return ToolResponse.error(f"Source path not found: {params.source_path}")
    output = allowed.resolve(params.archive_output_path or "")
    if output.exists() and not options.overwrite:
        return ToolResponse.error(
            f"Archive already exists: {params.archive_output_path}"
        )

    files = _collect_files(source, options, output, cancellation)
    if not files:
        return ToolResponse.error("No files found to compress")

    total_size = 0
    added = 0
    results: list[str] = []
    errors: list[str] = []
    if options.dry_run:
        for path, relative in files:
            size = path.stat().st_size
            results.append(f"[DRY RUN] Would add: {relative} ({size:,} bytes)")
            total_size += size
            added += 1
        summary = (
            f"[DRY RUN] Would create archive with {added} files ({total_size:,} bytes)"
        )
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(
            output,
            "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=options.compression_level,
        ) as archive:
            for path, relative in files:
                cancellation.raise_if_cancelled()
                try:
                    size = path.stat().st_size
                    archive.write(path, arcname=relative)
                except OSError as exc:
                    errors.append(f"Failed to add {relative}: {exc}")
                    continue
                results.append(f"Added: {relative} ({size:,} bytes)")
                total_size += size
                added += 1
        summary = f"Created archive with {added} files ({total_size:,} bytes)"

    lines = [
        summary,
        f"Archive path: {params.archive_output_path}",
        f"Compression level: {options.compression_level}",
    ]
    if results:
        lines += ["", "Files:", *summarize_lines(results)]
    return _report(lines, errors)


def _list(
    params: ArchiveOperationParams,
    options: ArchiveOptions,
    allowed: AllowedDirectories,
    cancellation: CancellationToken,
) -> ToolResponse:
    archive_path = _open_archive(allowed, params.archive_path or "")
    with zipfile.ZipFile(archive_path) as archive:
        files = [info for info in archive.infolist() if not info.is_dir()]

    total_size = sum(info.file_size for info in files)
    compressed_size = sum(info.compress_size for info in files)
    entries = [
        f"{info.filename:<50} {info.file_size:>12,} bytes  "
        f"{_ratio(info.file_size, info.compress_size):>6.1f}%  "
        f"{_entry_date(info):%Y-%m-%d %H:%M}"
        for info in files
    ]
    lines = [
        f"Archive: {params.archive_path}",
        f"Total files: {len(files)}",
        f"Total size: {total_size:,} bytes",
        f"Compressed size: {compressed_size:,} bytes",
        f"Compression ratio: {_ratio(total_size, compressed_size):.1f}%",
    ]
    if entries:
        lines += ["", "Contents:", *entries]
    return ToolResponse.success("\n".join(lines))


def _test(
    params: ArchiveOperationParams,
    options: ArchiveOptions,
    allowed: AllowedDirectories,
    cancellation: CancellationToken,
) -> ToolResponse:
    archive_path = _open_archive(allowed, params.archive_path or "")
    errors: list[str] = []
    tested = 0
    with zipfile.ZipFile(archive_path) as archive:
        entries = archive.infolist()
        for info in entries:
            cancellation.raise_if_cancelled()
            if info.is_dir():
                continue
            tested += 1
            read = 0
            try:
                with archive.open(info) as stream:
                    while chunk := stream.read(_READ_CHUNK):
                        read += len(chunk)
            except (OSError, zipfile.BadZipFile) as exc:
                errors.append(f"{info.filename}: {exc}")
                continue
            if read != info.file_size:
                errors.append(
                    f"{info.filename}: Size mismatch - expected {info.file_size}, "
                    f"read {read}"
                )

    lines = [
        f"Archive: {params.archive_path}",
        f"Total files: {len(entries)}",
        f"Files tested: {tested}",
        f"Files with errors: {len(errors)}",
    ]
    if not errors:
        lines.append("Status: OK")
    return _report(lines, errors)


def _info(
    params: ArchiveOperationParams,
    options: ArchiveOptions,
    allowed: AllowedDirectories,
    cancellation: CancellationToken,
) -> ToolResponse:
    archive_path = _open_archive(allowed, params.archive_path or "")
    stat = archive_path.stat()
    with zipfile.ZipFile(archive_path) as archive:
        entries = archive.infolist()
    files = [info for info in entries if not info.is_dir()]
    total_size = sum(info.file_size for info in files)
    compressed_size = sum(info.compress_size for info in files)

    lines = [
        f"Archive: {params.archive_path}",
        "Format: ZIP",
        f"Archive Size: {stat.st_size:,} bytes",
        f"Modified: {datetime.fromtimestamp(stat.st_mtime):%Y-%m-%d %H:%M:%S}",
        "",
        "Contents:",
        f"  Files: {len(files):,}",
        f"  Directories: {len(entries) - len(files):,}",
        f"  Uncompressed Size: {total_size:,} bytes",
        f"  Compressed Size: {compressed_size:,} bytes",
        f"  Compression Ratio: {_ratio(total_size, compressed_size):.1f}%",
    ]
    if files:
        dates = [_entry_date(info) for info in files]
        lines += [
            "",
            "File dates:",
            f"  Oldest: {min(dates):%Y-%m-%d %H:%M:%S}",
            f"  Newest: {max(dates):%Y-%m-%d %H:%M:%S}",
        ]
    return ToolResponse.success("\n".join(lines))


_OPERATIONS: dict[
    str,
    Callable[
        [ArchiveOperationParams, ArchiveOptions, AllowedDirectories, CancellationToken],
        ToolResponse,
    ],
] = {
    "extract": _extract,
    "create": _create,
    "list": _list,
    "test": _test,
    "info": _info,
}


def archive_operations_tool(
    allowed: AllowedDirectories,
) -> ToolDefinition[ArchiveOperationParams]:
    """Create the archive_operations tool definition."""

    def handler(
        params: ArchiveOperationParams, cancellation: CancellationToken
    ) -> ToolResponse:
        options = params.options or ArchiveOptions()
        operation = _OPERATIONS[params.operation]
        try:
            return operation(params, options, allowed, cancellation)
        except ToolError:
            raise
        except (OSError, ValueError, zipfile.BadZipFile) as exc:
            label = params.operation.capitalize()
            return ToolResponse.error(f"{label} operation failed: {exc}")

    return ToolDefinition(
        name="archive_operations",
        description=(
            "Execute ZIP archive operations: 'extract' an archive into a directory, "
            "'create' an archive from files, 'list' its contents, 'test' its "
            "integrity or show 'info'. Supports include/exclude glob patterns, dry "
            "runs and an extraction size limit. Only works within allowed "
            "directories."
        ),
        parameters_model=ArchiveOperationParams,
        handler=handler,
        validator=validate_archive_params,
    )
