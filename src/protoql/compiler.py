"""Compile .proto sources into descriptor protos with protoc.

Schema-language parsing is delegated entirely to protoc as shipped by
grpcio-tools. protoc runs in a subprocess so its diagnostics can be
captured, and writes a FileDescriptorSet (with imports) that is parsed
back into FileDescriptorProto values for the loader.
"""

from __future__ import annotations

import subprocess
import sys
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path

import structlog
from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from protoql.core.errors import CompileError

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SEC = 120.0


@dataclass
class CompileResult:
    """Requested files in request order, plus the files they import."""

    files: list[descriptor_pb2.FileDescriptorProto] = field(default_factory=list)
    dependencies: list[descriptor_pb2.FileDescriptorProto] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)

    @property
    def file_names(self) -> list[str]:
        return [f.name for f in self.files]


def well_known_include() -> Path:
    """Include directory holding google/protobuf/*.proto inside grpc_tools."""
    return Path(str(resources.files("grpc_tools") / "_proto"))


def _run_protoc(
    names: Sequence[str],
    include_paths: Sequence[Path],
    timeout_sec: float,
) -> tuple[descriptor_pb2.FileDescriptorSet | None, list[str]]:
    with tempfile.TemporaryDirectory(prefix="protoql-") as tmp:
        out = Path(tmp) / "descriptors.binpb"
        cmd = [
            sys.executable,
            "-m",
            "grpc_tools.protoc",
            *(f"-I{path}" for path in include_paths),
            f"-I{well_known_include()}",
            "--include_imports",
            f"--descriptor_set_out={out}",
            *names,
        ]
        logger.debug("protoc_invoked", files=len(names), includes=[str(p) for p in include_paths])
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout_sec,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return None, [f"protoc timed out after {timeout_sec}s"]

        diagnostics = [line for line in result.stderr.splitlines() if line.strip()]
        if result.returncode != 0 or not out.exists():
            return None, diagnostics or [f"protoc exited with code {result.returncode}"]

        try:
            return descriptor_pb2.FileDescriptorSet.FromString(out.read_bytes()), diagnostics
        except DecodeError as e:
            return None, [*diagnostics, f"unreadable descriptor set: {e}"]


def _split(
    descriptor_set: descriptor_pb2.FileDescriptorSet, names: Sequence[str]
) -> tuple[list[descriptor_pb2.FileDescriptorProto], list[descriptor_pb2.FileDescriptorProto]]:
    by_name = {f.name: f for f in descriptor_set.file}
    requested = [by_name[name] for name in names if name in by_name]
    wanted = set(names)
    dependencies = [f for f in descriptor_set.file if f.name not in wanted]
    return requested, dependencies


def compile_names(
    names: Sequence[str],
    include_paths: Sequence[Path],
    *,
    lenient: bool = False,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> CompileResult:
    """Compile files named relative to include_paths.

    In lenient mode each file is compiled on its own and failures are kept
    as diagnostics; the call fails only when no file compiled.

    Raises:
        CompileError: protoc failed (strict) or nothing compiled (lenient).
    """
    if not names:
        return CompileResult()

    if not lenient:
        descriptor_set, diagnostics = _run_protoc(names, include_paths, timeout_sec)
        if descriptor_set is None:
            raise CompileError.failed(list(names), diagnostics)
        files, dependencies = _split(descriptor_set, names)
        return CompileResult(files=files, dependencies=dependencies, diagnostics=diagnostics)

    result = CompileResult()
    seen: set[str] = set()
    collected: dict[str, descriptor_pb2.FileDescriptorProto] = {}
    for name in names:
        descriptor_set, diagnostics = _run_protoc([name], include_paths, timeout_sec)
        result.diagnostics.extend(diagnostics)
        if descriptor_set is None:
            logger.warning("protoc_file_skipped", file=name, diagnostics=len(diagnostics))
            continue
        for file in descriptor_set.file:
            collected.setdefault(file.name, file)
        if name not in seen:
            seen.add(name)
            result.files.append(collected[name])

    if not result.files:
        raise CompileError.failed(list(names), result.diagnostics)

    result.dependencies = [f for n, f in collected.items() if n not in seen]
    return result


def _relative_name(path: Path, include_paths: Sequence[Path]) -> str | None:
    resolved = path.resolve()
    for root in include_paths:
        try:
            return resolved.relative_to(root.resolve()).as_posix()
        except ValueError:
            continue
    return None


def compile_files(
    paths: Sequence[Path],
    import_paths: Sequence[Path] = (),
    *,
    lenient: bool = False,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> CompileResult:
    """Compile individual .proto files.

    A file under one of import_paths is named relative to it; any other file
    gets its own directory added as an include path.
    """
    include_paths = [Path(p) for p in import_paths]
    names: list[str] = []
    for path in paths:
        name = _relative_name(path, include_paths)
        if name is None:
            include_paths.append(path.resolve().parent)
            name = path.name
        names.append(name)
    return compile_names(names, include_paths, lenient=lenient, timeout_sec=timeout_sec)


def compile_directory(
    directory: Path,
    import_paths: Sequence[Path] = (),
    *,
    lenient: bool = False,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
) -> CompileResult:
    """Compile every .proto under directory, which is also the import root."""
    names = sorted(p.relative_to(directory).as_posix() for p in directory.rglob("*.proto"))
    if not names:
        logger.info("no_proto_files", directory=str(directory))
        return CompileResult()
    return compile_names(
        names,
        [directory, *(Path(p) for p in import_paths)],
        lenient=lenient,
        timeout_sec=timeout_sec,
    )
