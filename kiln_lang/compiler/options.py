"""Compilation options shared by the CLI, the driver and the backends."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

LIB_DIR = Path(__file__).parent.parent / "lib"


@dataclass
class CompilerOptions:
    """Settings for one compilation run.

    Attributes:
        backend: Registered backend name (see kiln_lang.backend.BACKENDS).
        out_file: Output path without extension.
        org: Absolute origin address for emitted code/data, if any.
        debug: Emit debug information.
        export_symbols: Export all symbols from the final executable.
        link: External libraries to link against.
        keep_assembly: Keep the intermediate backend output after finalizing.
        os: Target operating system; None selects the backend default.
        include_dirs: Directories searched after the including file's own.
        versions: User-enabled feature/version flags.
        backend_options: Options handed to the backend's handle_option().
        assembly_lines: Trace every dispatched node to stdout.
        no_header: Do not prepend the backend's default header.
    """
    backend: str = "llvm"
    out_file: str = "out"
    org: Optional[int] = None
    debug: bool = False
    export_symbols: bool = False
    link: List[str] = field(default_factory=list)
    keep_assembly: bool = False
    os: Optional[str] = None
    include_dirs: List[Path] = field(default_factory=list)
    versions: List[str] = field(default_factory=list)
    backend_options: List[str] = field(default_factory=list)
    assembly_lines: bool = False
    no_header: bool = False
