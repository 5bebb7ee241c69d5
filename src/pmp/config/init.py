"""Initialization logic for the .pmp directory structure."""

import shutil
from pathlib import Path

from pmp.packs.loader import (
    PACK_DIRNAME,
    discover_pack_dirs,
    get_package_packs_path,
)


def copy_default_packs(local: bool = False, overwrite: bool = False) -> list[str]:
    """Copy bundled packs from package to the packs directory.

    Args:
        local: If True, copy to ./.pmp/packs/ (project-local).
               If False, copy to ~/.pmp/packs/ (global, default).
        overwrite: If True, replace packs that already exist there.

    Returns:
        List of pack names that were copied.
    """
    if local:
        target = Path.cwd() / ".pmp" / PACK_DIRNAME
    else:
        target = Path.home() / ".pmp" / PACK_DIRNAME

    target.mkdir(parents=True, exist_ok=True)

    copied: list[str] = []
    for pack_name, pack_dir in discover_pack_dirs(get_package_packs_path()).items():
        dest = target / pack_name
        if dest.exists():
            if not overwrite:
                continue
            shutil.rmtree(dest)
        shutil.copytree(pack_dir, dest)
        copied.append(pack_name)

    return copied


def ensure_pmp_dir() -> None:
    """Create .pmp directory structure in current working directory.

    Creates:
        .pmp/
        .pmp/logs/
        .pmp/.gitignore (with logs/ ignored)
    """
    pmp_dir = Path.cwd() / ".pmp"
    logs_dir = pmp_dir / "logs"
    gitignore_path = pmp_dir / ".gitignore"

    # Create directories (parents=True creates .pmp if needed)
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Create .gitignore if it doesn't exist
    if not gitignore_path.exists():
        gitignore_path.write_text("logs/\n")


def ensure_home_pmp_dir() -> Path:
    """Create ~/.pmp directory if it doesn't exist.

    Returns the path to the home pmp directory.
    """
    home_pmp = Path.home() / ".pmp"
    home_pmp.mkdir(parents=True, exist_ok=True)
    return home_pmp
