#!/usr/bin/env python3
"""
Free Edition Source Tree Builder

Produces the source tree of the free CicadaGallery edition: a copy of the
cicadagallery package with PREMIUM_BUILD switched off and every module that
decodes, verifies, stores or activates licenses removed, so the free build
contains no verification code at all.

Usage:
    python3 scripts/build_free_edition.py [--output build/free]
"""

import argparse
import shutil
import sys
from pathlib import Path

PACKAGE_NAME = "cicadagallery"

# Modules only the premium edition ships
PREMIUM_ONLY_MODULES = (
    "licensing/activation.py",
    "licensing/codec.py",
    "licensing/license_store.py",
    "licensing/licensed_gate.py",
    "licensing/public_key.py",
    "licensing/schemas.py",
    "licensing/validator.py",
)

# Issuance side, never part of any client build
EXCLUDED_PACKAGES = ("issuance",)

PREMIUM_SWITCH = "PREMIUM_BUILD = True"
FREE_SWITCH = "PREMIUM_BUILD = False"


def build_free_edition(source_root: Path, output_dir: Path) -> Path:
    """
    Copy the package to output_dir as the free edition.

    Args:
        source_root: Repository root containing the cicadagallery package
        output_dir: Directory the free package tree is written to

    Returns:
        Path of the generated package directory

    Raises:
        RuntimeError: If the edition switch cannot be found
    """
    source_package = source_root / PACKAGE_NAME
    target_package = output_dir / PACKAGE_NAME

    if target_package.exists():
        shutil.rmtree(target_package)
    shutil.copytree(
        source_package,
        target_package,
        ignore=shutil.ignore_patterns("__pycache__", "*.pyc", *EXCLUDED_PACKAGES),
    )

    for module in PREMIUM_ONLY_MODULES:
        module_path = target_package / module
        if module_path.exists():
            module_path.unlink()

    edition_file = target_package / "licensing" / "edition.py"
    source = edition_file.read_text(encoding="utf-8")
    if PREMIUM_SWITCH not in source:
        raise RuntimeError(f"Edition switch not found in {edition_file}")
    edition_file.write_text(
        source.replace(PREMIUM_SWITCH, FREE_SWITCH), encoding="utf-8"
    )

    return target_package


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Build the free edition tree")
    parser.add_argument(
        "--output", default="build/free", help="output directory (default: build/free)"
    )
    args = parser.parse_args(argv)

    repo_root = Path(__file__).resolve().parent.parent
    package = build_free_edition(repo_root, Path(args.output))
    print(f"Free edition written to {package}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
