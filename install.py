#!/usr/bin/env python3
"""Cross-platform install script for the xiaoyue backend.

Usage:
    python install.py          # Production install
    python install.py --dev    # Development install (includes pytest)
"""

import os
import platform
import shutil
import subprocess
import sys

MIN_PYTHON = (3, 11)


def main() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )

    dev = "--dev" in sys.argv
    project_dir = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(project_dir, ".venv")
    is_windows = platform.system() == "Windows"
    pip = os.path.join(venv_dir, "Scripts" if is_windows else "bin", "pip")

    if not os.path.isdir(venv_dir):
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", venv_dir])
    else:
        print("Virtual environment already exists.")

    subprocess.check_call([pip, "install", "--upgrade", "pip"])
    target = "-e .[dev]" if dev else "."
    print(f"Installing xiaoyue ({target})...")
    subprocess.check_call([pip, "install", *target.split()], cwd=project_dir)

    # SQLite database lives here unless storage.db_path says otherwise
    os.makedirs(os.path.join(project_dir, "data"), exist_ok=True)

    for src, dst in [("config.example.yaml", "config.yaml"), (".env.example", ".env")]:
        src_path = os.path.join(project_dir, src)
        dst_path = os.path.join(project_dir, dst)
        if not os.path.exists(dst_path) and os.path.exists(src_path):
            shutil.copy(src_path, dst_path)
            print(f"Created {dst} from {src}")
        elif os.path.exists(dst_path):
            print(f"{dst} already exists, skipping.")

    activate_cmd = r".\.venv\Scripts\activate" if is_windows else "source .venv/bin/activate"
    print()
    print("xiaoyue installation complete. Next steps:")
    print("  1. Edit .env - set ANTHROPIC_API_KEY and SOLANA_RPC_URL")
    print("  2. Review config.yaml (free_limit, persona, server port)")
    print(f"  3. {activate_cmd}")
    print("  4. python -m xiaoyue config-check")
    print("  5. python -m xiaoyue serve")


if __name__ == "__main__":
    main()
