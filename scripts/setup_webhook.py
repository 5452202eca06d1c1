#!/usr/bin/env python3
"""
Register this checkout as a webhook-triggered redeploy.

Copy or symlink into a project's ci/ directory; the project root defaults to
the parent of the directory holding this script.

Usage:
    sudo python ci/setup_webhook.py              # branch main
    sudo python ci/setup_webhook.py develop      # branch develop
"""

import sys
from pathlib import Path

# Allow running from a source checkout without installing
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from hookdeploy.cli import main  # noqa: E402

if __name__ == "__main__":
    argv = sys.argv[1:]
    if "--project-dir" not in argv:
        argv += ["--project-dir", str(Path(__file__).resolve().parents[1])]
    sys.exit(main(argv))
