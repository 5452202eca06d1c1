"""Register the current project as a webhook-triggered redeploy.

Usage:
    hookdeploy-setup                     # hook for branch "main"
    hookdeploy-setup develop             # hook for branch "develop"
    hookdeploy-setup develop --update    # replace the registry record, keep the action
    hookdeploy-setup --project-dir /srv/my-app

Exit codes:
  0 = hook registered (id, token and an example request on stdout)
  1 = error (missing tool, existing hook, corrupt registry, service failure)
"""

import argparse
import sys
from pathlib import Path
from typing import Sequence

from hookdeploy.config import HookDeployConfig, get_config
from hookdeploy.errors import HookDeployError
from hookdeploy.logging import setup_logging
from hookdeploy.models import ProvisionResult
from hookdeploy.netinfo import lookup_public_ip
from hookdeploy.provision import provision
from hookdeploy.templates import EXAMPLE_REQUEST_TEMPLATE


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="hookdeploy-setup",
        description="Register a webhook that redeploys this project's docker compose stack.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "branch",
        nargs="?",
        default=None,
        help="Branch to deploy (default: main).",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=None,
        help="Project root holding the compose file (default: current directory).",
    )
    parser.add_argument(
        "--update",
        action="store_true",
        help="Update the registry record of an existing hook instead of refusing.",
    )
    parser.add_argument(
        "--no-restart",
        action="store_true",
        help="Do not restart the listener service after registering.",
    )
    return parser.parse_args(argv)


def print_summary(result: ProvisionResult, branch: str, host: str | None) -> None:
    print("")
    print(f"✅ Webhook {result.app_id} configurado y corriendo en puerto {result.port}.")
    print(f"🔐 Token secreto: {result.token}")
    print("")
    print("Puedes probarlo con:")
    print(
        EXAMPLE_REQUEST_TEMPLATE.format(
            host=host or "<IP_DEL_SERVIDOR>",
            port=result.port,
            app_id=result.app_id,
            token=result.token,
            branch=branch,
        )
    )


def main(argv: Sequence[str] | None = None, config: HookDeployConfig | None = None) -> int:
    args = _parse_args(argv)
    config = config or get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    branch = args.branch or config.default_branch
    project_dir = args.project_dir or Path.cwd()

    try:
        result = provision(
            project_dir,
            branch,
            config,
            update=args.update,
            restart=not args.no_restart,
        )
    except HookDeployError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    host = lookup_public_ip(config.public_ip_url, config.public_ip_timeout)
    print_summary(result, branch, host)
    return 0


if __name__ == "__main__":
    sys.exit(main())
