"""Templates for files generated during provisioning."""

DEPLOY_ACTION_TEMPLATE = '''#!{python_executable}
"""Redeploy action for hook {app_id}.

Generated by hookdeploy. Takes no arguments: the branch, project directory
and log file below are fixed at registration time.
"""

import sys
from pathlib import Path

sys.path.insert(0, {package_root!r})

from hookdeploy.logging import setup_logging  # noqa: E402
from hookdeploy.models import RedeployPlan  # noqa: E402
from hookdeploy.redeploy import run_redeploy  # noqa: E402

PLAN = RedeployPlan(
    app_id={app_id!r},
    project_dir=Path({project_dir!r}),
    branch={branch!r},
    log_file=Path({log_file!r}),
    max_log_size={max_log_size!r},
)

if __name__ == "__main__":
    setup_logging()
    sys.exit(run_redeploy(PLAN))
'''

SERVICE_UNIT_TEMPLATE = """[Unit]
Description=Webhook listener global para Git auto-deploy
After=network.target
Requires=network.target

[Service]
EnvironmentFile={env_file}
ExecStart={listener_binary} -hooks {hooks_file} -port {port} -template
WorkingDirectory={hooks_dir}
Restart=always
RestartSec=3
User={owner}
KillMode=process
ExecReload=/bin/kill -HUP $MAINPID
StandardOutput=journal
StandardError=journal
SyslogIdentifier=webhook

[Install]
WantedBy=multi-user.target
"""

EXAMPLE_REQUEST_TEMPLATE = """curl -X POST http://{host}:{port}/hooks/{app_id} \\
     -H 'Content-Type: application/json' \\
     -H 'X-Hub-Token: {token}' \\
     -d '{{"ref": "refs/heads/{branch}"}}'"""
