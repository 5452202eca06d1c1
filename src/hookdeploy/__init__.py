"""Git webhook redeploy provisioning for single-host docker compose apps.

Registers a hook with the shared webhook listener, generates the per-app
deploy action and manages the listener's shared secret.
"""

from hookdeploy.actions import create_deploy_action
from hookdeploy.models import HookRecord, RedeployPlan, UpsertOutcome
from hookdeploy.provision import provision
from hookdeploy.redeploy import run_redeploy
from hookdeploy.registry import HookRegistry, compute_app_id
from hookdeploy.secret_store import get_or_create_secret

__version__ = "0.1.0"

__all__ = [
    "HookRecord",
    "HookRegistry",
    "RedeployPlan",
    "UpsertOutcome",
    "compute_app_id",
    "create_deploy_action",
    "get_or_create_secret",
    "provision",
    "run_redeploy",
]
