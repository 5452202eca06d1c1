"""Pydantic models for hook records and deploy plans.

HookRecord is serialized with the key names the adnanh/webhook listener
reads from hooks.json.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class HookRecord(BaseModel):
    """One registry entry: a hook id mapped to the action it runs.

    Unknown keys (trigger rules, pass-through arguments added by hand) are
    kept so rewriting the registry never drops an operator's edits.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    execute_command: str = Field(alias="execute-command")
    working_directory: str = Field(alias="command-working-directory")
    response_message: str = Field(alias="response-message")
    trigger_rule: dict | None = Field(default=None, alias="trigger-rule")

    def to_listener_dict(self) -> dict:
        """Dump using the listener's hyphenated key names."""
        return self.model_dump(by_alias=True, exclude_none=True)


def token_trigger_rule(header: str = "X-Hub-Token", env_var: str = "SECRET_TOKEN") -> dict:
    """Listener rule accepting a request only if `header` equals the shared secret.

    The secret is read from the listener's environment through its template
    support (the daemon must run with -template), so hooks.json never holds
    the token itself.
    """
    return {
        "match": {
            "type": "value",
            "value": '{{ getenv "%s" }}' % env_var,
            "parameter": {"source": "header", "name": header},
        }
    }


class UpsertOutcome(str, Enum):
    """What a registry upsert did."""

    CREATED = "created"  # registry file did not exist
    APPENDED = "appended"  # new id added at the end
    UPDATED = "updated"  # existing id replaced in place


class RedeployPlan(BaseModel):
    """Everything a generated deploy action is bound to at generation time."""

    model_config = ConfigDict(frozen=True)

    app_id: str
    project_dir: Path
    branch: str
    log_file: Path
    max_log_size: int = 10000


class SecretToken(BaseModel):
    """The shared listener secret and whether this call generated it."""

    value: str
    created: bool = False


class ProvisionResult(BaseModel):
    """Summary of a completed registration, used for the CLI's final message."""

    app_id: str
    action_path: Path
    action_created: bool
    outcome: UpsertOutcome
    token: str
    token_created: bool
    port: int
