import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from fakes import FakeRunner, make_config

from hookdeploy.errors import (
    DuplicateRegistrationError,
    MissingDependencyError,
    ProvisioningError,
    RegistryCorruptError,
    ServiceError,
)
from hookdeploy.models import UpsertOutcome
from hookdeploy.provision import provision
from hookdeploy.registry import HookRegistry

FAKE_GIT = """#!/bin/sh
echo "git $*"
exit 0
"""

# Succeeds for everything except `docker compose up`
FAKE_DOCKER = """#!/bin/sh
echo "docker $*"
if [ "$2" = "up" ]; then
  echo "failed to build image" >&2
  exit 1
fi
exit 0
"""


class ProvisionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.project_dir = self.root / "my-app"
        self.project_dir.mkdir()
        self.config = make_config(self.root)
        self.messages: list[str] = []

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _provision(self, branch: str = "main", runner: FakeRunner | None = None, **kwargs):
        return provision(
            self.project_dir,
            branch,
            self.config,
            runner=runner or FakeRunner(),
            echo=self.messages.append,
            **kwargs,
        )

    def _registry(self) -> list[dict]:
        return json.loads(self.config.hooks_file.read_text(encoding="utf-8"))

    def test_first_registration_creates_everything(self) -> None:
        runner = FakeRunner()

        result = self._provision(runner=runner)

        self.assertEqual(result.app_id, "webhook-my_app")
        self.assertTrue(result.action_created)
        self.assertTrue(result.token_created)
        self.assertEqual(result.outcome, UpsertOutcome.CREATED)
        self.assertEqual(result.port, 60001)
        self.assertTrue(os.access(self.config.action_path("webhook-my_app"), os.X_OK))
        self.assertTrue(self.config.logs_dir.is_dir())
        self.assertTrue(self.config.service_file.exists())

        entry = self._registry()[0]
        self.assertEqual(entry["id"], "webhook-my_app")
        self.assertEqual(entry["execute-command"], str(self.config.action_path("webhook-my_app")))
        self.assertEqual(entry["command-working-directory"], str(self.config.hooks_dir))
        self.assertEqual(entry["response-message"], "Deploy ejecutado")
        self.assertEqual(
            entry["trigger-rule"]["match"]["parameter"],
            {"source": "header", "name": "X-Hub-Token"},
        )
        self.assertNotIn(result.token, self.config.hooks_file.read_text(encoding="utf-8"))

        commands = runner.commands()
        self.assertIn(("systemctl", "daemon-reload"), commands)
        self.assertEqual(commands[-1], ("systemctl", "restart", "webhook.service"))
        self.assertIn(
            (
                "sudo", "-u", self.config.owner_user,
                "git", "config", "--global", "--add", "safe.directory",
                str(self.project_dir.resolve()),
            ),
            commands,
        )

    def test_second_branch_shares_token_and_appends(self) -> None:
        first = self._provision()
        second = self._provision("feature/x")

        self.assertEqual(second.app_id, "webhook-my_app-feature_x")
        self.assertEqual(second.outcome, UpsertOutcome.APPENDED)
        self.assertFalse(second.token_created)
        self.assertEqual(first.token, second.token)
        self.assertEqual([e["id"] for e in self._registry()], ["webhook-my_app", "webhook-my_app-feature_x"])

    def test_duplicate_registration_is_refused_without_changes(self) -> None:
        self._provision()
        action = self.config.action_path("webhook-my_app")
        action.write_text("#!/bin/sh\n# edited\n", encoding="utf-8")
        registry_before = self.config.hooks_file.read_text(encoding="utf-8")
        runner = FakeRunner()

        with self.assertRaises(DuplicateRegistrationError):
            self._provision(runner=runner)

        self.assertEqual(action.read_text(encoding="utf-8"), "#!/bin/sh\n# edited\n")
        self.assertEqual(self.config.hooks_file.read_text(encoding="utf-8"), registry_before)
        self.assertEqual(runner.calls, [])

    def test_update_replaces_record_and_keeps_action(self) -> None:
        self._provision()
        action = self.config.action_path("webhook-my_app")
        action.write_text("#!/bin/sh\n# edited\n", encoding="utf-8")
        self.config = self.config.model_copy(update={"response_message": "Redeploy en curso"})

        result = self._provision(update=True)

        self.assertEqual(result.outcome, UpsertOutcome.UPDATED)
        self.assertFalse(result.action_created)
        self.assertEqual(action.read_text(encoding="utf-8"), "#!/bin/sh\n# edited\n")
        registry = self._registry()
        self.assertEqual(len(registry), 1)
        self.assertEqual(registry[0]["response-message"], "Redeploy en curso")

    def test_missing_tool_aborts_before_any_mutation(self) -> None:
        self.config = self.config.model_copy(
            update={"required_tools": ["hookdeploy-definitely-not-installed"]}
        )

        with self.assertRaises(MissingDependencyError) as ctx:
            self._provision()

        self.assertEqual(ctx.exception.missing, ["hookdeploy-definitely-not-installed"])
        self.assertFalse(self.config.hooks_dir.exists())

    def test_corrupt_registry_aborts_before_action_is_written(self) -> None:
        self.config.hooks_dir.mkdir(parents=True)
        self.config.hooks_file.write_text("not json", encoding="utf-8")

        with self.assertRaises(RegistryCorruptError):
            self._provision()

        self.assertFalse(self.config.action_path("webhook-my_app").exists())
        self.assertFalse(self.config.env_file.exists())
        self.assertEqual(self.config.hooks_file.read_text(encoding="utf-8"), "not json")

    def _assert_nothing_registered(self) -> None:
        self.assertFalse(self.config.action_path("webhook-my_app").exists())
        self.assertFalse(self.config.hooks_file.exists())

    def test_secret_file_without_token_aborts_before_writes(self) -> None:
        self.config.hooks_dir.mkdir(parents=True)
        self.config.env_file.write_text("OTHER=1\n", encoding="utf-8")
        runner = FakeRunner()

        with self.assertRaises(ProvisioningError):
            self._provision(runner=runner)

        self._assert_nothing_registered()
        self.assertFalse(self.config.service_file.exists())
        self.assertEqual(runner.calls, [])

    def test_service_failure_leaves_no_half_registered_hook(self) -> None:
        runner = FakeRunner(failures={("systemctl", "enable"): 1})

        with self.assertRaises(ServiceError):
            self._provision(runner=runner)

        self._assert_nothing_registered()
        self.assertFalse(self.config.env_file.exists())
        self.assertFalse(self.config.service_file.exists())

        result = self._provision()
        self.assertTrue(result.action_created)
        self.assertEqual(result.outcome, UpsertOutcome.CREATED)

    def test_listener_install_failure_leaves_no_half_registered_hook(self) -> None:
        self.config = self.config.model_copy(
            update={"listener_binary": str(self.root / "missing" / "webhook")}
        )
        runner = FakeRunner(failures={("apt-get",): 100})

        with self.assertRaises(ServiceError):
            self._provision(runner=runner)

        self._assert_nothing_registered()
        self.assertEqual(runner.commands(), [("apt-get", "install", "-y", "webhook")])

    def test_failed_upsert_removes_new_action(self) -> None:
        with mock.patch.object(HookRegistry, "upsert", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                self._provision()

        self._assert_nothing_registered()

        result = self._provision()
        self.assertTrue(result.action_created)

    def test_failed_upsert_keeps_existing_action_on_update(self) -> None:
        self._provision()
        action = self.config.action_path("webhook-my_app")

        with mock.patch.object(HookRegistry, "upsert", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                self._provision(update=True)

        self.assertTrue(action.exists())

    def test_existing_unit_without_templates_is_reported(self) -> None:
        self.config.service_file.parent.mkdir(parents=True)
        self.config.service_file.write_text(
            f"[Service]\nExecStart={self.config.listener_binary} -port 60001\n", encoding="utf-8"
        )

        self._provision()

        warnings = [m for m in self.messages if m.startswith("⚠️")]
        self.assertEqual(len(warnings), 1)
        self.assertIn("-template", warnings[0])

    def test_generated_unit_is_not_reported(self) -> None:
        self._provision()
        self._provision("develop")
        self.assertFalse([m for m in self.messages if m.startswith("⚠️")])

    def test_no_restart_skips_listener_restart(self) -> None:
        runner = FakeRunner()
        self._provision(runner=runner, restart=False)
        self.assertNotIn(("systemctl", "restart", "webhook.service"), runner.commands())


class GeneratedActionTests(unittest.TestCase):
    """Runs a generated action as a real process against stub git/docker."""

    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.project_dir = self.root / "my-app"
        self.project_dir.mkdir()
        self.config = make_config(self.root)

        self.bin_dir = self.root / "stub-bin"
        self.bin_dir.mkdir()
        for name, body in (("git", FAKE_GIT), ("docker", FAKE_DOCKER)):
            stub = self.bin_dir / name
            stub.write_text(body, encoding="utf-8")
            stub.chmod(0o755)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_rebuild_failure_exits_nonzero_with_marker(self) -> None:
        result = provision(
            self.project_dir,
            "feature/x",
            self.config,
            runner=FakeRunner(),
            echo=lambda _: None,
        )
        self.assertEqual(result.app_id, "webhook-my_app-feature_x")

        env = dict(os.environ)
        env["PATH"] = f"{self.bin_dir}{os.pathsep}{env.get('PATH', '')}"
        # The action must locate hookdeploy on its own
        env.pop("PYTHONPATH", None)
        proc = subprocess.run(
            [sys.executable, str(result.action_path)],
            env=env,
            cwd=self.root,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
        )

        self.assertNotEqual(proc.returncode, 0)
        lines = self.config.log_path(result.app_id).read_text(encoding="utf-8").splitlines()
        error_index = lines.index("❌ Error al levantar contenedores Docker")
        self.assertLess(lines.index("git checkout feature/x"), error_index)
        self.assertLess(lines.index("git pull origin feature/x"), error_index)
        self.assertIn("failed to build image", lines)


if __name__ == "__main__":
    unittest.main()
