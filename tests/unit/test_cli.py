"""
CLI Tests

Tests argument parsing, exit codes and report output of the gopipe CLI.
"""

import json
import os

import pytest
from temporalio.client import WorkflowFailureError
from temporalio.exceptions import ApplicationError

from core.config import RuntimeConfig, StepsConfig
from core.schemas.errors import ErrorCodes, StepInfraException
from core.schemas.pipeline import PipelineFailure, PipelineReport, PipelineSpec
from gopipe_cli.commands import EXIT_INVALID_INPUT, EXIT_RUNTIME_ERROR, EXIT_SUCCESS
from gopipe_cli.commands import run as run_command_module
from gopipe_cli.commands import submit as submit_module
from gopipe_cli.commands.run import policy_from_config, run_local
from gopipe_cli.main import create_parser, main
from steps import CommandResult, PipelineActivities


def _ok_runner(args, cwd=None, timeout=None):
    return CommandResult(args=tuple(args), returncode=0)


class TestParser:

    def test_subcommands(self):
        parser = create_parser()
        args = parser.parse_args(["run", "--input", "p.yaml", "--json"])
        assert args.command == "run"
        assert args.input == "p.yaml"
        assert args.json

    def test_no_command_prints_help(self, clean_env, capsys):
        assert main([]) == EXIT_RUNTIME_ERROR
        assert "usage: gopipe" in capsys.readouterr().out


class TestValidateCommand:

    def test_valid_file(self, clean_env, pipeline_yaml, capsys):
        assert main(["validate", str(pipeline_yaml)]) == EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "PipelineWorkflow-github-com-example-service-git" in out

    def test_valid_file_json(self, clean_env, pipeline_yaml, capsys):
        assert main(["validate", str(pipeline_yaml), "--json"]) == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["valid"] is True
        assert data["spec"]["test_flags"] == ["-json", "-race"]

    def test_invalid_file(self, clean_env, tmp_path, capsys):
        path = tmp_path / "p.yaml"
        path.write_text("test_flags: [-json]\n")
        assert main(["validate", str(path)]) == EXIT_INVALID_INPUT
        assert "git_url is required" in capsys.readouterr().err


class TestRunCommand:

    def test_missing_input(self, clean_env, capsys):
        assert main(["run"]) == EXIT_INVALID_INPUT
        assert "WORKFLOW_INPUT" in capsys.readouterr().err

    def test_input_from_environment(self, clean_env, pipeline_yaml, monkeypatch, capsys):
        clean_env.setenv("WORKFLOW_INPUT", str(pipeline_yaml))
        seen = []

        def fake_run_local(spec, config, activities=None):
            seen.append(spec)
            return PipelineReport()

        monkeypatch.setattr(run_command_module, "run_local", fake_run_local)
        assert main(["run"]) == EXIT_SUCCESS
        assert seen[0].git_url == "https://github.com/example/service.git"

    def test_report_with_failures_still_succeeds(self, clean_env, pipeline_yaml, monkeypatch, capsys):
        report = PipelineReport(failures=[PipelineFailure(step="GoTest", details=["pkg.TestA"])])
        monkeypatch.setattr(run_command_module, "run_local", lambda spec, config, activities=None: report)

        assert main(["run", "--input", str(pipeline_yaml), "--json"]) == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["ok"] is False
        assert data["failures"] == [{"step": "GoTest", "details": ["pkg.TestA"], "infra": False}]

    def test_fatal_error_exit_code(self, clean_env, pipeline_yaml, monkeypatch, capsys):
        def fail(spec, config, activities=None):
            raise StepInfraException("GitClone", "exit status 128")

        monkeypatch.setattr(run_command_module, "run_local", fail)
        assert main(["run", "--input", str(pipeline_yaml), "--json"]) == EXIT_RUNTIME_ERROR
        data = json.loads(capsys.readouterr().out)
        assert data["error"]["code"] == "STEP_INFRA_ERROR"
        assert data["error"]["details"] == {"step": "GitClone"}


class TestRunLocal:

    def test_full_local_run(self, tmp_path):
        config = RuntimeConfig(steps=StepsConfig(workdir_root=str(tmp_path), deploy_stage_delay_s=0))
        activities = PipelineActivities(config.steps, runner=_ok_runner, sleep=lambda _: None)

        report = run_local(PipelineSpec(git_url="https://github.com/example/svc.git"), config, activities)

        assert report.ok
        assert report.deploy_attempted
        assert os.listdir(tmp_path) == []

    def test_policy_from_config(self):
        policy = policy_from_config(StepsConfig(step_timeout_s=3, max_attempts=1, retry_initial_interval_s=0.1))
        assert policy.start_to_close_timeout.total_seconds() == 3
        assert policy.maximum_attempts == 1
        assert policy.initial_interval.total_seconds() == pytest.approx(0.1)


class TestPipelineCommand:

    def test_report_with_failures_succeeds(self, clean_env, pipeline_yaml, monkeypatch, capsys):
        report = PipelineReport(failures=[
            PipelineFailure(step="GoBuild", details=["main.go", "internal/db.go"]),
        ])
        submitted = []

        async def fake_submit(spec, config):
            submitted.append(spec)
            return report

        monkeypatch.setattr(submit_module, "submit", fake_submit)
        assert main(["pipeline", "--input", str(pipeline_yaml)]) == EXIT_SUCCESS

        out = capsys.readouterr().out
        assert "mode: temporal" in out
        assert "ok: false" in out
        assert "GoBuild" in out and "internal/db.go" in out
        assert submitted[0].test_flags == ["-json", "-race"]

    def test_workflow_failure_exit_code(self, clean_env, pipeline_yaml, monkeypatch, capsys):
        cause = ApplicationError(
            "GitClone step failed: exit status 128",
            {"step": "GitClone"},
            type=ErrorCodes.STEP_INFRA_ERROR,
            non_retryable=True,
        )

        async def fake_submit(spec, config):
            raise WorkflowFailureError(cause=cause)

        monkeypatch.setattr(submit_module, "submit", fake_submit)
        assert main(["pipeline", "--input", str(pipeline_yaml), "--json"]) == EXIT_RUNTIME_ERROR

        data = json.loads(capsys.readouterr().out)
        assert data["ok"] is False
        assert data["mode"] == "temporal"
        assert data["error"]["code"] == "STEP_INFRA_ERROR"
        assert data["error"]["message"] == "GitClone step failed: exit status 128"
        assert data["error"]["details"] == [{"step": "GitClone"}]


    def test_missing_temporal_settings(self, clean_env, pipeline_yaml, capsys):
        assert main(["pipeline", "--input", str(pipeline_yaml)]) == EXIT_RUNTIME_ERROR
        assert "TEMPORAL_HOSTPORT" in capsys.readouterr().err

    def test_invalid_input(self, clean_env, tmp_path, capsys):
        path = tmp_path / "p.yaml"
        path.write_text("- not a mapping\n")
        assert main(["pipeline", "--input", str(path)]) == EXIT_INVALID_INPUT


class TestConfigCommand:

    def test_show(self, clean_env, capsys):
        clean_env.setenv("TEMPORAL_QUEUE", "gopipe")
        assert main(["config", "--show"]) == EXIT_SUCCESS
        data = json.loads(capsys.readouterr().out)
        assert data["temporal"]["queue"] == "gopipe"
        assert data["steps"]["max_attempts"] == 3
