"""
Step Handlers

The external-command adapters behind every pipeline step. Each method is
a Temporal activity (registered under its StepKind name) and can equally
be called in-process by the local invoker.

Handlers hold no orchestration logic: they run one tool in the shared
workdir and translate its output into a typed result. A command that
cannot be run or evaluated raises StepCommandException so the substrate
can retry it.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from typing import Callable, Optional

from temporalio import activity

from core.config import StepsConfig
from core.schemas.errors import StepCommandException
from core.schemas.pipeline import slugify
from core.schemas.steps import (
    BuildResult,
    CloneParams,
    CloneResult,
    DeployResult,
    FlaggedStepParams,
    FormatResult,
    GenerateResult,
    LintResult,
    ModTidyResult,
    StepKind,
    StepMetadata,
    StepParams,
    TestResult,
)

from steps.commands import (
    CommandRunner,
    command_failed,
    failed_go_files,
    failed_tests,
    non_empty_lines,
    parse_test_events,
    porcelain_paths,
    run_command,
)


logger = logging.getLogger(__name__)


DEPLOY_STAGES = ("Preparing", "Uploading", "Configuring", "Starting")


class PipelineActivities:
    """
    Collection of step handlers.

    Constructed once per process and handed explicitly to the worker or
    to the local invoker; it keeps no per-run state.
    """

    def __init__(
        self,
        config: Optional[StepsConfig] = None,
        *,
        runner: CommandRunner = run_command,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            config: Binaries, workdir root and deploy timing
            runner: Command runner (replaced in tests)
            sleep: Delay function used by the simulated deploy
        """
        self.config = config or StepsConfig()
        self._run = runner
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def handlers(self) -> dict[StepKind, Callable]:
        """Handlers keyed by step kind, in pipeline order."""
        return {
            StepKind.GIT_CLONE: self.git_clone,
            StepKind.GO_TEST: self.go_test,
            StepKind.GO_FMT: self.go_fmt,
            StepKind.GO_MOD_TIDY: self.go_mod_tidy,
            StepKind.GO_BUILD: self.go_build,
            StepKind.GO_GENERATE: self.go_generate,
            StepKind.GOLANGCI_LINT: self.golangci_lint,
            StepKind.GO_DEPLOY: self.go_deploy,
            StepKind.DELETE_WORKDIR: self.delete_workdir,
        }

    def activities(self) -> list[Callable]:
        """Bound activity methods for worker registration."""
        return list(self.handlers().values())

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    @activity.defn(name=StepKind.GIT_CLONE.value)
    def git_clone(self, params: CloneParams) -> CloneResult:
        """
        Clone a repository into the workdir.

        When no workdir is given a fresh temporary directory is created,
        so a retried attempt never sees a partial clone from an earlier one.
        A failed attempt removes the directory it created.
        """
        metadata = params.metadata
        created = not metadata.workdir
        if created:
            prefix = f"{slugify(params.run_id, max_length=60) or 'pipeline'}-"
            workdir = tempfile.mkdtemp(prefix=prefix, dir=self.config.workdir_root)
            logger.info(f"No workdir specified, created {workdir}")
            metadata = StepMetadata(workdir=workdir)

        try:
            # Clone into the directory itself rather than a repo-named subfolder.
            result = self._run(
                [self.config.git_binary, "clone", params.remote, "."],
                cwd=metadata.workdir,
                timeout=self.config.step_timeout_s,
            )
            if not result.ok:
                raise command_failed(result, "git clone")
        except StepCommandException:
            if created:
                # Nothing downstream knows about this attempt's directory.
                shutil.rmtree(metadata.workdir, ignore_errors=True)
            raise
        logger.info(f"Cloned {params.remote} into {metadata.workdir}")
        return CloneResult(metadata=metadata)

    @activity.defn(name=StepKind.GO_TEST.value)
    def go_test(self, params: FlaggedStepParams) -> TestResult:
        """
        Run ``go test``.

        A non-zero exit is read as failing tests; the flags are expected to
        include ``-json`` so individual failures can be named.
        """
        args = [self.config.go_binary, "test", "./...", *params.flags]
        result = self._run(args, cwd=params.metadata.workdir, timeout=self.config.step_timeout_s)
        if result.ok:
            return TestResult(metadata=params.metadata)

        logger.info(f"go test exited with status {result.returncode}")
        try:
            failures = failed_tests(parse_test_events(result.stdout))
        except ValueError as e:
            raise StepCommandException(
                f"Could not parse go test output: {e}",
                command=args,
                returncode=result.returncode,
            ) from e
        if not failures:
            raise command_failed(result, "go test")
        return TestResult(metadata=params.metadata, failed_tests=failures)

    @activity.defn(name=StepKind.GO_FMT.value)
    def go_fmt(self, params: StepParams) -> FormatResult:
        """Run ``go fmt``; every file it prints needed formatting."""
        result = self._run(
            [self.config.go_binary, "fmt", "./..."],
            cwd=params.metadata.workdir,
            timeout=self.config.step_timeout_s,
        )
        if not result.ok:
            raise command_failed(result, "go fmt")
        return FormatResult(metadata=params.metadata, failed_files=non_empty_lines(result.stdout))

    @activity.defn(name=StepKind.GO_MOD_TIDY.value)
    def go_mod_tidy(self, params: StepParams) -> ModTidyResult:
        """Run ``go mod tidy`` and report go.mod/go.sum if it changed them."""
        workdir = params.metadata.workdir
        result = self._run(
            [self.config.go_binary, "mod", "tidy"],
            cwd=workdir,
            timeout=self.config.step_timeout_s,
        )
        if not result.ok:
            raise command_failed(result, "go mod tidy")

        status = self._run(
            [self.config.git_binary, "status", "--porcelain", "--", "go.mod", "go.sum"],
            cwd=workdir,
            timeout=self.config.step_timeout_s,
        )
        if not status.ok:
            raise command_failed(status, "git status")
        return ModTidyResult(metadata=params.metadata, failed_files=porcelain_paths(status.stdout))

    @activity.defn(name=StepKind.GO_BUILD.value)
    def go_build(self, params: FlaggedStepParams) -> BuildResult:
        """Run ``go build``; files named in compiler errors are failures."""
        return self._file_check(
            [self.config.go_binary, "build", "./...", *params.flags],
            params,
            "go build",
            BuildResult,
        )

    @activity.defn(name=StepKind.GO_GENERATE.value)
    def go_generate(self, params: FlaggedStepParams) -> GenerateResult:
        """Run ``go generate``; files named in generator errors are failures."""
        return self._file_check(
            [self.config.go_binary, "generate", "./...", *params.flags],
            params,
            "go generate",
            GenerateResult,
        )

    @activity.defn(name=StepKind.GOLANGCI_LINT.value)
    def golangci_lint(self, params: StepParams) -> LintResult:
        """Run ``golangci-lint run``; a non-zero exit means lint issues on stdout."""
        result = self._run(
            [self.config.lint_binary, "run"],
            cwd=params.metadata.workdir,
            timeout=self.config.step_timeout_s,
        )
        if result.ok:
            logger.info("golangci-lint ran with no issues")
            return LintResult()

        issues = non_empty_lines(result.stdout)
        if not issues:
            raise command_failed(result, "golangci-lint")
        logger.info(f"golangci-lint reported {len(issues)} issue line(s)")
        return LintResult(issues=issues)

    @activity.defn(name=StepKind.GO_DEPLOY.value)
    def go_deploy(self, params: StepParams) -> DeployResult:
        """Simulated deployment of the built workdir."""
        logger.info(f"Starting deployment from {params.metadata.workdir}")
        for stage in DEPLOY_STAGES:
            self._sleep(self.config.deploy_stage_delay_s)
            logger.info(f"Deployment stage completed: {stage}")
        logger.info("Deployment completed successfully")
        return DeployResult(success=True)

    @activity.defn(name=StepKind.DELETE_WORKDIR.value)
    def delete_workdir(self, params: StepParams) -> None:
        """Remove the workdir. Already-removed directories count as done."""
        workdir = params.metadata.workdir
        if not workdir:
            logger.warning("No workdir to delete")
            return
        if not os.path.exists(workdir):
            logger.info(f"Workdir {workdir} already removed")
            return
        logger.info(f"Deleting workdir {workdir}")
        try:
            shutil.rmtree(workdir)
        except OSError as e:
            raise StepCommandException(f"Failed to delete workdir {workdir}: {e}") from e
        logger.info("Workdir deleted successfully")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _file_check(self, args: list[str], params: StepParams, what: str, result_type: type):
        result = self._run(args, cwd=params.metadata.workdir, timeout=self.config.step_timeout_s)
        if result.ok:
            logger.info(f"{what} ran successfully")
            return result_type(metadata=params.metadata)

        files = failed_go_files(result.stderr) or failed_go_files(result.stdout)
        if not files:
            raise command_failed(result, what)
        logger.info(f"{what} failed in {len(files)} file(s)")
        return result_type(metadata=params.metadata, failed_files=files)
