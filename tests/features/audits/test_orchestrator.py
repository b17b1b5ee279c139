"""
Tests for TaskOrchestrator: sequential per-config runs, failure isolation,
the fatal path and the duplicate-delivery guard.
"""
from unittest.mock import MagicMock

import pytest

from conftest import FakeArtifactStore, FakeBrowserSession, make_report

from app.features.audits.exceptions import AuditEngineError, BrowserSessionError, TaskNotFoundError
from app.features.audits.models.audit_task import ResultStatus, TaskStatus
from app.features.audits.schemas.task import DEFAULT_TEST_CONFIGS, AuditConfig
from app.features.audits.services.lighthouse.audit_runner import AuditRunner, RunnerResult
from app.features.audits.services.orchestrator import TaskOrchestrator
from app.features.audits.services.report.report_processor import ReportProcessor

MOBILE = AuditConfig(device="mobile", browser="Chrome", location="us-east-1")
DESKTOP = AuditConfig(device="desktop", browser="Chrome", location="us-east-1")


class ScriptedRunner:
    """Returns (or raises) the scripted outcome for each config, recording call order."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls = []

    def run(self, session, url, config):
        self.calls.append(config)
        outcome = self.outcomes[config.key]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _orchestrator(repository, runner, browser=None, store=None):
    browser = browser or FakeBrowserSession()
    orchestrator = TaskOrchestrator(
        repository=repository,
        runner=runner,
        processor=ReportProcessor(store or FakeArtifactStore()),
        browser_factory=lambda: browser,
    )
    return orchestrator, browser


def _create(repository, configs, task_id="task-1"):
    repository.create_task("https://example.com", task_id, configs)
    return task_id


class TestProcess:
    def test_one_config_failing_does_not_abort_the_other(self, repository):
        """Config 1 scores 87, config 2 throws; the task still completes."""
        task_id = _create(repository, [MOBILE, DESKTOP])
        runner = ScriptedRunner(
            {
                MOBILE.key: RunnerResult(report=make_report(score=0.87)),
                DESKTOP.key: RuntimeError("navigation exploded"),
            }
        )
        orchestrator, browser = _orchestrator(repository, runner)

        status = orchestrator.process(task_id)

        task = repository.get_task_by_id(task_id)
        assert status == TaskStatus.completed
        assert task.status == TaskStatus.completed
        assert task.results[0].status == ResultStatus.completed
        assert task.results[0].score == 87
        assert task.results[1].status == ResultStatus.error
        assert task.results[1].error_message == "navigation exploded"
        assert runner.calls == [MOBILE, DESKTOP]
        assert browser.closed is True

    def test_structured_runner_failure_recorded_on_result(self, repository):
        task_id = _create(repository, [MOBILE])
        runner = ScriptedRunner({MOBILE.key: RunnerResult(error_message="Lighthouse timed out after 120s")})
        orchestrator, _ = _orchestrator(repository, runner)

        orchestrator.process(task_id)

        result = repository.get_task_by_id(task_id).results[0]
        assert result.status == ResultStatus.error
        assert result.error_message == "Lighthouse timed out after 120s"
        assert result.score is None
        assert result.report is None

    def test_completed_results_match_planned_configs(self, repository):
        task_id = _create(repository, DEFAULT_TEST_CONFIGS)
        runner = ScriptedRunner(
            {config.key: RunnerResult(report=make_report()) for config in DEFAULT_TEST_CONFIGS}
        )
        store = FakeArtifactStore()
        orchestrator, _ = _orchestrator(repository, runner, store=store)

        orchestrator.process(task_id)

        task = repository.get_task_by_id(task_id)
        assert [result.config for result in task.results] == DEFAULT_TEST_CONFIGS
        assert all(result.status == ResultStatus.completed for result in task.results)
        assert len(store.objects) == 9
        thumbnail = task.results[0].report["audits"]["final-screenshot"]["details"]
        assert "data" not in thumbnail
        assert thumbnail["objectKey"] in store.objects

    def test_empty_planned_configs_fall_back_to_defaults(self, repository):
        task_id = _create(repository, [])
        runner = ScriptedRunner(
            {config.key: RunnerResult(report=make_report()) for config in DEFAULT_TEST_CONFIGS}
        )
        orchestrator, _ = _orchestrator(repository, runner)

        orchestrator.process(task_id)

        task = repository.get_task_by_id(task_id)
        assert task.planned_configs == DEFAULT_TEST_CONFIGS
        assert len(task.results) == 3

    def test_unknown_task_raises(self, repository):
        orchestrator, browser = _orchestrator(repository, ScriptedRunner({}))

        with pytest.raises(TaskNotFoundError):
            orchestrator.process("missing")

        assert browser.launched is False


class TestFatalPath:
    def test_browser_launch_failure_marks_everything_error_and_reraises(self, repository):
        task_id = _create(repository, DEFAULT_TEST_CONFIGS)
        runner = ScriptedRunner({})
        orchestrator, _ = _orchestrator(repository, runner, browser=FakeBrowserSession(fail_launch=True))

        with pytest.raises(BrowserSessionError):
            orchestrator.process(task_id)

        task = repository.get_task_by_id(task_id)
        assert task.status == TaskStatus.error
        assert runner.calls == []
        for result in task.results:
            assert result.status == ResultStatus.error
            assert "Failed to launch browser" in result.error_message

    def test_browser_dying_mid_run_keeps_finished_results(self, repository):
        task_id = _create(repository, [MOBILE, DESKTOP])
        runner = ScriptedRunner(
            {
                MOBILE.key: RunnerResult(report=make_report(score=0.5)),
                DESKTOP.key: BrowserSessionError("Failed to open browser page: chrome not reachable"),
            }
        )
        orchestrator, browser = _orchestrator(repository, runner)

        with pytest.raises(BrowserSessionError):
            orchestrator.process(task_id)

        task = repository.get_task_by_id(task_id)
        assert task.status == TaskStatus.error
        assert task.results[0].status == ResultStatus.completed
        assert task.results[0].score == 50
        assert task.results[1].status == ResultStatus.error
        assert task.results[1].error_message.startswith("Task failed: Failed to open browser page")
        assert browser.closed is True


class TestReprocessingGuard:
    @pytest.mark.parametrize("status", [TaskStatus.completed, TaskStatus.error])
    def test_terminal_task_is_not_touched(self, status):
        task = MagicMock(status=status, task_id="task-1")
        repository = MagicMock()
        repository.get_task_by_id.return_value = task
        browser_factory = MagicMock()
        orchestrator = TaskOrchestrator(repository, MagicMock(), MagicMock(), browser_factory)

        assert orchestrator.process("task-1") == status

        repository.initialize_partial_results.assert_not_called()
        repository.update_task_status.assert_not_called()
        repository.update_partial_result_status.assert_not_called()
        browser_factory.assert_not_called()

    def test_completed_task_is_skipped_even_on_retry(self, repository):
        task_id = _create(repository, [MOBILE])
        repository.update_task_status(task_id, TaskStatus.completed)
        runner = ScriptedRunner({})
        orchestrator, _ = _orchestrator(repository, runner)

        assert orchestrator.process(task_id, retrying=True) == TaskStatus.completed
        assert runner.calls == []

    def test_retry_reruns_a_task_left_in_error(self, repository):
        task_id = _create(repository, [MOBILE, DESKTOP])
        failing, _ = _orchestrator(
            repository, ScriptedRunner({}), browser=FakeBrowserSession(fail_launch=True)
        )
        with pytest.raises(BrowserSessionError):
            failing.process(task_id)

        runner = ScriptedRunner(
            {
                MOBILE.key: RunnerResult(report=make_report()),
                DESKTOP.key: RunnerResult(report=make_report()),
            }
        )
        retry, _ = _orchestrator(repository, runner)

        assert retry.process(task_id, retrying=True) == TaskStatus.completed

        task = repository.get_task_by_id(task_id)
        assert runner.calls == [MOBILE, DESKTOP]
        assert all(result.status == ResultStatus.completed for result in task.results)
        assert all(result.error_message is None for result in task.results)


class TestWithAuditRunner:
    def test_engine_error_becomes_config_error_and_pages_are_closed(self, repository):
        task_id = _create(repository, [MOBILE, DESKTOP])
        engine = MagicMock()
        engine.run.side_effect = [make_report(score=0.92), AuditEngineError("Lighthouse exited with status 1: boom")]
        runner = AuditRunner(engine, navigation_timeout=60000, throttling_method="simulate")
        orchestrator, browser = _orchestrator(repository, runner)

        orchestrator.process(task_id)

        task = repository.get_task_by_id(task_id)
        assert task.status == TaskStatus.completed
        assert task.results[0].score == 92
        assert task.results[1].error_message == "Lighthouse exited with status 1: boom"
        assert browser.pages_opened == 2
        assert browser.open_pages == 0
        assert browser.emulated == ["mobile", "desktop"]
