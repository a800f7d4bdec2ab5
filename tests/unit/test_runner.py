"""Unit tests for the container lifecycle runner."""

import pytest

from cluster_up.container import ContainerRunner, EngineInfo
from cluster_up.errors import (
    ConfigurationError,
    ContainerNotFoundError,
    EngineCallError,
    ExitStatusError,
    WaitTimeoutError,
)


class TestRun:
    """Tests for the create/attach/start/wait sequence."""

    @pytest.mark.asyncio
    async def test_captures_output(self, engine, logger):
        """Foreground output is captured and stripped."""
        engine.script("test-additional-ips", stdout=b"10.0.0.5 172.17.0.1\n")
        runner = ContainerRunner(engine, logger=logger).entrypoint("hostname").command("-I")

        result = await runner.run("openshift/origin:latest", "test-additional-ips")

        assert result.error is None
        assert result.exit_code == 0
        assert runner.output() == b"10.0.0.5 172.17.0.1"
        assert engine.methods()[:4] == [
            "container_create",
            "container_attach",
            "container_wait",
            "container_start",
        ]
        config = engine.created()[0]
        assert config.entrypoint == ("hostname",)
        assert config.command == ("-I",)

    @pytest.mark.asyncio
    async def test_run_is_idempotent(self, engine, logger):
        """A second run() returns the same result without touching the engine."""
        runner = ContainerRunner(engine, logger=logger)

        first = await runner.run("busybox", "once")
        calls = len(engine.calls)
        second = await runner.run("busybox", "once")

        assert second is first
        assert len(engine.calls) == calls
        assert len(engine.called("container_create")) == 1

    @pytest.mark.asyncio
    async def test_image_is_required(self, engine, logger):
        """build() refuses a runner without an image."""
        with pytest.raises(ConfigurationError):
            await ContainerRunner(engine, logger=logger).build()

    @pytest.mark.asyncio
    async def test_wait_registered_for_removal_when_discarded(self, engine, logger):
        """Discarded containers are awaited until the engine removed them."""
        await ContainerRunner(engine, logger=logger).discard().run("busybox", "gone")
        await ContainerRunner(engine, logger=logger).run("busybox", "kept")

        conditions = [c[1] for c in engine.called("container_wait")]
        assert conditions == ["removed", "next-exit"]

    @pytest.mark.asyncio
    async def test_discard_removes_container(self, engine, logger):
        """Discarded containers are force-removed after exit."""
        result = await ContainerRunner(engine, logger=logger).discard().run("busybox", "gone")

        assert result.error is None
        assert engine.called("container_remove") == [(result.container_id, True)]
        assert engine.created()[0].auto_remove is True

    @pytest.mark.asyncio
    async def test_create_warnings_are_logged(self, engine, logger):
        """Engine warnings from create are logged at info level."""
        engine.script("warned", warnings=["kernel does not support swap limit"])

        await ContainerRunner(engine, logger=logger).run("busybox", "warned")

        assert any("swap limit" in m for m in logger.messages("info"))


class TestBackground:
    """Tests for background containers."""

    @pytest.mark.asyncio
    async def test_background_returns_after_start(self, engine, logger):
        """Background containers are neither attached nor awaited."""
        engine.script("daemon", stdout=b"ignored", block=True)
        runner = ContainerRunner(engine, logger=logger).background()

        result = await runner.run("busybox", "daemon")

        assert result.error is None
        assert engine.methods() == ["container_create", "container_start"]
        assert runner.output() == b""
        assert runner.error_output() == b""

    def test_on_exit_with_background_rejected(self, engine, logger):
        """on_exit hooks and background mode are mutually exclusive."""

        async def hook(container_id):
            pass

        with pytest.raises(ConfigurationError):
            ContainerRunner(engine, logger=logger).background().on_exit(hook)
        with pytest.raises(ConfigurationError):
            ContainerRunner(engine, logger=logger).on_exit(hook).background()


class TestHooks:
    """Tests for on-start and on-exit hooks."""

    @pytest.mark.asyncio
    async def test_start_failure_still_runs_exit_hooks(self, engine, logger):
        """Exit hooks run once, in order, when start fails."""
        start_error = EngineCallError("port is already allocated", operation="container start")
        engine.fail("container_start", start_error)
        order = []

        def record(label):
            async def hook(container_id):
                order.append((label, container_id))

            return hook

        result = await (
            ContainerRunner(engine, logger=logger)
            .on_exit(record("first"))
            .on_exit(record("second"))
            .run("busybox", "broken")
        )

        assert result.error is start_error
        assert order == [("first", result.container_id), ("second", result.container_id)]

    @pytest.mark.asyncio
    async def test_create_failure_skips_hooks(self, engine, logger):
        """Nothing runs when the container could not be created."""
        engine.fail("container_create", EngineCallError("no such image"))
        ran = []

        async def hook(container_id):
            ran.append(container_id)

        runner = ContainerRunner(engine, logger=logger).on_start(hook).on_exit(hook)
        result = await runner.run("missing:latest", "nothing")

        assert isinstance(result.error, EngineCallError)
        assert result.container_id is None
        assert ran == []

    @pytest.mark.asyncio
    async def test_start_hook_failure_recorded(self, engine, logger):
        """A failing on-start hook becomes the result error and exit hooks still run."""
        engine.script("hooked", block=True)
        exited = []

        async def bad_hook(container_id):
            raise RuntimeError("hook exploded")

        async def exit_hook(container_id):
            exited.append(container_id)

        result = await (
            ContainerRunner(engine, logger=logger)
            .on_start(bad_hook)
            .on_exit(exit_hook)
            .run("busybox", "hooked")
        )

        assert isinstance(result.error, RuntimeError)
        assert exited == [result.container_id]
        assert engine.called("container_wait")
        assert engine.streams[0].closed
        # The still running container is not left behind
        assert engine.called("container_kill") == [(result.container_id, "KILL")]
        assert engine.called("container_remove") == [(result.container_id, True)]

    @pytest.mark.asyncio
    async def test_first_error_wins(self, engine, logger):
        """A failing exit hook does not replace an earlier error."""
        engine.script("failing", exit_code=3)

        async def bad_exit(container_id):
            raise RuntimeError("cleanup failed")

        result = await ContainerRunner(engine, logger=logger).on_exit(bad_exit).run(
            "busybox", "failing"
        )

        assert isinstance(result.error, ExitStatusError)


class TestExit:
    """Tests for exit status and wait handling."""

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, engine, logger):
        """A non-zero exit code is recorded together with the output."""
        engine.script("failing", stdout=b"partial", stderr=b"boom\n", exit_code=2)
        runner = ContainerRunner(engine, logger=logger)

        result = await runner.run("busybox", "failing")

        assert isinstance(result.error, ExitStatusError)
        assert result.error.exit_code == 2
        assert result.exit_code == 2
        assert "boom" in str(result.error)
        assert "partial" in str(result.error)
        assert runner.combined_output() == b"partial\nboom"

    @pytest.mark.asyncio
    async def test_wait_timeout_kills_and_removes(self, engine, logger):
        """A container outliving the wait budget is killed and removed."""
        engine.script("stuck", block=True)

        result = await ContainerRunner(engine, logger=logger, wait_timeout=0.05).run(
            "busybox", "stuck"
        )

        assert isinstance(result.error, WaitTimeoutError)
        assert engine.called("container_kill") == [(result.container_id, "KILL")]
        assert engine.called("container_remove") == [(result.container_id, True)]

    @pytest.mark.asyncio
    async def test_wait_failure_recorded(self, engine, logger):
        """An engine error while waiting is recorded."""
        engine.fail("container_wait", EngineCallError("connection reset"))

        result = await ContainerRunner(engine, logger=logger).run("busybox", "waiting")

        assert isinstance(result.error, EngineCallError)
        assert "connection reset" in str(result.error)

    @pytest.mark.asyncio
    async def test_removed_before_wait_is_not_an_error(self, engine, logger):
        """An auto-removed container gone before the wait ends with an unknown exit code."""
        engine.fail("container_wait", ContainerNotFoundError("No such container: quick"))

        result = await ContainerRunner(engine, logger=logger).discard().run("busybox", "quick")

        assert result.error is None
        assert result.exit_code is None

    @pytest.mark.asyncio
    async def test_missing_kept_container_recorded(self, engine, logger):
        """Containers that are not auto-removed must still be found by the wait."""
        engine.fail("container_wait", ContainerNotFoundError("No such container: kept"))

        result = await ContainerRunner(engine, logger=logger).run("busybox", "kept")

        assert isinstance(result.error, ContainerNotFoundError)


class TestPrivileged:
    """Tests for privileged containers and user namespaces."""

    @pytest.mark.asyncio
    async def test_shares_host_userns_when_enabled(self, engine, logger):
        """Privileged containers use the host user namespace on userns daemons."""
        engine.engine_info = EngineInfo(security_options=["name=seccomp", "name=userns"])

        await ContainerRunner(engine, logger=logger).privileged().run("busybox", "priv")

        config = engine.created()[0]
        assert config.privileged is True
        assert config.userns_mode == "host"

    @pytest.mark.asyncio
    async def test_no_userns_mode_by_default(self, engine, logger):
        await ContainerRunner(engine, logger=logger).privileged().run("busybox", "priv")

        assert engine.created()[0].userns_mode is None

    @pytest.mark.asyncio
    async def test_userns_check_failure_prevents_create(self, engine, logger):
        """The container is never created when the userns check fails."""
        engine.fail("info", EngineCallError("daemon unavailable", operation="docker info"))

        result = await ContainerRunner(engine, logger=logger).privileged().run("busybox", "priv")

        assert isinstance(result.error, EngineCallError)
        assert engine.called("container_create") == []


class TestBuilder:
    """Tests for builder calls."""

    @pytest.mark.asyncio
    async def test_setter_after_create_rejected(self, engine, logger):
        runner = ContainerRunner(engine, logger=logger)
        await runner.run("busybox", "done")

        with pytest.raises(ConfigurationError):
            runner.privileged()

    @pytest.mark.asyncio
    async def test_binds_deduplicated(self, engine, logger):
        runner = (
            ContainerRunner(engine, logger=logger)
            .mount_root_fs()
            .bind("/var/run:/var/run", "/:/rootfs:ro")
            .host_pid()
            .host_network()
        )

        await runner.run("busybox", "mounts")

        config = engine.created()[0]
        assert config.binds == ("/:/rootfs:ro", "/var/run:/var/run")
        assert config.host_pid is True
        assert config.host_network is True


class TestLogPersistence:
    """Tests for writing captured output under the base dir."""

    @pytest.mark.asyncio
    async def test_output_written_to_logs(self, engine, logger, tmp_path):
        engine.script("logged", stdout=b"hello\n", stderr=b"warning\n")

        await ContainerRunner(engine, base_dir=tmp_path, logger=logger).run("busybox", "logged")

        assert (tmp_path / "logs" / "logged.stdout.log").read_bytes() == b"hello\n"
        assert (tmp_path / "logs" / "logged.stderr.log").read_bytes() == b"warning\n"

    @pytest.mark.asyncio
    async def test_nothing_written_without_base_dir(self, engine, logger, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        engine.script("logged", stdout=b"hello\n")

        await ContainerRunner(engine, logger=logger).run("busybox", "logged")

        assert not (tmp_path / "logs").exists()

    @pytest.mark.asyncio
    async def test_log_write_failure_is_logged(self, engine, logger, tmp_path):
        """A base dir that cannot hold logs does not fail the run."""
        base_dir = tmp_path / "afile"
        base_dir.write_text("not a directory")
        engine.script("writer", stdout=b"hello\n")

        result = await ContainerRunner(engine, base_dir=base_dir, logger=logger).run(
            "busybox", "writer"
        )

        assert result.error is None
        assert result.exit_code == 0
        assert any(m.startswith("unable to write container log") for m in logger.messages("error"))
