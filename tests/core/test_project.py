"""Tests for core/project.py and core/coordinator.py: extends, init, ready, run."""

import asyncio
import textwrap
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from projectcore import ProjectCore
from projectcore.config import Config
from projectcore.core.coordinator import InitState
from projectcore.errors import InitStateError, LoadError


async def _drain(ticks: int = 5) -> None:
    for _ in range(ticks):
        await asyncio.sleep(0)


def _write_task(directory, name, body):
    path = directory / name
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


# -- Collaborators ------------------------------------------------------------


class TestCollaborators:
    def test_data(self, core):
        core.data.set("a.a", 123)
        core.data.set("a.b", 456)
        core.data.set("b", "abc")
        assert core.data.get("a") == {"a": 123, "b": 456}
        assert core.data.all() == {"a": {"a": 123, "b": 456}, "b": "abc"}

    def test_event(self, core):
        status = {}
        core.event.on("a", lambda v: status.setdefault("a", v))
        core.event.on("b", lambda v: status.setdefault("b", v))
        core.event.emit("a", 123)
        core.event.emit("b", 456)
        assert status == {"a": 123, "b": 456}

    def test_instances_are_independent(self):
        first, second = ProjectCore(), ProjectCore()
        first.config.set("name", "first")
        first.method("m")
        assert not second.config.has("name")
        assert "m" not in second.methods

    def test_method_shortcut(self, core):
        assert core.method("a.b") is core.methods.method("a.b")

    async def test_method_errors_reach_error_event(self, core):
        errors = []
        core.event.on("error", errors.append)

        def bad_observer(err, params, result):
            raise RuntimeError("observer failed")

        def main(params):
            raise ValueError("main failed")

        core.method("m").register(main).catch(bad_observer)
        with pytest.raises(ValueError):
            await core.method("m").call({})
        assert [str(e) for e in errors] == ["observer failed"]


# -- Init ---------------------------------------------------------------------


class TestInit:
    async def test_hooks_then_tasks(self, core):
        order = []

        def before(ctx, done):
            assert ctx is core
            order.append("before")
            done()

        def init(ctx):
            assert ctx is core
            order.append("init")

        async def after(ctx):
            assert ctx is core
            order.append("after")

        core.extends(before=before, init=init, after=after)
        core.tasks.add(lambda ctx, done: (order.append("task1"), done()))
        core.tasks.add(lambda ctx: order.append("task2"))

        assert core.state is InitState.IDLE
        await core.init()

        assert order == ["before", "init", "after", "task1", "task2"]
        assert core.inited
        assert core.state is InitState.INITED

    async def test_all_before_hooks_run_before_init_hooks(self, core):
        order = []
        core.extends(before=lambda c: order.append("b1"), init=lambda c: order.append("i1"))
        core.extends(before=lambda c: order.append("b2"), after=lambda c: order.append("a2"))
        await core.init()
        assert order == ["b1", "b2", "i1", "a2"]

    async def test_structural_changes_rejected_after_init(self, core):
        await core.init()

        with pytest.raises(InitStateError, match="inited"):
            core.tasks.add(lambda ctx: None)
        with pytest.raises(InitStateError, match="inited"):
            core.init()
        with pytest.raises(InitStateError, match="inited") as exc_info:
            core.extends(init=lambda ctx: None)
        assert exc_info.value.state is InitState.INITED
        assert exc_info.value.code == "init_state"

    async def test_structural_changes_rejected_while_initing(self, core):
        gate = asyncio.Event()

        async def slow(ctx):
            await gate.wait()

        core.extends(init=slow)
        task = core.init()
        assert core.initing
        with pytest.raises(InitStateError, match="initing"):
            core.extends(init=lambda ctx: None)
        with pytest.raises(InitStateError, match="initing"):
            core.tasks.add(lambda ctx: None)
        with pytest.raises(InitStateError, match="initing"):
            core.init()

        gate.set()
        await task
        assert core.inited

    async def test_failure_skips_remaining(self, core):
        status = {}
        errors = []
        results = []
        core.event.on("error", errors.append)

        def init(ctx, done):
            status["init"] = True
            done(RuntimeError("just for test"))

        core.extends(
            before=lambda ctx: status.setdefault("before", True),
            init=init,
            after=lambda ctx: status.setdefault("after", True),
        )
        core.tasks.add(lambda ctx: status.setdefault("task", True))

        task = core.init(callback=lambda err, res: results.append(err))
        with pytest.raises(RuntimeError, match="just for test"):
            await task
        await _drain()

        assert status == {"before": True, "init": True}
        assert [str(e) for e in errors] == ["just for test"]
        assert [str(e) for e in results] == ["just for test"]
        assert core.state is InitState.INITING
        with pytest.raises(InitStateError):
            core.init()

    async def test_extension_adds_attributes(self, core):
        def init(ctx):
            ctx.hello = lambda msg: f"hello, {msg}"

        core.extends({"init": init})
        await core.init()
        assert core.hello("core") == "hello, core"

    async def test_extension_object_and_mapping(self, core):
        order = []
        module_like = SimpleNamespace(
            before=lambda ctx: order.append("obj.before"),
            init=lambda ctx: order.append("obj.init"),
            after="not callable",
        )
        core.extends(module_like)
        core.extends({"after": lambda ctx: order.append("map.after"), "other": 1})
        await core.init()
        assert order == ["obj.before", "obj.init", "map.after"]

    async def test_extension_and_keyword_hooks_combined(self, core):
        order = []
        core.extends(
            {"init": lambda ctx: order.append("mapping")},
            init=lambda ctx: order.append("keyword"),
        )
        await core.init()
        assert order == ["mapping", "keyword"]

    async def test_init_params_forwarded(self, core):
        seen = []
        core.extends(init=lambda ctx, env, port: seen.append(("hook", env, port)))
        core.tasks.add(lambda ctx, env, port, done: (seen.append(("task", env, port)), done()))
        await core.init("prod", 8080)
        assert seen == [("hook", "prod", 8080), ("task", "prod", 8080)]

    async def test_hooks_snapshot(self, core):
        core.extends(before=lambda c: None, init=lambda c: None)
        hooks = core._coordinator.hooks
        assert [len(hooks[p]) for p in ("before", "init", "after")] == [1, 1, 0]
        assert hooks["init"][0].kind == "extends.init"

    def test_init_without_running_loop(self, core):
        with pytest.raises(RuntimeError, match="event loop"):
            core.init()
        assert core.state is InitState.IDLE


# -- Ready --------------------------------------------------------------------


class TestReady:
    async def test_ready_before_init(self, core):
        calls = []
        core.ready(lambda: calls.append("ready"))
        await core.init()
        assert calls == ["ready"]

    async def test_ready_after_init_is_scheduled(self, core):
        calls = []
        await core.init()
        core.ready(lambda: calls.append("late"))
        assert calls == []
        await _drain()
        assert calls == ["late"]

    async def test_ready_callbacks_called_once(self, core):
        calls = []
        core.ready(lambda: calls.append("once"))
        await core.init()
        core.event.emit("ready")
        assert calls == ["once"]

    async def test_ready_not_called_on_failure(self, core):
        calls = []

        def fail(ctx):
            raise RuntimeError("fail")

        core.extends(init=fail)
        core.ready(lambda: calls.append("ready"))
        with pytest.raises(RuntimeError):
            await core.init()
        assert calls == []

    async def test_failing_ready_callback_goes_to_error_event(self, core):
        errors = []
        core.event.on("error", errors.append)
        await core.init()

        def bad():
            raise ValueError("ready failed")

        core.ready(bad)
        await _drain()
        assert [str(e) for e in errors] == ["ready failed"]

    def test_ready_rejects_non_callable(self, core):
        with pytest.raises(TypeError):
            core.ready("nope")

    def test_ready_after_init_without_running_loop(self, core):
        calls = []

        async def boot():
            await core.init()

        asyncio.run(boot())
        assert core.inited

        with pytest.raises(RuntimeError, match="event loop must be running"):
            core.ready(lambda: calls.append("ready"))
        assert calls == []

    def test_ready_before_init_without_running_loop(self, core):
        core.ready(lambda: None)
        assert core.event.listener_count("ready") == 1

    async def test_wait_ready(self, core):
        core.extends(init=lambda ctx: asyncio.sleep(0.01))
        core.init()
        await asyncio.wait_for(core.wait_ready(), timeout=1)
        assert core.inited
        await asyncio.wait_for(core.wait_ready(), timeout=1)


# -- Run ----------------------------------------------------------------------


class TestRun:
    async def test_run_callable(self, core):
        seen = []
        await core.run(lambda ctx, value: seen.append((ctx, value)), 42)
        assert seen == [(core, 42)]

    async def test_run_list_any_state(self, core):
        await core.init()
        order = []
        await core.run([lambda ctx: order.append(1), lambda ctx, done: (order.append(2), done())])
        assert order == [1, 2]

    async def test_run_with_callback(self, core):
        results = []

        def fail(ctx):
            raise ValueError("run failed")

        task = core.run(fail, callback=lambda err, res: results.append(err))
        with pytest.raises(ValueError):
            await task
        await _drain()
        assert [str(e) for e in results] == ["run failed"]

    async def test_run_failure_without_callback_goes_to_error_event(self, core):
        errors = []
        core.event.on("error", errors.append)

        def fail(ctx):
            raise ValueError("run failed")

        task = core.run(fail)
        await asyncio.wait({task})
        await _drain()
        assert [str(e) for e in errors] == ["run failed"]

    async def test_run_path(self, core, tmp_path):
        _write_task(
            tmp_path,
            "mark.py",
            """
            def task(core, done):
                core.data.set("marked", True)
                done()
            """,
        )
        await core.run(tmp_path / "mark.py")
        assert core.data.get("marked") is True

    def test_run_missing_path(self, core, tmp_path):
        with pytest.raises(LoadError):
            core.run(str(tmp_path / "missing"))


# -- Task loading and bootstrap -----------------------------------------------


class TestTaskLoading:
    async def test_load_directory_orders_by_level(self, core, tmp_path):
        _write_task(
            tmp_path,
            "a_low.py",
            """
            LEVEL = 1

            def task(core):
                core.data.set("order", core.data.get("order", []) + ["low"])
            """,
        )
        _write_task(
            tmp_path,
            "b_high.py",
            """
            def task(core, done):
                core.data.set("order", core.data.get("order", []) + ["high"])
                done()

            task.level = 10
            """,
        )
        handlers = core.tasks.load(tmp_path)
        assert [h.level for h in handlers] == [10, 1]
        assert len(core.tasks) == 2

        await core.init()
        assert core.data.get("order") == ["high", "low"]

    async def test_load_rejected_after_init(self, core, tmp_path):
        await core.init()
        with pytest.raises(InitStateError):
            core.tasks.load(tmp_path)

    async def test_from_env(self, tmp_path, monkeypatch):
        config_file = tmp_path / "app.yaml"
        config_file.write_text("name: from-env\n", encoding="utf-8")
        tasks_dir = tmp_path / "tasks"
        tasks_dir.mkdir()
        _write_task(
            tasks_dir,
            "greet.py",
            """
            def task(core):
                core.data.set("greeting", "hello " + core.config.get("name"))
            """,
        )
        monkeypatch.setattr(Config, "CONFIG_FILES", [str(config_file)])
        monkeypatch.setattr(Config, "TASKS_PATH", str(tasks_dir))

        core = ProjectCore.from_env()
        assert core.config.get("name") == "from-env"
        await core.init()
        assert core.data.get("greeting") == "hello from-env"

    def test_from_env_defaults(self, monkeypatch):
        monkeypatch.setattr(Config, "CONFIG_FILES", [])
        monkeypatch.setattr(Config, "TASKS_PATH", "")
        core = ProjectCore.from_env()
        assert core.config.all() == {}
        assert len(core.tasks) == 0

    def test_from_env_configures_logging(self, monkeypatch):
        monkeypatch.setattr(Config, "CONFIG_FILES", [])
        monkeypatch.setattr(Config, "TASKS_PATH", "")
        with patch("projectcore.core.project.setup_logging") as setup:
            ProjectCore.from_env(configure_logging=True)
            ProjectCore.from_env()
        setup.assert_called_once_with()
