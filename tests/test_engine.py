from pathlib import Path
from typing import List

import pytest

from rns_engine import Engine, EngineSettings
from rns_engine.errors import KeymapConflictError, NoOpenScopeError, SourceFetchError
from rns_engine.host import RecordingHost
from rns_engine.plugins import Plugin, PluginState


class InstantFetcher:
    def install(self, plugin: Plugin) -> str:
        return f"/data/{plugin.name}"

    def update(self, plugin: Plugin) -> None:
        return None


class BrokenFetcher(InstantFetcher):
    def install(self, plugin: Plugin) -> str:
        raise SourceFetchError(plugin.name, "network unreachable")


def make_engine(
    host: RecordingHost | None = None, fetcher: InstantFetcher | None = None
) -> Engine:
    settings = EngineSettings(data_dir=Path("/tmp/rns-engine"), refresh_runtime=False)
    return Engine(
        host or RecordingHost(), settings=settings, fetcher=fetcher or InstantFetcher()
    )


def test_flat_calls_apply_immediately() -> None:
    host = RecordingHost()
    engine = make_engine(host)

    engine.set_option("number", True)
    engine.set_global("mapleader", " ")
    engine.create_augroup("Fmt")
    engine.create_autocmd("BufWritePre", "*.py", "Black", group="Fmt")
    engine.create_keymap("n", "<leader>w", ":w<CR>", opts={"silent": True})
    engine.buffer_keymap(2, "n", "q", ":close<CR>")
    engine.create_user_command("Grep", "silent grep <args>")
    engine.setup_lsp("pyright", {"single_file_support": True})

    state = host.snapshot()
    assert state.options == {"number": True}
    assert state.globals == {"mapleader": " "}
    assert [r.command for r in state.augroups["Fmt"]] == ["Black"]
    assert state.keymaps[("n", "<leader>w")] == (":w<CR>", {"silent": True})
    assert state.buffer_keymaps[(2, "n", "q")] == (":close<CR>", {})
    assert "Grep" in state.user_commands
    assert state.servers == {"pyright": {"single_file_support": True}}


def test_each_flat_call_only_applies_its_own_declaration() -> None:
    host = RecordingHost()
    engine = make_engine(host)
    engine.set_option("number", True)
    engine.create_keymap("n", "a", "b")

    engine.set_option("tabstop", 4)

    assert host.primitives() == ["set_option", "create_keymap", "set_option"]
    assert host.calls[-1] == ("set_option", ("tabstop", 4))


def test_opt_combines_values() -> None:
    host = RecordingHost()
    engine = make_engine(host)

    engine.opt("clipboard", "unnamed", "unnamedplus")

    assert host.state.options["clipboard"] == "unnamed,unnamedplus"
    assert engine.declarations.options["clipboard"] == "unnamed,unnamedplus"


def test_flat_keymap_shadowed_by_loaded_plugin_is_reported() -> None:
    host = RecordingHost()
    engine = make_engine(host)
    engine.register_plugin("telescope", "https://example.com/telescope.git")
    with engine.config("telescope"):
        engine.add_keymap("n", "<leader>f", "<cmd>Telescope<CR>")
    engine.install()
    engine.load_configs()

    report = engine.create_keymap("n", "<leader>f", ":Files<CR>")

    assert report.total == 0
    assert [spec.rhs for spec in report.shadowed] == [":Files<CR>"]
    assert host.state.keymaps[("n", "<leader>f")][0] == "<cmd>Telescope<CR>"


def test_flat_keymap_is_bound_when_claiming_plugin_never_loaded() -> None:
    host = RecordingHost()
    engine = make_engine(host, fetcher=BrokenFetcher())
    engine.register_plugin("telescope", "https://example.com/telescope.git")
    with engine.config("telescope"):
        engine.add_keymap("n", "<leader>f", "<cmd>Telescope<CR>")
    engine.install()

    report = engine.create_keymap("n", "<leader>f", ":Files<CR>")

    assert engine.plugin("telescope").state is PluginState.FAILED
    assert report.ok
    assert report.shadowed == ()
    assert host.state.keymaps[("n", "<leader>f")][0] == ":Files<CR>"


def test_flat_keymap_ignores_conflicts_on_other_keys() -> None:
    host = RecordingHost()
    engine = make_engine(host)
    for name in ("a", "b"):
        engine.register_plugin(name, f"https://example.com/{name}.git")
        with engine.config(name):
            engine.add_keymap("n", "gd", name)

    report = engine.create_keymap("n", "<leader>w", ":w<CR>")

    assert report.ok
    assert host.state.keymaps[("n", "<leader>w")] == (":w<CR>", {})


def test_flat_keymap_conflict_leaves_no_declaration_behind() -> None:
    host = RecordingHost()
    engine = make_engine(host)
    for name, key in (("a", "gd"), ("b", "gr")):
        engine.register_plugin(name, f"https://example.com/{name}.git")
        with engine.config(name):
            engine.add_keymap("n", key, name)
    engine.install()
    engine.load_configs()
    with engine.config("b"):
        engine.add_keymap("n", "gd", "b")

    with pytest.raises(KeymapConflictError):
        engine.create_keymap("n", "gd", ":Definitions<CR>")

    assert engine.declarations.keymaps == ()


def test_legacy_autocmd_is_not_duplicated_by_reapply() -> None:
    host = RecordingHost()
    engine = make_engine(host)

    engine.autocmd("BufEnter", "*", "echo 'entered'")
    engine.autocmd("BufLeave", "*", "echo 'left'")
    engine.apply()
    engine.apply()

    commands = [record.command for record in host.state.augroups["rns_engine"]]
    assert commands == ["echo 'entered'", "echo 'left'"]
    assert host.state.autocmds == []


def test_flat_clearing_augroup_drops_earlier_autocmds() -> None:
    host = RecordingHost()
    engine = make_engine(host)

    engine.create_augroup("Fmt", clear=True)
    engine.create_autocmd("BufWritePre", "*.py", "Black", group="Fmt")
    engine.create_augroup("Fmt", clear=True)
    engine.create_autocmd("BufWritePre", "*.lua", "Stylua", group="Fmt")
    engine.apply()

    assert [record.command for record in host.state.augroups["Fmt"]] == ["Stylua"]
    assert [spec.command for spec in engine.declarations.autocmds] == ["Stylua"]


def test_exec_requests_run_once_and_are_not_recorded() -> None:
    host = RecordingHost()
    engine = make_engine(host)

    engine.exec_command("echo 'once'")
    engine.exec_code("print('once')")
    engine.load_config("/home/me/init.lua")
    engine.require_setup("telescope", "{ defaults = {} }")
    engine.apply()

    assert host.executed == ["echo 'once'", "luafile /home/me/init.lua"]
    assert host.executed_code == [
        "print('once')",
        "require('telescope').setup({ defaults = {} })",
    ]


def test_full_session_flow() -> None:
    host = RecordingHost()
    engine = make_engine(host)
    engine.register_plugin("lspconfig", "https://example.com/lspconfig.git")
    engine.register_plugin("telescope", "https://example.com/telescope.git")

    engine.begin_config("lspconfig")
    engine.add_server("lua_ls")
    engine.set_server_option("lua_ls", "cmd", ["lua-language-server"])
    engine.end_config()
    engine.begin_config("telescope")
    engine.add_mapping("telescope", "n", "<leader>ff", "<cmd>Telescope find_files<CR>")
    engine.end_config()
    engine.configure_plugin("telescope", "require('telescope').setup({})")

    install = engine.install()
    loaded = engine.load_configs()

    assert install.succeeded == ("lspconfig", "telescope")
    assert loaded.succeeded == ("lspconfig", "telescope")
    assert engine.plugin("telescope").state is PluginState.CONFIG_LOADED
    assert host.state.servers == {"lua_ls": {"cmd": ["lua-language-server"]}}
    assert ("n", "<leader>ff") in host.state.keymaps
    assert host.executed_code == ["require('telescope').setup({})"]


def test_apply_reapplies_the_whole_session() -> None:
    host = RecordingHost()
    engine = make_engine(host)
    engine.set_option("number", True)
    engine.register_plugin("p", "https://example.com/p.git")
    with engine.config("p"):
        engine.add_keymap("n", "x", "y")

    report = engine.apply()

    assert [op.identity for op in report.applied] == ["option:number", "keymap:n:x"]
    assert host.state.keymaps[("n", "x")] == ("y", {})


def test_apply_propagates_keymap_conflicts() -> None:
    engine = make_engine()
    for name in ("a", "b"):
        engine.register_plugin(name, f"https://example.com/{name}.git")
        with engine.config(name):
            engine.add_keymap("n", "x", name)

    with pytest.raises(KeymapConflictError):
        engine.apply()


def test_builder_errors_surface_from_facade() -> None:
    engine = make_engine()

    with pytest.raises(NoOpenScopeError):
        engine.add_server("pyright")


def test_bus_receives_apply_reports() -> None:
    engine = make_engine()
    labels: List[str] = []
    engine.bus.subscribe("apply.report", lambda payload: labels.append(payload["label"]))

    engine.set_option("number", True)
    engine.exec_command("redraw")

    assert labels == ["set_option", "exec_command"]
