from pathlib import Path
from typing import List

from rns_engine import AbiSurface, Engine, EngineSettings, ErrorKind, default_surface
from rns_engine.abi import SUCCESS
from rns_engine.errors import SourceFetchError
from rns_engine.host import RecordingHost
from rns_engine.lifecycle.manager import LifecycleReport
from rns_engine.plugins import Plugin, PluginState


class FlakyFetcher:
    def __init__(self, failing: set[str]) -> None:
        self.failing = failing

    def install(self, plugin: Plugin) -> str:
        if plugin.name in self.failing:
            raise SourceFetchError(plugin.name, "offline")
        return f"/data/{plugin.name}"

    def update(self, plugin: Plugin) -> None:
        return None


def make_surface(
    host: RecordingHost | None = None, failing: set[str] | None = None
) -> AbiSurface:
    settings = EngineSettings(data_dir=Path("/tmp/rns-engine"), refresh_runtime=False)
    engine = Engine(
        host or RecordingHost(), settings=settings, fetcher=FlakyFetcher(failing or set())
    )
    return AbiSurface(engine)


def test_success_returns_zero() -> None:
    surface = make_surface()

    assert surface.register_plugin("telescope", "https://example.com/t.git") == SUCCESS
    assert surface.plugin_config_begin("telescope") == SUCCESS
    assert surface.plugin_config_add_server("lua_ls") == SUCCESS
    assert surface.plugin_config_set_server_option("lua_ls", "cmd", "lls") == SUCCESS
    assert surface.plugin_config_end() == SUCCESS


def test_errors_map_to_kind_ordinals() -> None:
    surface = make_surface()
    surface.register_plugin("telescope", "https://example.com/t.git")

    assert surface.register_plugin("telescope", "other") == ErrorKind.DUPLICATE_NAME
    assert surface.plugin_config_begin("ghost") == ErrorKind.UNKNOWN_PLUGIN
    assert surface.plugin_config_end() == ErrorKind.NO_OPEN_SCOPE
    assert surface.plugin_config_add_server("lua_ls") == ErrorKind.NO_OPEN_SCOPE
    surface.plugin_config_begin("telescope")
    assert surface.plugin_config_begin("telescope") == ErrorKind.SCOPE_ALREADY_OPEN
    assert (
        surface.plugin_config_set_server_option("nope", "cmd", "x")
        == ErrorKind.UNKNOWN_SERVER
    )
    assert surface.last_error is not None


def test_invalid_arguments_are_reported() -> None:
    surface = make_surface()

    assert surface.setup_lsp("lua_ls", "[1, 2]") == ErrorKind.INVALID_ARGUMENT
    assert surface.setup_lsp("lua_ls", "{not json") == ErrorKind.INVALID_ARGUMENT
    assert surface.nvim_create_user_command("lower", "echo") == ErrorKind.INVALID_ARGUMENT


def test_primitives_forward_parsed_arguments() -> None:
    host = RecordingHost()
    surface = make_surface(host)

    assert surface.nvim_set_option_bool("number", 1) == SUCCESS
    assert surface.nvim_set_option_int("tabstop", 4) == SUCCESS
    assert surface.nvim_set_option_string("mouse", "a") == SUCCESS
    assert surface.nvim_set_global("mapleader", " ") == SUCCESS
    assert surface.nvim_create_keymap("n", "<leader>w", ":w<CR>", "noremap,silent") == SUCCESS
    assert surface.nvim_buf_set_keymap(1, "n", "q", ":q<CR>", "") == SUCCESS
    assert surface.nvim_create_augroup_lua("Fmt", 1) == SUCCESS
    assert surface.nvim_create_autocmd_lua("BufWritePre", "*", "Fmt", "Fmt") == SUCCESS
    assert surface.autocmd("BufEnter", "*", "echo") == SUCCESS
    assert surface.setup_lsp("pyright", '{"single_file_support": true}') == SUCCESS

    state = host.state
    assert state.options == {"number": True, "tabstop": 4, "mouse": "a"}
    assert state.keymaps[("n", "<leader>w")] == (":w<CR>", {"noremap": True, "silent": True})
    assert state.buffer_keymaps[(1, "n", "q")] == (":q<CR>", {})
    assert [r.command for r in state.augroups["Fmt"]] == ["Fmt"]
    assert [r.command for r in state.augroups["rns_engine"]] == ["echo"]
    assert state.autocmds == []
    assert state.servers == {"pyright": {"single_file_support": True}}


def test_host_rejection_returns_apply_failure_status() -> None:
    host = RecordingHost()
    host.reject("exec_code")
    surface = make_surface(host)

    assert surface.exec_lua("error()") == ErrorKind.PRIMITIVE_APPLY_FAILURE
    assert surface.last_report is not None
    assert not surface.last_report.ok


def test_add_keymap_wraps_command() -> None:
    surface = make_surface()
    surface.register_plugin("telescope", "https://example.com/t.git")
    surface.plugin_config_begin("telescope")

    assert surface.plugin_config_add_keymap("n", "<leader>ff", "", "Telescope find_files") == SUCCESS
    assert surface.plugin_config_set_mapping("telescope", "n", "<C-p>", "<cmd>Files<CR>") == SUCCESS
    surface.plugin_config_end()

    snapshot = surface.engine.registry.snapshot("telescope")
    assert snapshot is not None
    assert [(k.lhs, k.rhs, k.owner) for k in snapshot.keymaps] == [
        ("<leader>ff", "<cmd>Telescope find_files<CR>", "telescope"),
        ("<C-p>", "<cmd>Files<CR>", "telescope"),
    ]


def test_batch_calls_report_first_failure_kind() -> None:
    surface = make_surface(failing={"broken"})
    surface.register_plugin("ok", "https://example.com/ok.git")
    surface.register_plugin("broken", "https://example.com/broken.git")

    status = surface.install_plugins()

    assert status == ErrorKind.EXTERNAL_FETCH_FAILURE
    report = surface.last_report
    assert isinstance(report, LifecycleReport)
    assert report.succeeded == ("ok",)
    failure = report.failure_for("broken")
    assert failure is not None
    assert failure.reason == "offline"
    assert report.failure_for("ok") is None
    assert surface.engine.plugin("broken").state is PluginState.FAILED
    assert surface.load_plugin_configs() == SUCCESS
    assert surface.update_plugins() == SUCCESS


def test_keymap_conflict_status_from_load() -> None:
    surface = make_surface()
    for name in ("a", "b"):
        surface.register_plugin(name, f"https://example.com/{name}.git")
        surface.plugin_config_begin(name)
        surface.plugin_config_add_keymap("n", "x", "", name)
        surface.plugin_config_end()
    surface.install_plugins()

    assert surface.load_plugin_configs() == ErrorKind.KEYMAP_CONFLICT


def test_default_surface_uses_command_line_host() -> None:
    lines: List[str] = []

    def execute(line: str) -> int:
        lines.append(line)
        return 0

    surface = default_surface(
        execute, settings=EngineSettings(data_dir=Path("/tmp/rns-engine"))
    )

    assert surface.opt("clipboard", "unnamed", "unnamedplus") == SUCCESS
    assert surface.load_config("/tmp/init.lua") == SUCCESS
    assert surface.require_setup("lualine", "") == SUCCESS
    assert lines == [
        "set clipboard=unnamed,unnamedplus",
        "luafile /tmp/init.lua",
        "lua require('lualine').setup({})",
    ]


def test_flat_keymap_succeeds_despite_unrelated_plugin_conflict() -> None:
    host = RecordingHost()
    surface = make_surface(host)
    for name in ("a", "b"):
        surface.register_plugin(name, f"https://example.com/{name}.git")
        surface.plugin_config_begin(name)
        surface.plugin_config_add_keymap("n", "gd", "", name)
        surface.plugin_config_end()

    assert surface.nvim_create_keymap("n", "<leader>w", ":w<CR>") == SUCCESS
    assert host.state.keymaps[("n", "<leader>w")] == (":w<CR>", {})
    assert [spec.lhs for spec in surface.engine.declarations.keymaps] == ["<leader>w"]


def test_flat_keymap_bound_when_claiming_plugin_failed_to_install() -> None:
    host = RecordingHost()
    surface = make_surface(host, failing={"tele"})
    surface.register_plugin("tele", "https://example.com/tele.git")
    surface.plugin_config_begin("tele")
    surface.plugin_config_add_keymap("n", "<leader>f", "", "Telescope")
    surface.plugin_config_end()
    surface.install_plugins()

    assert surface.nvim_create_keymap("n", "<leader>f", ":Files<CR>") == SUCCESS
    assert surface.engine.plugin("tele").state is PluginState.FAILED
    assert host.state.keymaps[("n", "<leader>f")] == (":Files<CR>", {})


def test_recreating_clearing_augroup_resets_its_autocmds() -> None:
    host = RecordingHost()
    surface = make_surface(host)

    surface.nvim_create_augroup("Lint", 1)
    surface.nvim_create_autocmd("BufWritePost", "*", "first", "Lint")
    surface.nvim_create_augroup("Lint", 1)
    surface.nvim_create_autocmd("BufWritePost", "*", "second", "Lint")
    assert [r.command for r in host.state.augroups["Lint"]] == ["second"]

    surface.engine.apply()
    assert [r.command for r in host.state.augroups["Lint"]] == ["second"]


def test_failed_call_clears_previous_report() -> None:
    surface = make_surface()
    surface.register_plugin("ok", "https://example.com/ok.git")
    surface.install_plugins()
    assert surface.last_report is not None

    assert surface.plugin_config_end() == ErrorKind.NO_OPEN_SCOPE
    assert surface.last_report is None
    assert surface.last_error is not None
