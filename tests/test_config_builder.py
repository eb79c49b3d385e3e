import pytest

from rns_engine.config import ConfigBuilder
from rns_engine.errors import (
    ErrorKind,
    NoOpenScopeError,
    ScopeAlreadyOpenError,
    UnknownPluginError,
    UnknownServerError,
)
from rns_engine.plugins import PluginRegistry


def make_builder(*names: str) -> ConfigBuilder:
    registry = PluginRegistry()
    for name in names:
        registry.register(name, f"https://example.com/{name}.git")
    return ConfigBuilder(registry)


def test_begin_requires_registered_plugin() -> None:
    builder = make_builder()

    with pytest.raises(UnknownPluginError) as exc:
        builder.begin("ghost")

    assert exc.value.kind is ErrorKind.UNKNOWN_PLUGIN
    assert builder.depth == 0


def test_begin_rejects_second_scope_for_same_plugin() -> None:
    builder = make_builder("lspconfig", "telescope")
    builder.begin("lspconfig")
    builder.begin("telescope")

    with pytest.raises(ScopeAlreadyOpenError):
        builder.begin("lspconfig")

    assert builder.open_scopes == ("lspconfig", "telescope")


def test_declarations_outside_scope_fail() -> None:
    builder = make_builder("lspconfig")

    with pytest.raises(NoOpenScopeError):
        builder.add_server("pyright")
    with pytest.raises(NoOpenScopeError):
        builder.set_server_option("pyright", "cmd", "pyright-langserver")
    with pytest.raises(NoOpenScopeError):
        builder.add_keymap("n", "<leader>f", ":Files<CR>")
    with pytest.raises(NoOpenScopeError) as exc:
        builder.end()

    assert exc.value.operation == "end"


def test_add_server_is_idempotent_and_options_last_write_wins() -> None:
    builder = make_builder("lspconfig")
    builder.begin("lspconfig")

    first = builder.add_server("pyright")
    builder.set_server_option("pyright", "autostart", False)
    second = builder.add_server("pyright")
    builder.set_server_option("pyright", "autostart", True)
    snapshot = builder.end()

    assert second["autostart"] is True
    assert first["autostart"] is True
    assert snapshot.server_names == ("pyright",)
    assert snapshot.server("pyright").options == {"autostart": True}


def test_set_server_option_requires_added_server() -> None:
    builder = make_builder("lspconfig")
    builder.begin("lspconfig")

    with pytest.raises(UnknownServerError) as exc:
        builder.set_server_option("rust_analyzer", "cargo", "all")

    assert exc.value.server == "rust_analyzer"
    assert exc.value.plugin == "lspconfig"


def test_nested_scopes_close_lifo_into_separate_snapshots() -> None:
    builder = make_builder("outer", "inner")
    builder.begin("outer")
    builder.add_server("lua_ls")
    builder.begin("inner")
    builder.add_keymap("n", "K", "<cmd>Hover<CR>")

    inner = builder.end()
    builder.add_keymap("n", "gd", "<cmd>Definition<CR>")
    outer = builder.end()

    assert inner.plugin == "inner"
    assert [k.lhs for k in inner.keymaps] == ["K"]
    assert inner.servers == ()
    assert outer.plugin == "outer"
    assert [k.lhs for k in outer.keymaps] == ["gd"]
    assert outer.server_names == ("lua_ls",)
    assert inner.revision < outer.revision


def test_snapshot_invisible_until_end() -> None:
    registry = PluginRegistry()
    registry.register("telescope", "https://example.com/telescope.git")
    builder = ConfigBuilder(registry)

    builder.begin("telescope")
    builder.add_keymap("n", "<leader>ff", "<cmd>Telescope find_files<CR>")

    assert registry.snapshot("telescope") is None
    snapshot = builder.end()
    assert registry.snapshot("telescope") is snapshot


def test_reopening_scope_supersedes_previous_snapshot() -> None:
    registry = PluginRegistry()
    registry.register("telescope", "https://example.com/telescope.git")
    builder = ConfigBuilder(registry)

    with builder.scope("telescope"):
        builder.add_keymap("n", "<leader>ff", "a")
    first = registry.snapshot("telescope")
    with builder.scope("telescope"):
        builder.add_keymap("n", "<leader>fg", "b")
    second = registry.snapshot("telescope")

    assert first is not None and second is not None
    assert second.revision > first.revision
    assert [k.lhs for k in second.keymaps] == ["<leader>fg"]
    assert [k.lhs for k in first.keymaps] == ["<leader>ff"]


def test_scope_discards_frame_when_body_raises() -> None:
    registry = PluginRegistry()
    registry.register("telescope", "https://example.com/telescope.git")
    builder = ConfigBuilder(registry)

    with pytest.raises(RuntimeError):
        with builder.scope("telescope"):
            builder.add_keymap("n", "x", "y")
            raise RuntimeError("declaration failed")

    assert builder.depth == 0
    assert registry.snapshot("telescope") is None


def test_keymap_owner_defaults_to_scope_plugin() -> None:
    builder = make_builder("telescope", "fzf")
    builder.begin("telescope")

    own = builder.add_keymap("n", "<leader>ff", "a", opts={"silent": True})
    other = builder.add_mapping("fzf", "n", "<leader>fz", "b")
    snapshot = builder.end()

    assert own.owner == "telescope"
    assert own.opts == {"silent": True}
    assert other.owner == "fzf"
    assert snapshot.keymaps == (own, other)


def test_keymap_for_unregistered_plugin_fails() -> None:
    builder = make_builder("telescope")
    builder.begin("telescope")

    with pytest.raises(UnknownPluginError):
        builder.add_mapping("ghost", "n", "x", "y")


def test_duplicate_keymaps_are_kept_for_the_resolver() -> None:
    builder = make_builder("telescope")
    builder.begin("telescope")
    builder.add_keymap("n", "x", "first")
    builder.add_keymap("n", "x", "second")

    snapshot = builder.end()

    assert [k.rhs for k in snapshot.keymaps] == ["first", "second"]


def test_clearing_augroup_discards_earlier_autocmds_in_scope() -> None:
    builder = make_builder("format")
    builder.begin("format")
    builder.add_augroup("Format")
    builder.add_autocmd("BufWritePre", "*.py", "Black", group="Format")
    builder.add_augroup("Format", clear=True)
    builder.add_autocmd("BufWritePre", "*.lua", "Stylua", group="Format")
    builder.add_autocmd("BufEnter", "*", "echo", group=None)

    snapshot = builder.end()

    assert [cmd.command for cmd in snapshot.autocmds] == ["Stylua", "echo"]
    assert all(cmd.source == "format" for cmd in snapshot.autocmds)
    assert [(entry.name, entry.clear) for entry in snapshot.augroups] == [
        ("Format", True),
        ("Format", True),
        ("rns_engine_format", True),
    ]
    assert snapshot.autocmds[-1].group == "rns_engine_format"


def test_user_commands_replace_by_name() -> None:
    builder = make_builder("telescope")
    builder.begin("telescope")
    builder.add_user_command("Find", "Telescope find_files")
    builder.add_user_command("Find", "Telescope git_files", opts={"nargs": 0})

    snapshot = builder.end()

    assert len(snapshot.user_commands) == 1
    assert snapshot.user_commands[0].command == "Telescope git_files"


def test_user_command_name_must_be_capitalized() -> None:
    builder = make_builder("telescope")
    builder.begin("telescope")

    with pytest.raises(ValueError):
        builder.add_user_command("find", "Telescope")


def test_configure_commits_new_snapshot_keeping_declarations() -> None:
    registry = PluginRegistry()
    registry.register("telescope", "https://example.com/telescope.git")
    builder = ConfigBuilder(registry)
    with builder.scope("telescope"):
        builder.add_keymap("n", "<leader>ff", "a")
    before = registry.snapshot("telescope")

    after = builder.configure("telescope", "require('telescope').setup({})")

    assert before is not None and after is not None
    assert after.revision > before.revision
    assert after.keymaps == before.keymaps
    assert after.raw_config == "require('telescope').setup({})"
    assert before.raw_config is None


def test_configure_inside_open_scope_is_staged() -> None:
    registry = PluginRegistry()
    registry.register("telescope", "https://example.com/telescope.git")
    builder = ConfigBuilder(registry)
    builder.begin("telescope")

    assert builder.configure("telescope", "vim.g.x = 1") is None
    assert registry.snapshot("telescope") is None
    assert builder.end().raw_config == "vim.g.x = 1"


def test_configure_unknown_plugin() -> None:
    builder = make_builder()

    with pytest.raises(UnknownPluginError):
        builder.configure("ghost", "print(1)")


def test_set_raw_config_targets_top_frame() -> None:
    builder = make_builder("lualine")

    with pytest.raises(NoOpenScopeError):
        builder.set_raw_config("print(1)")

    builder.begin("lualine")
    builder.set_raw_config("require('lualine').setup({})")

    assert builder.end().raw_config == "require('lualine').setup({})"


def test_ungrouped_autocmds_share_one_plugin_group() -> None:
    builder = make_builder("gitsigns")
    builder.begin("gitsigns")
    builder.add_autocmd("BufEnter", "*", "Gitsigns refresh")
    builder.add_autocmd("BufWritePost", "*", "Gitsigns refresh")

    snapshot = builder.end()

    assert [entry.name for entry in snapshot.augroups] == ["rns_engine_gitsigns"]
    assert {cmd.group for cmd in snapshot.autocmds} == {"rns_engine_gitsigns"}
