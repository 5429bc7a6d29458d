from types import SimpleNamespace

import pytest

from srtlive.conf import (
    CONF_OUT_RANGE,
    CONF_WRONG_TYPE,
    ConfBlock,
    ConfCommand,
    ConfError,
    ConfRegistry,
    find_command,
    load_conf,
    parse_argv,
    parse_conf_lines,
    split_conf_string,
)

SRT_COMMANDS = [
    ConfCommand("worker_threads", "int", "count of worker thread", 1, 100),
    ConfCommand("log_file", "string", "save log file name", 1, 1023),
    ConfCommand("log_level", "string", "log level", 1, 1023),
]
SERVER_COMMANDS = [
    ConfCommand("listen", "int", "listen port", 1, 65535),
    ConfCommand("latency", "double", "latency", 0, 10000),
    ConfCommand("enabled", "bool", "switch"),
]
APP_COMMANDS = [
    ConfCommand("app_player", "string", "live", 1, 1023),
]

OPT_COMMANDS = [
    ConfCommand("c", "string", "conf file name", 1, 1023, attr="conf_file_name"),
    ConfCommand("s", "string", "cmd: reload", 1, 1023, attr="c_cmd"),
    ConfCommand("l", "string", "log level", 1, 1023, attr="log_level"),
]


@pytest.fixture
def registry():
    reg = ConfRegistry()
    reg.register("srt", ConfBlock, SRT_COMMANDS)
    reg.register("server", ConfBlock, SERVER_COMMANDS)
    reg.register("app", ConfBlock, APP_COMMANDS)
    return reg


SAMPLE = """\
# sample configuration
srt {
\tworker_threads  2;
\tlog_file logs/error.log ;   # trailing comment
\tserver {
\t\tlisten 8080;
\t\tlatency 20.5;
\t\tenabled true;
\t\tapp {
\t\t\tapp_player live;
\t\t}
\t}
\tserver {
\t\tlisten 9090;
\t}
}
"""


def test_parse_nested_structure(registry):
    blocks = parse_conf_lines(SAMPLE.splitlines(), registry)
    assert [b.name for b in blocks] == ["srt"]
    srt = blocks[0]
    assert srt.worker_threads == 2
    assert srt.log_file == "logs/error.log"
    assert [c.name for c in srt.children] == ["server", "server"]
    first, second = srt.children
    assert first.listen == 8080
    assert first.latency == 20.5
    assert first.enabled is True
    assert first.children[0].app_player == "live"
    assert second.listen == 9090


def test_unset_settings_take_defaults(registry):
    blocks = parse_conf_lines(SAMPLE.splitlines(), registry)
    second = blocks[0].children[1]
    assert second.latency == 0.0
    assert second.enabled is False
    assert blocks[0].log_level == ""


def test_unknown_setting_name(registry):
    with pytest.raises(ConfError, match="wrong name"):
        parse_conf_lines(["srt {", "nosuch 1;", "}"], registry)


def test_unknown_block_name(registry):
    with pytest.raises(ConfError, match="not found"):
        parse_conf_lines(["bogus {", "}"], registry)


def test_out_of_range_value(registry):
    with pytest.raises(ConfError, match=CONF_OUT_RANGE):
        parse_conf_lines(["srt {", "worker_threads 1000;", "}"], registry)


def test_bool_wrong_type(registry):
    with pytest.raises(ConfError, match=CONF_WRONG_TYPE):
        parse_conf_lines(["srt {", "server {", "enabled yes;", "}", "}"], registry)


def test_missing_space_separator(registry):
    with pytest.raises(ConfError, match="no space separator"):
        parse_conf_lines(["srt {", "worker_threads;", "}"], registry)


def test_unclosed_block(registry):
    with pytest.raises(ConfError, match="count of"):
        parse_conf_lines(["srt {", "worker_threads 1;"], registry)


def test_extra_closing_brace(registry):
    with pytest.raises(ConfError):
        parse_conf_lines(["srt {", "}", "}"], registry)


def test_setting_outside_block(registry):
    with pytest.raises(ConfError, match="not found block"):
        parse_conf_lines(["worker_threads 1;"], registry)


def test_invalid_end_flag(registry):
    with pytest.raises(ConfError, match="invalid end flag"):
        parse_conf_lines(["srt {", "worker_threads 1", "}"], registry)


def test_empty_config_is_error(registry):
    with pytest.raises(ConfError):
        parse_conf_lines(["# only comment", "   "], registry)


def test_load_conf_from_file(tmp_path, registry):
    path = tmp_path / "sls.conf"
    path.write_text(SAMPLE)
    blocks = load_conf(path, registry)
    assert blocks[0].children[0].listen == 8080


def test_load_conf_missing_file(tmp_path, registry):
    with pytest.raises(ConfError, match="open conf file"):
        load_conf(tmp_path / "absent.conf", registry)


def test_registry_create_unknown(registry):
    with pytest.raises(ConfError):
        registry.create("unknown")


def test_registry_create_sets_name_and_defaults(registry):
    block = registry.create("server")
    assert block.name == "server"
    assert block.listen == 0
    assert block.children == []


def test_find_command():
    assert find_command("listen", SERVER_COMMANDS) is SERVER_COMMANDS[0]
    assert find_command("missing", SERVER_COMMANDS) is None


def test_command_int_uses_leading_digits():
    target = SimpleNamespace()
    SERVER_COMMANDS[0].apply("12abc", target)
    assert target.listen == 12


def test_command_string_length_range():
    target = SimpleNamespace()
    with pytest.raises(ConfError, match=CONF_OUT_RANGE):
        APP_COMMANDS[0].apply("", target)
    assert not hasattr(target, "app_player")


def test_command_double_range():
    target = SimpleNamespace()
    with pytest.raises(ConfError, match=CONF_OUT_RANGE):
        SERVER_COMMANDS[1].apply("-1", target)


def test_command_unknown_kind():
    with pytest.raises(ValueError):
        ConfCommand("x", "list")


def test_split_conf_string():
    assert split_conf_string("a b  c", " ") == ["a", "b", "c"]
    assert split_conf_string("h1:80,h2:90", ",") == ["h1:80", "h2:90"]
    assert split_conf_string("a;b,c", ";,") == ["a", "b", "c"]
    assert split_conf_string("", " ") == []


def _opts():
    return SimpleNamespace(conf_file_name="", c_cmd="", log_level="")


def test_parse_argv_sets_options():
    opts = parse_argv(["-c", "'my.conf'", "-l", '"debug"'], OPT_COMMANDS, _opts())
    assert opts.conf_file_name == "my.conf"
    assert opts.log_level == "debug"
    assert opts.c_cmd == ""


def test_parse_argv_empty_keeps_target():
    opts = parse_argv([], OPT_COMMANDS, _opts())
    assert opts.conf_file_name == ""


def test_parse_argv_help(capsys):
    with pytest.raises(ConfError):
        parse_argv(["-h"], OPT_COMMANDS, _opts())
    out = capsys.readouterr().out
    assert "-c, conf file name" in out


def test_parse_argv_single_wrong_argument():
    with pytest.raises(ConfError, match="wrong parameter"):
        parse_argv(["-c"], OPT_COMMANDS, _opts())


def test_parse_argv_unknown_option():
    with pytest.raises(ConfError, match="wrong parameter"):
        parse_argv(["-z", "1"], OPT_COMMANDS, _opts())


def test_parse_argv_requires_dash():
    with pytest.raises(ConfError, match="first character"):
        parse_argv(["c", "x.conf"], OPT_COMMANDS, _opts())


def test_parse_argv_missing_value():
    with pytest.raises(ConfError, match="no value"):
        parse_argv(["-c", "x.conf", "-l"], OPT_COMMANDS, _opts())


def test_parse_argv_empty_argument():
    with pytest.raises(ConfError):
        parse_argv(["", "x"], OPT_COMMANDS, _opts())