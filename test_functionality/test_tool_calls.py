"""
Tool-call extraction from raw model output.
"""

from spot.agent.tool_calls import parse_tool_calls

KNOWN = {"read_file", "write_file", "edit_file", "bash", "ls", "glob", "grep", "todo"}


def is_known(name: str) -> bool:
    return name in KNOWN


def test_call_embedded_in_prose():
    text = (
        "Sure, let me look at that file first.\n"
        '{"name": "read_file", "arguments": {"path": "src/app.py"}}\n'
        "I'll report back once I've read it."
    )
    calls = parse_tool_calls(text, is_known)
    assert len(calls) == 1
    assert calls[0].name == "read_file"
    assert calls[0].arguments == {"path": "src/app.py"}


def test_two_calls_keep_textual_order():
    text = (
        '{"name": "write_file", "arguments": {"path": "a.txt", "content": "hi"}} then '
        '{"name": "read_file", "arguments": {"path": "a.txt"}}'
    )
    calls = parse_tool_calls(text, is_known)
    assert [c.name for c in calls] == ["write_file", "read_file"]


def test_malformed_call_does_not_hide_the_next_one():
    text = (
        '{"name": "bash", "arguments": {"command": "ls" oops}}\n'
        '{"name": "read_file", "arguments": {"path": "README.md"}}'
    )
    calls = parse_tool_calls(text, is_known)
    assert len(calls) == 1
    assert calls[0].name == "read_file"


def test_unregistered_name_is_dropped():
    text = (
        '{"name": "launch_rockets", "arguments": {"count": 3}}\n'
        '{"name": "ls", "arguments": {"path": "."}}'
    )
    calls = parse_tool_calls(text, is_known)
    assert [c.name for c in calls] == ["ls"]


def test_plain_answer_has_no_calls():
    assert parse_tool_calls("The answer is 42. No tools needed.", is_known) == []


def test_nested_arguments_and_braces_in_strings():
    text = (
        '{"name": "write_file", "arguments": {"path": "x.json", '
        '"content": "{\\"a\\": {\\"b\\": 1}}"}}'
    )
    calls = parse_tool_calls(text, is_known)
    assert len(calls) == 1
    assert calls[0].arguments["content"] == '{"a": {"b": 1}}'


def test_raw_newlines_inside_strings_are_accepted():
    text = '{"name": "write_file", "arguments": {"path": "a.py", "content": "x = 1\ny = 2"}}'
    calls = parse_tool_calls(text, is_known)
    assert calls[0].arguments["content"] == "x = 1\ny = 2"


def test_windows_path_backslashes_are_repaired():
    text = r'{"name": "read_file", "arguments": {"path": "C:\Users\Spot\project\main.py"}}'
    calls = parse_tool_calls(text, is_known)
    assert len(calls) == 1
    assert calls[0].arguments["path"] == r"C:\Users\Spot\project\main.py"


def test_function_call_fallback():
    text = 'Running it now: bash({"command": "pytest -q"})'
    calls = parse_tool_calls(text, is_known)
    assert len(calls) == 1
    assert calls[0].name == "bash"
    assert calls[0].arguments == {"command": "pytest -q"}


def test_fallback_ignored_when_primary_matches():
    text = (
        'bash({"command": "echo no"})\n'
        '{"name": "ls", "arguments": {}}'
    )
    calls = parse_tool_calls(text, is_known)
    assert [c.name for c in calls] == ["ls"]


def test_fallback_multiple_calls_in_order():
    text = 'ls({"path": "src"}) and then grep({"pattern": "TODO"})'
    calls = parse_tool_calls(text, is_known)
    assert [(c.name, c.arguments) for c in calls] == [
        ("ls", {"path": "src"}),
        ("grep", {"pattern": "TODO"}),
    ]


def test_todo_scenario_payload():
    text = '{"name": "todo", "arguments": {"action": "add", "content": "fix bug"}}'
    calls = parse_tool_calls(text, is_known)
    assert calls[0].name == "todo"
    assert calls[0].arguments == {"action": "add", "content": "fix bug"}
