import json

import pytest
import yaml

from easel.easel_lexer import scan
from easel.easel_parser import parse
from easel.easel_serialize import (
    deserialize, detect_format, dump_debug_artifacts, serialize, to_builtin,
)


def test_token_to_builtin():
    tok = scan("let").tokens[0]
    assert to_builtin(tok) == {
        "type": "Token", "kind": "let", "lexeme": "let", "literal": None, "line": 1, "col": 1,
    }


def test_ast_to_builtin_keeps_positions_and_lists():
    stmts = parse(scan("f(1)").tokens).statements
    (stmt,) = to_builtin(stmts)
    assert stmt["type"] == "ExpressionStmt"
    call = stmt["expression"]
    assert call["type"] == "Call"
    assert call["callee"] == {"type": "Variable", "name": "f", "line": 1, "col": 1}
    assert call["arguments"] == [{"type": "Literal", "value": 1.0, "line": 1, "col": 3}]


def test_json_output_is_loadable():
    tokens = scan('print("hi")').tokens
    text = serialize(tokens, fmt="json")
    loaded = json.loads(text)
    assert [t["kind"] for t in loaded] == ["identifier", "(", "string", ")", "eof"]
    assert deserialize(text, fmt="json") == loaded


def test_yaml_output_is_loadable():
    stmts = parse(scan("let x = 2").tokens).statements
    text = serialize(stmts, fmt="yaml")
    loaded = yaml.safe_load(text)
    assert loaded[0]["type"] == "LetStmt"
    assert loaded[0]["initializer"]["value"] == 2.0
    # Field order follows the dataclass, not alphabetical order.
    assert text.lstrip("- ").startswith("type: LetStmt")


def test_unsupported_format():
    with pytest.raises(ValueError):
        serialize([], fmt="toml")


@pytest.mark.parametrize("path,expected", [
    ("ast.json", "json"),
    ("tokens.YAML", "yaml"),
    ("x.yml", "yaml"),
    ("script.easel", None),
])
def test_detect_format(path, expected):
    assert detect_format(path) == expected


def test_dump_debug_artifacts(tmp_path):
    scanned = scan("let x = 1")
    parsed = parse(scanned.tokens)
    written = dump_debug_artifacts(scanned.tokens, parsed.statements, fmt="yaml", directory=tmp_path)
    assert [p.name for p in written] == ["tokens.yaml", "ast.yaml"]
    assert yaml.safe_load((tmp_path / "ast.yaml").read_text())[0]["name"] == "x"
