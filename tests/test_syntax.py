# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_harness

import pytest

from coreason_harness.utils.syntax import is_bracket_language, validate_syntax


def test_balanced_function_is_valid() -> None:
    code = 'export function hello(name) {\n  return `Hello, ${name}!`;\n}\n'
    assert validate_syntax(code, "javascript") is True


def test_unbalanced_braces_are_invalid() -> None:
    assert validate_syntax("function f() { return 1;", "javascript") is False


def test_misordered_nesting_is_invalid() -> None:
    # Counts match but the nesting does not.
    assert validate_syntax("f([)]", "typescript") is False


def test_stray_closer_is_invalid() -> None:
    assert validate_syntax("}{", "javascript") is False


@pytest.mark.parametrize("code", ["", "   ", "\n\t\n"])
def test_empty_content_is_invalid(code: str) -> None:
    assert validate_syntax(code, "javascript") is False
    assert validate_syntax(code, "python") is False


def test_brackets_inside_strings_and_comments_are_ignored() -> None:
    code = (
        "// closing } in a comment\n"
        "/* and ( in a block comment */\n"
        "const s = \"{ not a brace\";\n"
        "const t = 'also ) ignored';\n"
        "function ok() { return s + t; }\n"
    )
    assert validate_syntax(code, "javascript") is True


def test_escaped_quotes_do_not_end_strings() -> None:
    code = 'const s = "say \\"}\\" loudly"; function f() { return s; }'
    assert validate_syntax(code, "javascript") is True


def test_non_bracket_language_is_accepted() -> None:
    # Python is indentation-delimited; the guard does not judge it.
    assert validate_syntax("def f(:\n    return (", "python") is True


def test_language_matching_is_case_insensitive() -> None:
    assert is_bracket_language("TypeScript")
    assert validate_syntax("{", "JavaScript") is False


def test_rust_lifetimes_are_not_strings() -> None:
    code = "fn first<'a>(x: &'a str) -> &str {\n    x\n}\n"
    assert validate_syntax(code, "rust") is True


def test_rust_char_literals_hide_brackets() -> None:
    code = (
        "fn closers<'a>(s: &'a str) -> usize {\n"
        "    let brace = '}';\n"
        "    let quote = '\\'';\n"
        "    let tab = '\\u{9}';\n"
        "    'outer: loop { break 'outer; }\n"
        "    s.matches(brace).count()\n"
        "}\n"
    )
    assert validate_syntax(code, "rust") is True


def test_rust_unbalanced_with_lifetime_is_invalid() -> None:
    assert validate_syntax("fn f<'a>(x: &'a str) {\n    x\n", "rust") is False
