"""Data-driven test runner for miniPL.

Test cases live in <phase>/*.tests files. Format:

    === test name
    source code here
    ---
    expected
    ---

For lexer, parser and checker files the expected section is `ok`,
`error: <message fragment>`, or dotpath assertions (`stmts.0.init.op = +`)
against the phase's serialized output.

App files run the program. Leading `stdin: ` lines in the input section are
fed to `read`; the expected section lists the printed lines, optionally
ending with `fault: <Kind>` (runtime fault) or `error: <Kind>` (rejected
before execution).
"""

import signal
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from minipl import MiniPLError, parse, run
from minipl.ast import to_dict
from minipl.check import analyze
from minipl.tokens import tokenize

PHASE_TIMEOUT = 5
TESTS_DIR = Path(__file__).parent

TESTS = {
    "minipl_lex": "lexer",
    "minipl_parse": "parser",
    "minipl_check": "checker",
    "minipl_app": "apps",
}


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------


def _timeout_handler(signum, frame):
    raise TimeoutError("phase timed out")


signal.signal(signal.SIGALRM, _timeout_handler)


# ---------------------------------------------------------------------------
# Test file parsing
# ---------------------------------------------------------------------------


def parse_test_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse a .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def discover_cases(test_dir: Path) -> list[tuple[str, str, str]]:
    """Glob *.tests in test_dir, return (test_id, input, expected) tuples."""
    results = []
    for test_file in sorted(test_dir.glob("*.tests")):
        for name, input_code, expected in parse_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", input_code, expected))
    return results


def split_stdin(test_input: str) -> tuple[str, str]:
    """Strip leading `stdin: ` lines. Returns (source, stdin)."""
    lines = test_input.split("\n")
    stdin_lines: list[str] = []
    while lines and lines[0].startswith("stdin: "):
        stdin_lines.append(lines.pop(0)[7:])
    stdin = "".join(line + "\n" for line in stdin_lines)
    return "\n".join(lines), stdin


# ---------------------------------------------------------------------------
# Phase result + assertion checker
# ---------------------------------------------------------------------------


@dataclass
class PhaseResult:
    errors: list[str] = field(default_factory=list)
    data: dict | None = None


def resolve_dotpath(obj: object, path: str) -> object:
    """Resolve a dot-separated path against a nested dict/list structure."""
    current = obj
    for part in path.split("."):
        if part == "length":
            return len(current)
        if isinstance(current, list):
            current = current[int(part)]
        elif isinstance(current, dict):
            current = current[part]
        else:
            raise KeyError(
                f"cannot traverse {type(current).__name__} with key {part!r}"
            )
    return current


def to_comparable(value: object) -> str:
    """Convert a value to its string form for comparison."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value
    return str(value)


def check_expected(expected: str, result: PhaseResult, phase: str) -> None:
    if expected == "ok":
        if result.errors:
            pytest.fail(f"Expected ok, got error: {result.errors[0]}")
        return
    if expected.startswith("error:"):
        expected_msg = expected[6:].strip()
        if not result.errors:
            pytest.fail(f"Expected error containing '{expected_msg}', got ok")
        found = any(expected_msg.lower() in e.lower() for e in result.errors)
        if not found:
            pytest.fail(
                f"Expected error containing '{expected_msg}', got: {result.errors}"
            )
        return
    # Dotpath assertions
    if result.errors:
        pytest.fail(f"{phase} failed: {result.errors[0]}")
    assert result.data is not None, f"No data returned from {phase}"
    for line in expected.split("\n"):
        line = line.strip()
        if not line:
            continue
        if " = " not in line:
            pytest.fail(f"Bad assertion (no ' = '): {line}")
        path, expected_val = line.split(" = ", 1)
        path = path.strip()
        expected_val = expected_val.strip()
        try:
            actual = resolve_dotpath(result.data, path)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            pytest.fail(f"Path '{path}' not found in result: {e}")
        actual_str = to_comparable(actual)
        if actual_str != expected_val:
            pytest.fail(
                f"Assertion failed: {path}\n"
                f"  expected: {expected_val!r}\n"
                f"  actual:   {actual_str!r}"
            )


def _error_text(e: MiniPLError) -> str:
    return e.kind + ": " + str(e)


# ---------------------------------------------------------------------------
# Phase runners
# ---------------------------------------------------------------------------


def run_minipl_lex(source: str) -> PhaseResult:
    try:
        signal.alarm(PHASE_TIMEOUT)
        tokens = tokenize(source)
        return PhaseResult(
            data={
                "tokens": [
                    {
                        "type": t.type,
                        "lexeme": t.lexeme,
                        "value": t.value,
                        "line": t.line,
                        "col": t.col,
                    }
                    for t in tokens
                ]
            }
        )
    except MiniPLError as e:
        return PhaseResult(errors=[_error_text(e)])
    finally:
        signal.alarm(0)


def run_minipl_parse(source: str) -> PhaseResult:
    try:
        signal.alarm(PHASE_TIMEOUT)
        data = to_dict(parse(source))
        assert isinstance(data, dict)
        return PhaseResult(data=data)
    except MiniPLError as e:
        return PhaseResult(errors=[_error_text(e)])
    finally:
        signal.alarm(0)


def run_minipl_check(source: str) -> PhaseResult:
    try:
        signal.alarm(PHASE_TIMEOUT)
        annotated = analyze(parse(source))
        return PhaseResult(data={"types": len(annotated.types)})
    except MiniPLError as e:
        return PhaseResult(errors=[_error_text(e)])
    finally:
        signal.alarm(0)


RUNNERS = {
    "minipl_lex": run_minipl_lex,
    "minipl_parse": run_minipl_parse,
    "minipl_check": run_minipl_check,
}


# ---------------------------------------------------------------------------
# Parametrization
# ---------------------------------------------------------------------------


def pytest_generate_tests(metafunc):
    for name, subdir in TESTS.items():
        test_dir = TESTS_DIR / subdir
        fixture = f"{name}_input"
        if fixture in metafunc.fixturenames:
            cases = discover_cases(test_dir)
            params = [pytest.param(inp, exp, id=tid) for tid, inp, exp in cases]
            metafunc.parametrize(f"{fixture},{name}_expected", params)


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------


def test_minipl_lex(minipl_lex_input, minipl_lex_expected):
    check_expected(
        minipl_lex_expected, RUNNERS["minipl_lex"](minipl_lex_input), "minipl_lex"
    )


def test_minipl_parse(minipl_parse_input, minipl_parse_expected):
    check_expected(
        minipl_parse_expected,
        RUNNERS["minipl_parse"](minipl_parse_input),
        "minipl_parse",
    )


def test_minipl_check(minipl_check_input, minipl_check_expected):
    check_expected(
        minipl_check_expected,
        RUNNERS["minipl_check"](minipl_check_input),
        "minipl_check",
    )


def test_minipl_app(minipl_app_input, minipl_app_expected):
    """Run a program in-process and compare printed lines and outcome."""
    source, stdin = split_stdin(minipl_app_input)
    expected_lines = minipl_app_expected.split("\n") if minipl_app_expected else []
    want_error = ""
    want_fault = ""
    if expected_lines and expected_lines[-1].startswith("error: "):
        want_error = expected_lines.pop()[7:].strip()
    elif expected_lines and expected_lines[-1].startswith("fault: "):
        want_fault = expected_lines.pop()[7:].strip()

    signal.alarm(PHASE_TIMEOUT)
    try:
        result = run(source, stdin=stdin)
    except MiniPLError as e:
        if want_error == "":
            pytest.fail(f"Unexpected {_error_text(e)}")
        assert e.kind == want_error, f"expected {want_error}, got {_error_text(e)}"
        return
    finally:
        signal.alarm(0)

    if want_error:
        pytest.fail(f"Expected {want_error}, program ran to exit {result.exit_code}")
    if want_fault:
        assert result.fault is not None, f"expected {want_fault}, program succeeded"
        assert result.fault.kind == want_fault, _error_text(result.fault)
        assert result.exit_code == 1
    else:
        assert result.fault is None, _error_text(result.fault)
        assert result.exit_code == 0
    actual_lines = result.stdout.split("\n")[:-1] if result.stdout else []
    assert actual_lines == expected_lines
