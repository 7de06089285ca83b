from __future__ import annotations

import os
import sys

import pytest
import yaml

import c_eval
from addflt import addflt
from c_eval import (
    BOUNDARY_SAMPLES,
    UnsupportedConstruct,
    collate_report,
    find_function,
    interpret_function,
    load_inputs,
    parse_c_file,
    parse_c_source,
    reset_report,
    run_cases,
)

FIXTURES = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'fixtures')
ADDFLT_C = os.path.join(FIXTURES, 'addflt.c')
ADDFLT_INPUTS = os.path.join(FIXTURES, 'addflt_inputs.yaml')


def _run(src: str, **args) -> int:
    func = find_function(parse_c_source(src), 'f')
    reset_report()
    return interpret_function(func, args)


@pytest.fixture(scope='module')
def addflt_ast():
    return parse_c_file(ADDFLT_C)


def test_fixture_matches_reference(addflt_ast):
    func = find_function(addflt_ast, 'addflt')
    pool = BOUNDARY_SAMPLES + [0x01000000, 0x20000000, 0x40000000, 0x90000000, 0xFF000000]
    rows = run_cases(func, {'a': pool, 'b': pool})
    assert len(rows) == len(pool) ** 2
    for args, result in rows:
        assert result == addflt(args['a'], args['b'])


def test_fixture_shift_hazard_reported(addflt_ast):
    func = find_function(addflt_ast, 'addflt')
    run_cases(func, {'a': [0x00000000], 'b': [0x80000000]})
    report = collate_report()
    assert (9, 'shift', True) in report
    assert (5, 'shift', False) in report
    assert (7, 'overflow', False) in report


def test_fixture_in_range_delta_is_clean(addflt_ast):
    func = find_function(addflt_ast, 'addflt')
    run_cases(func, {'a': [0x81000001], 'b': [0x80000000]})
    assert all(not hit for _, _, hit in collate_report())


def test_fixture_entry_point(addflt_ast):
    assert interpret_function(find_function(addflt_ast, 'main'), {}) == 0


def test_missing_function(addflt_ast):
    assert find_function(addflt_ast, 'nope') is None


def test_signed_overflow_wraps_and_is_reported():
    assert _run('int f(int x) { return x + 1; }', x=0x7FFFFFFF) == -(1 << 31)
    assert collate_report() == [(1, 'overflow', True)]


def test_division_truncates_and_guards_zero():
    assert _run('int f(int x) { return 10 / x; }', x=-3) == -3
    assert _run('int f(int x) { return x % 2; }', x=-7) == -1
    assert _run('int f(int x) { return 10 / x; }', x=0) == 0
    assert collate_report() == [(1, 'div0', True)]


def test_usual_arithmetic_conversions():
    assert _run('int f(void) { return -1 < 0; }') == 1
    assert _run('int f(void) { return -1 < 0U; }') == 0
    assert _run('unsigned int f(int x) { return x; }', x=-1) == 0xFFFFFFFF
    assert _run('unsigned char f(unsigned int x) { return x + 1; }', x=255) == 0
    assert _run('long f(void) { return 3000000000; }') == 3000000000


def test_assignment_forms():
    src = 'int f(int x) { int y = x; y += 2; y <<= 1; y++; return y; }'
    assert _run(src, x=3) == 11


def test_logical_operators_short_circuit():
    src = 'int f(int x) { int y = 0; if (x && (y = 5)) { y = y + 1; } return y; }'
    assert _run(src, x=0) == 0
    assert _run(src, x=1) == 6


def test_directives_and_comments_keep_line_numbers():
    src = '\n'.join([
        '#include <stdint.h>',
        '// fixed width',
        'typedef unsigned int uint32_t;',
        'uint32_t f(uint32_t x) { return x >> 33; }',
    ])
    assert _run(src, x=4) == 2
    assert collate_report() == [(4, 'shift', True)]


def test_line_comment_may_mention_block_opener():
    src = 'int f(int x) { // see /* note\n  x = x + 1;\n  /* c */ return x; }'
    assert _run(src, x=1) == 2


def test_fixture_parses_without_preprocessor():
    with open(ADDFLT_C, encoding='utf-8') as fin:
        text = fin.read()
    assert '// This if statement seems critical' in text
    func = find_function(parse_c_source(text), 'addflt')
    reset_report()
    assert interpret_function(func, {'a': 0x81000001, 'b': 0x80000000}) == 2
    assert interpret_function(func, {'a': 0x00000000, 'b': 0x00000000}) == 4294967168


def test_signed_left_shift_overflow_reported():
    assert _run('int f(int x) { return x << 1; }', x=0x20000000) == 0x40000000
    assert collate_report() == [(1, 'shift', False), (1, 'overflow', False)]
    assert _run('int f(int x) { return x << 1; }', x=0x40000000) == -(1 << 31)
    assert collate_report() == [(1, 'shift', False), (1, 'overflow', True)]


def test_left_shift_of_negative_value_reported():
    assert _run('int f(int x) { return x << 1; }', x=-1) == -2
    assert collate_report() == [(1, 'shift', False), (1, 'overflow', True)]
    assert _run('unsigned int f(unsigned int x) { return x << 1; }', x=0xFFFFFFFF) == 0xFFFFFFFE
    assert collate_report() == [(1, 'shift', False)]


def test_unsupported_constructs():
    with pytest.raises(UnsupportedConstruct):
        _run('int f(int *p) { return 0; }', p=0)
    with pytest.raises(UnsupportedConstruct):
        _run('int f(int x) { while (x) { x = x - 1; } return x; }', x=2)
    with pytest.raises(UnsupportedConstruct):
        _run('int f(void) { return y; }')


def test_load_inputs(tmp_path):
    path = tmp_path / 'in.yaml'
    path.write_text("a: '0x81000001'\nb: [0, 16]\nc: '>'\n")
    pools = load_inputs(str(path))
    assert pools['a'] == [0x81000001]
    assert pools['b'] == [0, 16]
    assert pools['c'] == BOUNDARY_SAMPLES


def test_main_writes_yaml(tmp_path, monkeypatch):
    out = tmp_path / 'out.yaml'
    monkeypatch.setattr(sys, 'argv', ['c_eval.py', ADDFLT_C, 'addflt', ADDFLT_INPUTS, str(out)])
    c_eval.main()
    data = yaml.safe_load(out.read_text())
    assert len(data['cases']) == 4 * len(BOUNDARY_SAMPLES)
    for case in data['cases']:
        assert case['result'] == addflt(case['inputs']['a'], case['inputs']['b'])
    assert {'line': 9, 'kind': 'shift', 'maybe': True} in data['hazards']


def test_main_prints_rows(monkeypatch, capsys):
    monkeypatch.setattr(sys, 'argv', ['c_eval.py', ADDFLT_C, 'addflt', ADDFLT_INPUTS])
    c_eval.main()
    out = capsys.readouterr().out
    assert 'a=0x81000001 b=0x80000000 -> 0x00000002' in out
    assert '9 shift True' in out


def test_main_unknown_function(monkeypatch, capsys):
    monkeypatch.setattr(sys, 'argv', ['c_eval.py', ADDFLT_C, 'nope', ADDFLT_INPUTS])
    with pytest.raises(SystemExit) as exc:
        c_eval.main()
    assert exc.value.code == 1
    assert "Function 'nope' not found" in capsys.readouterr().err
