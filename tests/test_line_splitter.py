from __future__ import annotations

from core.tokenizer import INITIAL_STATE, ScanState, split_lines, step_quote


def test_step_quote_rules() -> None:
    assert step_quote(False, None) == (True, 1, False)
    assert step_quote(True, True) == (True, 2, True)
    assert step_quote(True, False) == (False, 1, False)
    # Undecidable until the next character arrives.
    assert step_quote(True, None).consumed == 0


def test_complete_lines_and_remainder() -> None:
    result = split_lines(b"a,b\nc,d\ne,f")
    assert result.lines == [b"a,b", b"c,d"]
    assert result.offsets == [0, 4]
    assert result.remainder == b"e,f"
    assert result.state == ScanState(in_quotes=False, offset=3)


def test_newline_inside_quotes_is_part_of_line() -> None:
    result = split_lines(b'id,note\n1,"two\nlines"\n2,x\n')
    assert result.lines == [b"id,note", b'1,"two\nlines"', b"2,x"]
    assert result.remainder == b""


def test_crlf_terminator_is_stripped_only_outside_quotes() -> None:
    result = split_lines(b'a\r\n"x\r\ny"\r\n')
    assert result.lines == [b"a", b'"x\r\ny"']


def test_bare_cr_is_line_content() -> None:
    result = split_lines(b"a\rb\n")
    assert result.lines == [b"a\rb"]


def test_open_quote_keeps_tail_in_remainder() -> None:
    result = split_lines(b'h\n"Doe,')
    assert result.lines == [b"h"]
    assert result.remainder == b'"Doe,'
    assert result.state.in_quotes is True
    assert result.state.offset == len(b'"Doe,')


def test_scan_resumes_from_saved_state() -> None:
    first = split_lines(b'1,"a\nb')
    assert first.lines == []
    second = split_lines(first.remainder + b'c",2\n3\n', first.state)
    assert second.lines == [b'1,"a\nbc",2', b"3"]
    assert second.state == INITIAL_STATE


def test_trailing_quote_inside_quotes_is_pending() -> None:
    # A quote at the very end of a quoted field may be half of an escaped pair.
    first = split_lines(b'"say ""hi"')
    assert first.lines == []
    assert first.state.in_quotes is True
    assert first.state.offset == len(b'"say ""hi')

    escaped = split_lines(first.remainder + b'" now"\n', first.state)
    assert escaped.lines == [b'"say ""hi"" now"']

    closed = split_lines(first.remainder + b"\nnext\n", first.state)
    assert closed.lines == [b'"say ""hi"', b"next"]


def test_final_flushes_tail_without_newline() -> None:
    result = split_lines(b"a\nlast", final=True)
    assert result.lines == [b"a", b"last"]
    assert result.offsets == [0, 2]
    assert result.remainder == b""
    assert result.unterminated is False


def test_final_reports_unterminated_quote() -> None:
    result = split_lines(b'a\n"open\nstill', final=True)
    assert result.lines == [b"a", b'"open\nstill']
    assert result.unterminated is True


def test_final_resolves_pending_quote_as_close() -> None:
    result = split_lines(b'"x"', ScanState(in_quotes=True, offset=2), final=True)
    assert result.lines == [b'"x"']
    assert result.unterminated is False


def test_empty_lines_are_kept() -> None:
    result = split_lines(b"h\n\nv\n")
    assert result.lines == [b"h", b"", b"v"]
