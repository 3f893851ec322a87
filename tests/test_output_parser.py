from compiler_dispatch.output_parser import parse_output


def test_parse_output_empty():
    assert parse_output(None) == []
    assert parse_output("") == []


def test_parse_output_splits_lines_and_drops_trailing_blank():
    lines = parse_output("first\nsecond\n\n")

    assert [line.text for line in lines] == ["first", "second"]
    assert all(line.tag is None for line in lines)


def test_parse_output_rewrites_input_file_and_tags_locations():
    text = "/tmp/scratch/example.cpp:3:7: error: expected ';'\n"

    [line] = parse_output(text, "/tmp/scratch/example.cpp")

    assert line.text == "<source>:3:7: error: expected ';'"
    assert line.tag is not None
    assert (line.tag.line, line.tag.column, line.tag.text) == (3, 7, "error: expected ';'")


def test_parse_output_tags_locations_without_column():
    [line] = parse_output("<source>:12: warning: unused")

    assert line.tag.line == 12
    assert line.tag.column == 0


def test_parse_output_strips_ansi_colours():
    [line] = parse_output("\x1b[01;31merror\x1b[0m: boom")

    assert line.text == "error: boom"
