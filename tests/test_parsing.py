import pytest

from agent.errors import ConfigError
from bods.parsing import (
    extract_xml_tag_content,
    parse_image_list,
    parse_variable_input,
    rewrite_metaprompt_variables,
    substitute_placeholders,
    template_placeholders,
)


def test_template_placeholders():
    assert template_placeholders("{{.B}} {{.A}} {{.B}} {{ .C }}") == ["B", "A"]


def test_substitute_placeholders():
    assert substitute_placeholders("Hi {{.NAME}}, {{.MISSING}}!", {"NAME": "Ada"}) == "Hi Ada, !"


def test_rewrite_metaprompt_variables():
    text = "Use {$customer_name} and {$FAQ} but not {NAME} or $X"
    assert rewrite_metaprompt_variables(text) == "Use {{.CUSTOMER_NAME}} and {{.FAQ}} but not {NAME} or $X"


def test_parse_variable_input(tmp_path):
    resume = tmp_path / "resume.txt"
    resume.write_text("ten years of python")

    variables = parse_variable_input(f'rubric="software developer",RESUME=file://{resume},empty=,junk')

    assert variables == {"RUBRIC": "software developer", "RESUME": "ten years of python"}


def test_parse_variable_input_unreadable_file(tmp_path):
    with pytest.raises(ConfigError):
        parse_variable_input(f"A=file://{tmp_path / 'missing.txt'}")


def test_parse_image_list(tmp_path, png_bytes):
    first, second = tmp_path / "a.png", tmp_path / "b.png"
    first.write_bytes(png_bytes)
    second.write_bytes(b"second")

    assert parse_image_list(f"file://{first}, file://{second},https://example.com/c.png") == [png_bytes, b"second"]


def test_parse_image_list_missing_file(tmp_path):
    with pytest.raises(ConfigError) as exc_info:
        parse_image_list(f"file://{tmp_path / 'none.png'}")
    assert exc_info.value.reason == "Error processing content of --images flag"


@pytest.mark.parametrize("text,expected", [
    ("a <answer>42</answer> b <answer>43</answer>", "42"),
    ("<answer>\nmulti\nline\n</answer>", "\nmulti\nline\n"),
    ("<answer>unterminated", ""),
    ("nothing", ""),
])
def test_extract_xml_tag_content(text, expected):
    assert extract_xml_tag_content(text, "answer") == expected
