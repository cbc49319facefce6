import pytest

from wbgenesis.validate import (
    ValidationError,
    valid_normal_character,
    validate_ascii,
    validate_command_line,
    validate_file_path,
    validate_normal_ascii,
)


@pytest.mark.parametrize("text", ["\u0432\u8977", "how are you doing\u8333"])
def test_validate_ascii_rejects(text):
    with pytest.raises(ValidationError):
        validate_ascii(text)


@pytest.mark.parametrize("text", ["helloworld", "f\n\r\t\v"])
def test_validate_ascii_accepts(text):
    validate_ascii(text)
    with pytest.raises(ValidationError):
        validate_ascii(text + "\u8977")


@pytest.mark.parametrize("text", ["\u0432\u8977", "f\n\r\t\v", "how are you doing\u8333"])
def test_validate_normal_ascii_rejects(text):
    with pytest.raises(ValidationError):
        validate_normal_ascii(text)


def test_validate_normal_ascii_accepts():
    validate_normal_ascii("helloworld")
    with pytest.raises(ValidationError):
        validate_normal_ascii("helloworld\n")


@pytest.mark.parametrize("path", ["../../../", "genesis.json; rm -rf /", "\rhello"])
def test_validate_file_path_rejects(path):
    with pytest.raises(ValidationError):
        validate_file_path(path)


@pytest.mark.parametrize("path", ["config.ini", "parity/genesis.json"])
def test_validate_file_path_accepts(path):
    validate_file_path(path)
    with pytest.raises(ValidationError):
        validate_file_path(path + ";")


@pytest.mark.parametrize("path", ["", "  //", '"\\'])
def test_validate_file_path_empty(path):
    with pytest.raises(ValidationError):
        validate_file_path(path)


@pytest.mark.parametrize(
    "text", ["genesis.json; rm -rf /", "\rhello", 'test";rm -rf /']
)
def test_validate_command_line_rejects(text):
    with pytest.raises(ValidationError):
        validate_command_line(text)


@pytest.mark.parametrize("text", ["../../../", "config.ini", "parity/genesis.json"])
def test_validate_command_line_accepts(text):
    validate_command_line(text)
    with pytest.raises(ValidationError):
        validate_command_line(text + ";")


@pytest.mark.parametrize(
    "chr, expected",
    [("+", True), (":", True), ("A", True), ("z", True), ("@", True), ("_", True),
     (" ", True), (";", False), ("$", False), ("'", False)],
)
def test_valid_normal_character(chr, expected):
    assert valid_normal_character(chr) is expected


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        validate_ascii("\u8977")