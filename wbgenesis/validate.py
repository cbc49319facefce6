"""Naive input checks that catch accidental shell injection and odd characters."""


class ValidationError(ValueError):
    """Raised when a value fails validation."""


def validate_ascii(text: str) -> None:
    """Raise ValidationError unless every character fits in a signed char."""
    for c in text:
        if ord(c) > 127:
            raise ValidationError(f"character {c} is not ASCII")


def validate_normal_ascii(text: str) -> None:
    """Like validate_ascii, but control characters are rejected too."""
    for c in text:
        if ord(c) > 126 or ord(c) < 32:
            raise ValidationError(f"invalid character {c}")


def validate_file_path(path: str) -> None:
    """Raise ValidationError if the path is empty, climbs out, or has unusual characters."""
    if not path:
        raise ValidationError("cannot be empty")
    if not path.strip(" \n\t\v\r\"\\/"):
        raise ValidationError("effective cannot be empty")
    if ".." in path:
        raise ValidationError('cannot contain ".."')
    if any(c in path for c in ";\\*$#"):
        raise ValidationError("given path contains unusual characters")
    validate_normal_ascii(path)


def valid_normal_character(chr: str) -> bool:
    """Whether a character is in the range considered safe on a command line."""
    return (
        "+" <= chr <= ":"
        or "A" <= chr <= "Z"
        or "a" <= chr <= "z"
        or chr in (" ", "_", "@")
    )


def validate_command_line(text: str) -> None:
    """Raise ValidationError if the text holds a character outside the safe range.

    This is a debugging aid, not a security measure.
    """
    for c in text:
        if not valid_normal_character(c):
            raise ValidationError(f'"{text}" contains invalid character {c!r}')