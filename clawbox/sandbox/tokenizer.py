"""
Shell-like command splitting WITHOUT a shell.

Supported: whitespace splitting, '...' (fully literal), "..." spans and
backslash escapes outside single quotes. Nothing is ever substituted: ``$`` and
backticks inside double quotes are plain text. Refused: unquoted metacharacters,
NUL and unterminated quotes. Do not extend this into a shell grammar; every
construct added is injection surface.
"""
from __future__ import annotations

from clawbox.sandbox.errors import ShellSyntaxError

METACHARACTERS = frozenset(";|&$`><\n")
WHITESPACE = frozenset(" \t\r\f\v")
# Characters a backslash may escape inside double quotes (POSIX, minus newline).
_DQUOTE_ESCAPABLE = frozenset('"\\$`')


def tokenize_command(command: str) -> list[str]:
    """
    Split ``command`` into an argument vector.

    Raises ShellSyntaxError on unquoted metacharacters (``; | & $ ` > <`` or
    newline), NUL anywhere and unterminated quotes. An unquoted backslash
    escapes the next character (a trailing one is kept as-is). Returns [] for
    blank input.
    """
    nul = command.find("\x00")
    if nul >= 0:
        raise ShellSyntaxError(command, "\x00", nul, "NUL byte")

    tokens: list[str] = []
    buf: list[str] = []
    in_token = False
    quote: str | None = None
    quote_start = -1
    i = 0
    n = len(command)

    while i < n:
        ch = command[i]

        if quote == "'":
            if ch == "'":
                quote = None
            else:
                buf.append(ch)
            i += 1
            continue

        if quote == '"':
            if ch == '"':
                quote = None
            elif ch == "\\" and i + 1 < n and command[i + 1] in _DQUOTE_ESCAPABLE:
                buf.append(command[i + 1])
                i += 1
            else:
                buf.append(ch)
            i += 1
            continue

        if ch in METACHARACTERS:
            raise ShellSyntaxError(command, ch, i, "unquoted metacharacter")

        if ch == "\\":
            in_token = True
            if i + 1 == n:
                buf.append(ch)
            elif command[i + 1] == "\n":
                raise ShellSyntaxError(command, "\n", i + 1, "line continuation")
            else:
                buf.append(command[i + 1])
                i += 1
        elif ch in WHITESPACE:
            if in_token:
                tokens.append("".join(buf))
                buf = []
                in_token = False
        elif ch in ("'", '"'):
            quote = ch
            quote_start = i
            in_token = True
        else:
            buf.append(ch)
            in_token = True
        i += 1

    if quote is not None:
        raise ShellSyntaxError(command, quote, quote_start, "unterminated quote")
    if in_token:
        tokens.append("".join(buf))
    return tokens
