"""Projector plugin configuration and its protobuf text format."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

_UINT32_MAX = 0xFFFFFFFF

_ESCAPES = {
    0x0A: "\\n",
    0x0D: "\\r",
    0x09: "\\t",
    0x22: '\\"',
    0x27: "\\'",
    0x5C: "\\\\",
}

_UNESCAPES = {
    "n": b"\n",
    "r": b"\r",
    "t": b"\t",
    "a": b"\a",
    "b": b"\b",
    "f": b"\f",
    "v": b"\v",
    "\\": b"\\",
    "'": b"'",
    '"': b'"',
    "?": b"?",
}

_TOKEN_RE = re.compile(
    r"""
      (?P<skip>\s+|\#[^\n]*)
    | (?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*')
    | (?P<number>[-+]?(?:0[xX][0-9a-fA-F]+|[0-9]+(?:\.[0-9]*)?(?:[eE][-+]?[0-9]+)?
                 |\.[0-9]+(?:[eE][-+]?[0-9]+)?)[fF]?)
    | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    | (?P<symbol>[{}<>\[\]:,;])
    """,
    re.VERBOSE,
)

_ESCAPE_RE = re.compile(
    r"\\(?:([0-7]{1,3})|x([0-9a-fA-F]{1,2})|u([0-9a-fA-F]{4})|U([0-9a-fA-F]{8})|(.))",
    re.DOTALL,
)

_CLOSING = {"{": "}", "<": ">"}

_Spec = dict[str, tuple[Union[str, dict], bool]]

_SPRITE: _Spec = {
    "image_path": ("string", False),
    "single_image_dim": ("uint32", True),
}
_EMBEDDING: _Spec = {
    "tensor_name": ("string", False),
    "metadata_path": ("string", False),
    "bookmarks_path": ("string", False),
    "tensor_shape": ("uint32", True),
    "sprite": (_SPRITE, False),
    "tensor_path": ("string", False),
}
_CONFIG: _Spec = {
    "model_checkpoint_path": ("string", False),
    "embeddings": (_EMBEDDING, True),
    "model_checkpoint_dir": ("string", False),
}


def _quote(value: str) -> str:
    parts = []
    for byte in value.encode("utf-8"):
        if byte in _ESCAPES:
            parts.append(_ESCAPES[byte])
        elif 0x20 <= byte < 0x7F:
            parts.append(chr(byte))
        else:
            parts.append(f"\\{byte:03o}")
    return '"' + "".join(parts) + '"'


def _check_uint32(name: str, value: int) -> int:
    if not 0 <= value <= _UINT32_MAX:
        raise ValueError(f"{name} value {value} is outside the uint32 range")
    return value


def _string_line(name: str, value: str) -> list[str]:
    return [f"{name}: {_quote(value)}"] if value else []


def _unescape(body: str) -> bytes:
    out = bytearray()
    pos = 0
    for match in _ESCAPE_RE.finditer(body):
        out += body[pos : match.start()].encode("utf-8")
        octal, hexa, short_code, long_code, other = match.groups()
        if octal is not None:
            out.append(int(octal, 8) & 0xFF)
        elif hexa is not None:
            out.append(int(hexa, 16))
        elif short_code is not None or long_code is not None:
            code = int(short_code or long_code, 16)
            if code > 0x10FFFF:
                raise ValueError(f"invalid unicode escape {match.group()!r}")
            out += chr(code).encode("utf-8", "surrogatepass")
        elif other in _UNESCAPES:
            out += _UNESCAPES[other]
        else:
            raise ValueError(f"invalid escape sequence {match.group()!r}")
        pos = match.end()
    out += body[pos:].encode("utf-8")
    return bytes(out)


def _parse_uint32(text: str) -> int:
    if re.fullmatch(r"0[xX][0-9a-fA-F]+", text):
        value = int(text, 16)
    elif re.fullmatch(r"0[0-7]+", text):
        value = int(text, 8)
    elif re.fullmatch(r"0|[1-9][0-9]*", text):
        value = int(text)
    else:
        raise ValueError(f"expected an unsigned integer, got {text!r}")
    return _check_uint32("integer", value)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    offset: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ValueError(f"unexpected character {text[pos]!r} at offset {pos}")
        if match.lastgroup != "skip":
            tokens.append(_Token(match.lastgroup, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = _tokenize(text)
        self._index = 0

    def _peek(self) -> _Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise ValueError("unexpected end of input")
        self._index += 1
        return token

    def _error(self, message: str) -> ValueError:
        token = self._peek()
        where = f"offset {token.offset}" if token else "end of input"
        return ValueError(f"{message} at {where}")

    def _accept(self, symbol: str) -> bool:
        token = self._peek()
        if token is not None and token.kind == "symbol" and token.text == symbol:
            self._index += 1
            return True
        return False

    def _expect(self, symbol: str) -> None:
        if not self._accept(symbol):
            raise self._error(f"expected {symbol!r}")

    def parse(self) -> dict:
        return self._block(_CONFIG, None)

    def _block(self, spec: _Spec, closing: str | None) -> dict:
        result: dict = {}
        while True:
            token = self._peek()
            if token is None:
                if closing is None:
                    return result
                raise self._error(f"expected {closing!r}")
            if closing is not None and self._accept(closing):
                return result
            if token.kind != "ident":
                raise self._error("expected a field name")
            name = self._next().text
            if name not in spec:
                raise ValueError(f"unknown field {name!r} at offset {token.offset}")
            kind, repeated = spec[name]
            if not repeated and name in result:
                raise ValueError(
                    f"non-repeated field {name!r} is specified multiple times"
                )
            if isinstance(kind, dict):
                self._accept(":")
                values = [self._nested(kind)]
            else:
                self._expect(":")
                if self._accept("["):
                    if not repeated:
                        raise ValueError(f"field {name!r} does not take a list")
                    values = self._list(kind)
                else:
                    values = [self._scalar(kind)]
            if repeated:
                result.setdefault(name, []).extend(values)
            else:
                result[name] = values[0]
            if not self._accept(","):
                self._accept(";")

    def _nested(self, spec: _Spec) -> dict:
        token = self._peek()
        for opening, closing in _CLOSING.items():
            if self._accept(opening):
                return self._block(spec, closing)
        raise self._error("expected '{' or '<'" if token else "expected a message")

    def _list(self, kind: str) -> list:
        values: list = []
        if self._accept("]"):
            return values
        while True:
            values.append(self._scalar(kind))
            if self._accept("]"):
                return values
            self._expect(",")

    def _scalar(self, kind: str):
        if kind == "string":
            return self._string()
        token = self._next()
        if token.kind != "number":
            raise ValueError(f"expected an integer at offset {token.offset}")
        return _parse_uint32(token.text)

    def _string(self) -> str:
        token = self._peek()
        if token is None or token.kind != "string":
            raise self._error("expected a string")
        raw = bytearray()
        while (token := self._peek()) is not None and token.kind == "string":
            self._index += 1
            raw += _unescape(token.text[1:-1])
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError("string field is not valid UTF-8") from exc


@dataclass
class EmbeddingInfo:
    """One embedding shown by the projector plugin."""

    tensor_name: str = ""
    tensor_path: str = ""
    metadata_path: str = ""
    bookmarks_path: str = ""
    tensor_shape: list[int] = field(default_factory=list)
    sprite_image_path: str = ""
    sprite_single_image_dim: list[int] = field(default_factory=list)

    def _lines(self) -> list[str]:
        lines = _string_line("tensor_name", self.tensor_name)
        lines += _string_line("metadata_path", self.metadata_path)
        lines += _string_line("bookmarks_path", self.bookmarks_path)
        lines += [
            f"tensor_shape: {_check_uint32('tensor_shape', dim)}"
            for dim in self.tensor_shape
        ]
        if self.sprite_image_path or self.sprite_single_image_dim:
            lines.append("sprite {")
            lines += ["  " + line for line in _string_line("image_path", self.sprite_image_path)]
            lines += [
                f"  single_image_dim: {_check_uint32('single_image_dim', dim)}"
                for dim in self.sprite_single_image_dim
            ]
            lines.append("}")
        lines += _string_line("tensor_path", self.tensor_path)
        return lines

    @classmethod
    def _from_fields(cls, fields: dict) -> EmbeddingInfo:
        sprite = fields.get("sprite", {})
        return cls(
            tensor_name=fields.get("tensor_name", ""),
            tensor_path=fields.get("tensor_path", ""),
            metadata_path=fields.get("metadata_path", ""),
            bookmarks_path=fields.get("bookmarks_path", ""),
            tensor_shape=list(fields.get("tensor_shape", [])),
            sprite_image_path=sprite.get("image_path", ""),
            sprite_single_image_dim=list(sprite.get("single_image_dim", [])),
        )


@dataclass
class ProjectorConfig:
    """The projector plugin's configuration file."""

    embeddings: list[EmbeddingInfo] = field(default_factory=list)
    model_checkpoint_path: str = ""
    model_checkpoint_dir: str = ""

    def to_text(self) -> str:
        """Render the configuration in protobuf text format."""
        lines = _string_line("model_checkpoint_path", self.model_checkpoint_path)
        for embedding in self.embeddings:
            lines.append("embeddings {")
            lines += ["  " + line for line in embedding._lines()]
            lines.append("}")
        lines += _string_line("model_checkpoint_dir", self.model_checkpoint_dir)
        return "".join(line + "\n" for line in lines)

    @classmethod
    def parse_text(cls, text: str) -> ProjectorConfig:
        """Parse a configuration from protobuf text format.

        Raises ``ValueError`` on malformed text or unknown fields.
        """
        fields = _Parser(text).parse()
        return cls(
            embeddings=[
                EmbeddingInfo._from_fields(item) for item in fields.get("embeddings", [])
            ],
            model_checkpoint_path=fields.get("model_checkpoint_path", ""),
            model_checkpoint_dir=fields.get("model_checkpoint_dir", ""),
        )