"""
Streaming markup tokenizer for dialogue documents.

Turns an XML-shaped document into a flat stream of tokens:

    OPEN  name + attributes
    TEXT  a run of character data (whitespace-only runs are dropped)
    CLOSE name

Tokens are produced incrementally while the source is fed to the
parser, so a large document never has to be held as a tree.
"""

from __future__ import annotations

import io
import xml.sax
import xml.sax.handler
from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path
from typing import IO, Iterator

from parley.dialog.errors import DocumentNotFoundError, MalformedDocumentError

CHUNK_SIZE = 16 * 1024


class TokenKind(Enum):
    OPEN = auto()
    TEXT = auto()
    CLOSE = auto()


@dataclass(frozen=True)
class Token:
    """A single parser event."""
    kind: TokenKind
    name: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    text: str = ""

    def attr(self, key: str, default: str = "") -> str:
        return self.attrs.get(key, default)


class _TokenCollector(xml.sax.handler.ContentHandler):
    """SAX handler buffering tokens until the reader drains them."""

    def __init__(self):
        super().__init__()
        self.tokens: list[Token] = []
        self._chars: list[str] = []

    def startElement(self, name, attrs):
        self._flush_text()
        self.tokens.append(Token(TokenKind.OPEN, name=name, attrs=dict(attrs)))

    def endElement(self, name):
        self._flush_text()
        self.tokens.append(Token(TokenKind.CLOSE, name=name))

    def characters(self, content):
        # Expat may split one run of text across several calls
        self._chars.append(content)

    def _flush_text(self) -> None:
        if not self._chars:
            return
        text = ''.join(self._chars)
        self._chars = []
        if text.strip():
            self.tokens.append(Token(TokenKind.TEXT, text=text))

    def drain(self) -> list[Token]:
        tokens, self.tokens = self.tokens, []
        return tokens


def iter_tokens(stream: IO) -> Iterator[Token]:
    """
    Tokenize a readable text or binary stream.

    Raises:
        MalformedDocumentError: if the stream cannot be read or parsed
    """
    collector = _TokenCollector()
    parser = xml.sax.make_parser()
    parser.setContentHandler(collector)

    fed = False
    try:
        while True:
            chunk = stream.read(CHUNK_SIZE)
            if not chunk:
                break
            fed = True
            parser.feed(chunk)
            yield from collector.drain()
        if not fed:
            raise MalformedDocumentError("Cannot tokenize document: empty stream")
        parser.close()
    except xml.sax.SAXException as e:
        raise MalformedDocumentError(f"Cannot tokenize document: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedDocumentError(f"Cannot read document: {e}") from e

    yield from collector.drain()


def tokenize_string(source: str) -> Iterator[Token]:
    """Tokenize a document held in memory."""
    return iter_tokens(io.StringIO(source))


def tokenize_file(path: str | Path) -> Iterator[Token]:
    """
    Tokenize a document file.

    Raises:
        DocumentNotFoundError: if the file does not exist
        MalformedDocumentError: if it cannot be opened or parsed
    """
    path = Path(path)
    if not path.is_file():
        raise DocumentNotFoundError(f"Dialogue file not found: {path}")

    try:
        stream = open(path, 'rb')
    except OSError as e:
        raise MalformedDocumentError(f"Cannot open {path}: {e}") from e

    def _tokens() -> Iterator[Token]:
        with stream:
            yield from iter_tokens(stream)

    return _tokens()
