"""Reader/writer for the ``key=value`` properties format the vault is stored in.

The format follows the classic ``.properties`` conventions: ``#``/``!`` comment
lines, ``=`` or ``:`` (or whitespace) as separator, backslash escapes, and
trailing-backslash line continuation. Files are written as UTF-8.
"""
from __future__ import annotations
import re
from datetime import datetime
from typing import BinaryIO, Dict, Mapping, Optional

_LINE_BREAK = re.compile(r'\r\n|\r|\n')
_WHITESPACE = ' \t\f'
_ESCAPES = {'\\': '\\\\', '\t': '\\t', '\n': '\\n', '\r': '\\r', '\f': '\\f',
	'=': '\\=', ':': '\\:', '#': '\\#', '!': '\\!'}
_UNESCAPES = {'t': '\t', 'n': '\n', 'r': '\r', 'f': '\f'}

class PropertiesError(ValueError):
	pass

def _escape(text: str, is_key: bool) -> str:
	out = []
	for i, ch in enumerate(text):
		if ch == ' ' and (is_key or i == 0):
			out.append('\\ ')
		else:
			out.append(_ESCAPES.get(ch, ch))
	return ''.join(out)

def _unescape(text: str) -> str:
	out = []; i = 0
	while i < len(text):
		ch = text[i]
		if ch != '\\' or i + 1 >= len(text):
			out.append(ch); i += 1
			continue
		nxt = text[i + 1]
		if nxt == 'u':
			hexdigits = text[i + 2:i + 6]
			if len(hexdigits) != 4:
				raise PropertiesError(f'Malformed \\u escape: {text[i:i + 6]!r}')
			try:
				out.append(chr(int(hexdigits, 16)))
			except ValueError:
				raise PropertiesError(f'Malformed \\u escape: {text[i:i + 6]!r}')
			i += 6
		else:
			out.append(_UNESCAPES.get(nxt, nxt)); i += 2
	return ''.join(out)

def _ends_with_continuation(line: str) -> bool:
	count = len(line) - len(line.rstrip('\\'))
	return count % 2 == 1

def _split_entry(line: str) -> tuple[str, str]:
	i = 0; n = len(line)
	while i < n:
		ch = line[i]
		if ch == '\\':
			i += 2
			continue
		if ch in '=:' or ch in _WHITESPACE:
			break
		i += 1
	key = line[:i]
	rest = line[i:].lstrip(_WHITESPACE)
	if rest[:1] in ('=', ':'):
		rest = rest[1:].lstrip(_WHITESPACE)
	return _unescape(key), _unescape(rest)

def load_properties(stream: BinaryIO) -> Dict[str, str]:
	"""Parse a properties stream into a dict. Later duplicates win."""
	lines = _LINE_BREAK.split(stream.read().decode('utf-8'))
	result: Dict[str, str] = {}
	i = 0
	while i < len(lines):
		line = lines[i].lstrip(_WHITESPACE); i += 1
		if not line or line[0] in '#!':
			continue
		while _ends_with_continuation(line) and i < len(lines):
			line = line[:-1] + lines[i].lstrip(_WHITESPACE); i += 1
		if _ends_with_continuation(line):
			line = line[:-1]
		key, value = _split_entry(line)
		result[key] = value
	return result

def dump_properties(pairs: Mapping[str, str], stream: BinaryIO, comment: Optional[str] = None) -> None:
	lines = []
	if comment:
		lines.extend('#' + c for c in _LINE_BREAK.split(comment))
	lines.append('#' + datetime.now().isoformat())
	for key, value in pairs.items():
		lines.append(f'{_escape(key, True)}={_escape(value, False)}')
	stream.write(('\n'.join(lines) + '\n').encode('utf-8'))
