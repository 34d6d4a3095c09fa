"""Terminal colours for the board.

Each lane role gets its own colour; all custom lanes share one. Colour
output is detected once at import:
- NO_COLOR turns it off entirely.
- Without a TTY it is off unless FORCE_COLOR is truthy.
- COLORTERM=truecolor/24bit selects 24-bit escapes, anything else the
  xterm 256 cube.
Hex overrides for the palette come from the environment or `.env`
(see config.Env).
"""
from __future__ import annotations
import os, sys
from typing import Dict, Mapping, Optional, TextIO, Tuple

from config import Env, truthy
from lanes import Role

NONE, CUBE_256, TRUECOLOR = 'none', '256', 'truecolor'

DEFAULT_PALETTE: Dict[str, str] = {
    'KANBAN_PRIMARY': '#476EAE',
    'KANBAN_CUSTOM': '#48B3AF',
    'KANBAN_DOING': '#F6FF99',
    'KANBAN_PENDING': '#FFB347',
    'KANBAN_DONE': '#A7E399',
    'KANBAN_REJECT': '#FF7C7C',
    'KANBAN_ARCHIVE': '#9E9E9E',
}

_HEX_DIGITS = frozenset('0123456789abcdefABCDEF')


def color_mode(environ: Mapping[str, str], stream: Optional[TextIO] = None) -> str:
    if 'NO_COLOR' in environ:
        return NONE
    stream = stream or sys.stdout
    if not (truthy(environ.get('FORCE_COLOR'), False) or stream.isatty()):
        return NONE
    term = environ.get('COLORTERM', '').lower()
    return TRUECOLOR if ('truecolor' in term or '24bit' in term) else CUBE_256


def valid_hex(value: str) -> bool:
    digits = value.lstrip('#')
    return len(digits) == 6 and set(digits) <= _HEX_DIGITS


def rgb(hex_code: str) -> Tuple[int, int, int]:
    digits = hex_code.lstrip('#')
    return tuple(int(digits[i:i + 2], 16) for i in (0, 2, 4))  # type: ignore[return-value]


def foreground(hex_code: str, mode: str) -> str:
    """Escape sequence selecting hex_code as foreground colour."""
    if mode == NONE:
        return ''
    r, g, b = rgb(hex_code)
    if mode == TRUECOLOR:
        return f"\033[38;2;{r};{g};{b}m"
    # nearest entry of the 6x6x6 cube
    r6, g6, b6 = (round(c / 255 * 5) for c in (r, g, b))
    return f"\033[38;5;{16 + 36 * r6 + 6 * g6 + b6}m"


def resolve_palette(env: Env) -> Dict[str, str]:
    """Hex value per palette key; invalid overrides fall back to the default."""
    palette: Dict[str, str] = {}
    for key, default in DEFAULT_PALETTE.items():
        value = env.get(key)
        palette[key] = '#' + value.lstrip('#') if value and valid_hex(value) else default
    return palette


MODE = color_mode(os.environ)
PALETTE = resolve_palette(Env())


def _sgr(code: str) -> str:
    return '' if MODE == NONE else f"\033[{code}m"


RESET, BOLD, DIM = _sgr('0'), _sgr('1'), _sgr('2')
PRIMARY = foreground(PALETTE['KANBAN_PRIMARY'], MODE)

ROLE_COLOR: Dict[Role, str] = {
    role: foreground(PALETTE[f'KANBAN_{role.name}'], MODE) for role in Role
}

HEADER_COLOR = PRIMARY
ID_COLOR = PRIMARY + BOLD
EMPTY_COLOR = DIM + PRIMARY
META_COLOR = DIM


def color(text: str, *styles: str) -> str:
    """Wrap text in the given styles; plain text when colour is off."""
    if MODE == NONE:
        return text
    return ''.join(styles) + text + RESET
