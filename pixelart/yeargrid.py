"""Year grid geometry: dates, levels and the patterns painted onto them.

The grid is ``grid[row][col]`` with 7 weekday rows (Sunday first) and 53
week columns, exactly like the contribution graph. A cell holds a level
0..4, or -1 when its date falls outside the selected year.
"""

import math
import datetime as dt

from .config import ROWS, COLS, MAX_LEVEL

OUTSIDE = -1


# ===== date helpers =====
def sunday_of_week(d: dt.date) -> dt.date:
    return d - dt.timedelta(days=(d.weekday() + 1) % 7)


def year_dates(year: int):
    """DateMatrix for `year`: first column starts on the Sunday on/before Jan 1."""
    start = sunday_of_week(dt.date(year, 1, 1))
    return [[start + dt.timedelta(weeks=x, days=y) for x in range(COLS)]
            for y in range(ROWS)]


def blank_grid(dates, year: int):
    return [[0 if d.year == year else OUTSIDE for d in row] for row in dates]


def cell_of(dates, day: dt.date):
    """(row, col) of `day` in the matrix, or (None, None)."""
    start = dates[0][0]
    offset = (day - start).days
    x, y = divmod(offset, ROWS)
    if 0 <= x < COLS:
        return y, x
    return None, None


# ===== painting =====
def paint(grid, row: int, col: int, level: int) -> bool:
    """Set one cell. Cells outside the year are never touched."""
    if not 0 <= level <= MAX_LEVEL:
        raise ValueError(f"level must be 0..{MAX_LEVEL}, got {level}")
    if grid[row][col] == OUTSIDE:
        return False
    grid[row][col] = level
    return True


def clear(grid):
    for row in grid:
        for x, v in enumerate(row):
            if v != OUTSIDE:
                row[x] = 0


def apply_pattern(grid, pattern, offset: int = 0):
    """Paint a 7-row pattern onto the grid, shifted right by `offset` weeks."""
    for y, prow in enumerate(pattern[:ROWS]):
        for px, level in enumerate(prow):
            x = px + offset
            if 0 <= x < COLS and level > 0:
                paint(grid, y, x, min(level, MAX_LEVEL))
    return grid


def parse_pattern(text: str):
    """7 lines of digits 0-4; '.', ' ' and '-' count as 0. Short rows are padded."""
    lines = [ln.rstrip('\n') for ln in text.splitlines()]
    # drop trailing blank lines but keep blank rows inside the pattern
    while lines and not lines[-1].strip():
        lines.pop()
    if len(lines) > ROWS:
        raise ValueError(f"pattern has {len(lines)} rows, at most {ROWS} allowed")
    pattern = []
    for n, line in enumerate(lines, start=1):
        if len(line) > COLS:
            raise ValueError(f"row {n} is {len(line)} columns wide, at most {COLS} allowed")
        row = []
        for ch in line:
            if ch in '. -':
                row.append(0)
            elif ch.isdigit() and int(ch) <= MAX_LEVEL:
                row.append(int(ch))
            else:
                raise ValueError(f"row {n}: invalid cell {ch!r}")
        pattern.append(row + [0] * (COLS - len(row)))
    while len(pattern) < ROWS:
        pattern.append([0] * COLS)
    return pattern


def rasterize_text(text: str, level: int = MAX_LEVEL):
    """Render `text` with Pillow's default font and fit it into 7 rows.

    Width follows the glyphs' aspect ratio and is clipped to the grid.
    """
    from PIL import Image, ImageDraw, ImageFont

    font = ImageFont.load_default()
    tmp = Image.new("L", (1200, 200), 0)
    ImageDraw.Draw(tmp).text((0, 0), text, fill=255, font=font)
    bbox = tmp.getbbox()
    if not bbox:
        return [[0] * COLS for _ in range(ROWS)]
    cropped = tmp.crop(bbox)
    w, h = cropped.size
    width = max(1, min(COLS, round(w * ROWS / h)))
    small = cropped.resize((width, ROWS), Image.NEAREST)
    data = small.load()
    return [[level if x < width and data[x, y] else 0 for x in range(COLS)]
            for y in range(ROWS)]


def levels_from_counts(grid, dates, counts):
    """Pre-fill from existing activity: levels 1..4 scaled linearly to the busiest day."""
    top = max((c for c in counts.values() if c > 0), default=0)
    for y in range(ROWS):
        for x in range(COLS):
            if grid[y][x] == OUTSIDE:
                continue
            c = counts.get(dates[y][x], 0)
            grid[y][x] = 0 if c <= 0 else max(1, min(MAX_LEVEL, math.ceil(c * MAX_LEVEL / top)))
    return grid


# ===== preview =====
GLYPHS = " ░▒▓█"


def render(grid) -> str:
    return "\n".join("".join("·" if v == OUTSIDE else GLYPHS[v] for v in row) for row in grid)
