import math

VALUE_ATTRIBUTE = "aria-valuenow"
TOLERANCE = 0.5
MAX_ITERATIONS = 50
MIN_SAFE_X = 0
MAX_SAFE_X = 1000
COARSE_PX_PER_UNIT = 2

# (distance threshold, step) pairs, checked in order
STEP_TIERS = ((20, 20), (10, 10), (5, 5))


class SliderGeometryError(RuntimeError):
    pass


# ================= VALUE READER =================

def read_value(handle):
    """Current logical value of a handle, 0.0 when missing or unparsable."""
    raw = handle.get_attribute(VALUE_ATTRIBUTE)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


# ================= CONVERGENCE =================

def step_size(distance):
    for threshold, step in STEP_TIERS:
        if distance > threshold:
            return step
    return 1


def drag_direction(current_value, target_value):
    step = step_size(abs(current_value - target_value))
    return step if current_value < target_value else -step


def _drag(mouse, handle, x, y):
    handle.hover()
    mouse.down()
    mouse.move(x, y)
    mouse.up()


def converge(mouse, handle, target_value, y_position):
    """
    Drag a handle until its value is within TOLERANCE of target_value.

    The handle's x is read once and then tracked locally. Gives up after
    MAX_ITERATIONS with one coarse drag, or as soon as the tracked x leaves
    the safe window. A shortfall is silent; callers re-read the value.
    """
    current_value = read_value(handle)
    box = handle.bounding_box()
    current_x = box["x"] if box else 0
    iterations = 0

    while abs(current_value - target_value) > TOLERANCE and iterations < MAX_ITERATIONS:
        direction = drag_direction(current_value, target_value)
        _drag(mouse, handle, current_x + direction, y_position)

        current_value = read_value(handle)
        current_x += direction
        iterations += 1

        if current_x < MIN_SAFE_X or current_x > MAX_SAFE_X:
            break

    if iterations >= MAX_ITERATIONS:
        coarse_step = (target_value - current_value) * COARSE_PX_PER_UNIT
        _drag(mouse, handle, current_x + coarse_step, y_position)


# ================= DUAL HANDLE =================

def _require_box(locator, label):
    box = locator.bounding_box()
    if not box:
        raise SliderGeometryError(f"Slider {label} not found or not visible")
    return box


def resolve_handles(first, first_box, second, second_box):
    """
    Order two handles as (low, high) by their current values.

    Screen order only breaks ties, since the rendered order can disagree
    with the values while a drag is settling.
    """
    first_value = read_value(first)
    second_value = read_value(second)
    if first_value < second_value:
        return first, second
    if second_value < first_value:
        return second, first
    if first_box["x"] <= second_box["x"]:
        return first, second
    return second, first


def set_range(mouse, min_handle, max_handle, track, target_min, target_max):
    track_box = _require_box(track, "track")
    min_box = _require_box(min_handle, "min handle")
    max_box = _require_box(max_handle, "max handle")

    y_position = track_box["y"] + track_box["height"] / 2
    low, high = resolve_handles(min_handle, min_box, max_handle, max_box)

    converge(mouse, low, target_min, y_position)
    converge(mouse, high, target_max, y_position)

    # final nudge, moving one handle can shift the other
    final_low = read_value(low)
    final_high = read_value(high)
    if abs(final_low - target_min) > TOLERANCE:
        converge(mouse, low, target_min, y_position)
    if abs(final_high - target_max) > TOLERANCE:
        converge(mouse, high, target_max, y_position)


# ================= ADAPTER =================

class RangeInput:
    """Anything that can hold a (min, max) range."""

    def set_range(self, target_min, target_max):
        raise NotImplementedError

    def get_range(self):
        raise NotImplementedError


class DragRangeSlider(RangeInput):
    """RangeInput for a two-handle widget with no value setter, driven by mouse drags."""

    def __init__(self, mouse, min_handle, max_handle, track):
        self.mouse = mouse
        self.min_handle = min_handle
        self.max_handle = max_handle
        self.track = track

    def set_range(self, target_min, target_max):
        set_range(self.mouse, self.min_handle, self.max_handle, self.track, target_min, target_max)

    def get_range(self):
        low = read_value(self.min_handle)
        high = read_value(self.max_handle)
        return min(low, high), max(low, high)
