import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "browser: test drives a real browser against the live Toolshop site")


class FakeMouse:
    """Records press/move/release and drags whichever handle was last hovered."""

    def __init__(self):
        self.hovered = None
        self.dragging = None
        self.downs = 0
        self.moves = []

    def down(self):
        self.downs += 1
        self.dragging = self.hovered

    def move(self, x, y):
        self.moves.append((x, y))
        if self.dragging is not None:
            self.dragging.drag_to(x)

    def up(self):
        self.dragging = None


class FakeHandle:
    """
    One slider thumb with a linear x -> value mapping, value = x - offset,
    clamped to [low, high]. frozen=True keeps the reported value fixed.
    """

    def __init__(self, mouse, x, offset, low=0, high=100, frozen=False, name="handle"):
        self.mouse = mouse
        self.x = x
        self.offset = offset
        self.low = low
        self.high = high
        self.frozen = frozen
        self.name = name
        self.value = self._value_at(x)
        self.drags = 0
        self.raw_override = None
        self.on_drag = None

    def _value_at(self, x):
        return min(max(x - self.offset, self.low), self.high)

    def drag_to(self, x):
        self.drags += 1
        self.x = x
        if not self.frozen:
            self.value = self._value_at(x)
        if self.on_drag:
            self.on_drag(self)

    def hover(self):
        self.mouse.hovered = self

    def wait_for(self, state="visible", timeout=None):
        pass

    def bounding_box(self):
        return {"x": self.x, "y": 10, "width": 16, "height": 16}

    def get_attribute(self, name):
        assert name == "aria-valuenow"
        if self.raw_override is not None:
            return self.raw_override
        return str(self.value)

    def __repr__(self):
        return f"FakeHandle({self.name}, x={self.x}, value={self.value})"


class FakeTrack:
    def __init__(self, box):
        self.box = box

    def wait_for(self, state="visible", timeout=None):
        pass

    def bounding_box(self):
        return self.box


@pytest.fixture
def mouse():
    return FakeMouse()


@pytest.fixture
def make_handle(mouse):
    def _make(x, offset=0, **kwargs):
        return FakeHandle(mouse, x, offset, **kwargs)
    return _make


@pytest.fixture
def track():
    return FakeTrack({"x": 0, "y": 0, "width": 400, "height": 20})


@pytest.fixture
def missing_track():
    return FakeTrack(box=None)
