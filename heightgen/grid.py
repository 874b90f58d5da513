import numpy as np

from heightgen.errors import InvalidInput


def check_dimensions(width, height):
    if width <= 0 or height <= 0:
        raise InvalidInput(f"Grid dimensions must be positive, got {width}x{height}")


class Grid:
    """
    A width x height texture map backed by a single contiguous array.

    The element at (x, y) lives at linear index ``y * width + x``. Scalar grids
    (heights) store ``data`` with shape ``(width * height,)``; vector grids
    (normals, slopes) add one trailing channel axis: ``(width * height, channels)``.

    Grids compare by content. Every transform returns a new grid, so two
    components never share a backing array. The constructor takes ownership
    of ``data``; from_array and from_flat copy.
    """

    def __init__(self, data, width, height):
        check_dimensions(width, height)
        data = np.asarray(data)
        if data.ndim not in (1, 2) or data.shape[0] != width * height:
            raise InvalidInput(
                f"Backing array of shape {data.shape} does not hold {width}x{height} elements"
            )
        self.data = data
        self.width = width
        self.height = height

    @classmethod
    def full(cls, width, height, value=0.0, channels=None):
        check_dimensions(width, height)
        shape = (width * height,) if channels is None else (width * height, channels)
        grid = cls(np.empty(shape, dtype=np.float64), width, height)
        return grid.fill(value)

    @classmethod
    def from_array(cls, array):
        # (H, W) for scalar maps, (H, W, C) for vector maps, like cv2/PIL images
        array = np.asarray(array)
        if array.ndim not in (2, 3):
            raise InvalidInput(f"Expected an (H, W) or (H, W, C) array, got shape {array.shape}")
        height, width = array.shape[:2]
        check_dimensions(width, height)
        return cls(array.reshape((width * height,) + array.shape[2:]).copy(), width, height)

    @classmethod
    def from_flat(cls, values, width):
        values = np.asarray(values)
        if width <= 0:
            raise InvalidInput(f"Grid width must be positive, got {width}")
        height = len(values) // width
        if width * height != len(values):
            raise InvalidInput(f"Width {width} does not evenly divide {len(values)} elements")
        return cls(values.copy(), width, height)

    @property
    def count(self):
        return self.width * self.height

    @property
    def channels(self):
        return None if self.data.ndim == 1 else self.data.shape[1]

    @property
    def shape(self):
        return (self.width, self.height)

    def index(self, x, y):
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"({x}, {y}) is outside a {self.width}x{self.height} grid")
        return y * self.width + x

    def _linear(self, key):
        if isinstance(key, tuple):
            return self.index(*key)
        if not 0 <= key < self.count:
            raise IndexError(f"Index {key} is outside a grid of {self.count} elements")
        return key

    def __getitem__(self, key):
        value = self.data[self._linear(key)]
        return value.copy() if self.data.ndim > 1 else value

    def __setitem__(self, key, value):
        self.data[self._linear(key)] = value

    def __len__(self):
        return self.count

    def __iter__(self):
        for i in range(self.count):
            yield self[i]

    def __eq__(self, other):
        if not isinstance(other, Grid):
            return NotImplemented
        return self.shape == other.shape and np.array_equal(self.data, other.data)

    __hash__ = None

    def __repr__(self):
        kind = "scalar" if self.channels is None else f"{self.channels}-channel"
        return f"Grid({self.width}x{self.height}, {kind}, dtype={self.data.dtype})"

    def copy(self):
        return Grid(self.data.copy(), self.width, self.height)

    def to_array(self):
        return self.data.reshape((self.height, self.width) + self.data.shape[1:]).copy()

    def fill(self, value):
        """Set every element to ``value`` (a scalar, or one entry per channel)."""
        value = np.asarray(value)
        element_shape = self.data.shape[1:]
        if value.ndim > len(element_shape) or value.shape != element_shape[len(element_shape) - value.ndim:]:
            raise InvalidInput(f"Fill value of shape {value.shape} does not fit elements of shape {element_shape}")
        self.data[...] = value
        return self

    def check_same_size(self, other):
        if self.shape != other.shape:
            raise InvalidInput(
                f"Grid size mismatch: {self.width}x{self.height} vs {other.width}x{other.height}"
            )

    def convert(self, converter):
        """
        Map every element through ``converter`` into a new grid.

        ``converter`` receives a read-only view of all elements at once
        (shape ``(count,)`` or ``(count, channels)``) and must act element-wise,
        returning an array whose first axis still has ``count`` entries.
        """
        view = self.data.view()
        view.flags.writeable = False
        converted = np.array(converter(view))
        if converted.ndim == 0 or converted.shape[0] != self.count:
            raise InvalidInput(
                f"Converter returned shape {converted.shape}, expected {self.count} elements"
            )
        return Grid(converted, self.width, self.height)

    def normalize(self):
        normalize(self)
        return self


def normalize(grid):
    """
    Rescale a scalar grid in place so its minimum maps to 0 and its maximum to 1.

    A flat grid (max == min) becomes all zeros.
    """
    if grid.channels is not None:
        raise InvalidInput("Only scalar grids can be normalized")
    if not np.issubdtype(grid.data.dtype, np.floating):
        grid.data = grid.data.astype(np.float64)

    values = grid.data
    lo, hi = values.min(), values.max()
    if not hi > lo:
        values[...] = 0.0
        return grid

    with np.errstate(over="ignore"):
        span = hi - lo
    if not np.isfinite(span):
        # the range overflows; halving keeps the ratios and fits in a float
        values *= 0.5
        lo, span = lo * 0.5, hi * 0.5 - lo * 0.5
    values -= lo
    values /= span
    return grid
