"""Dataset loader contract consumed by the optimizer."""

from typing import Callable, NamedTuple, Optional

from .factor_graph import NonlinearFactorGraph
from .noise import NoiseModel
from .values import Values


class Dataset(NamedTuple):
    """A problem ready to optimize: graph, initial estimate and the
    measurement noise model the loader used.

    ``anchored`` is set when the graph already fixes the gauge with its own
    priors, so no anchoring prior should be added.
    """

    graph: NonlinearFactorGraph
    initial: Values
    noise_model: Optional[NoiseModel] = None
    anchored: bool = False


# loader(name, path) -> Dataset; path None means the loader's default location
DatasetLoader = Callable[[str, Optional[str]], Dataset]
