"""Permutation testing with threshold-free cluster enhancement.

Each permutation relabels (or sign-flips) the subjects of the design matrix,
recomputes the contrast statistic, enhances it with TFCE on both sides, and
records the maximum enhanced value of each side. The maxima of all
permutations form the null distributions used for FWE-corrected p-values.
The first permutation is always the identity: its images are the observed
result and it does not contribute to the null distributions.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Iterator, List, Optional

import numpy as np

from permutix.config.validator import ConfigValidator
from permutix.connectivity.adjacency import ConnectivityGraph
from permutix.statistics.glm import check_inputs, compute_statistic
from permutix.statistics.tfce import enhance_both
from permutix.utils.exceptions import ConfigurationError, PipelineError
from permutix.utils.logging import timer
from permutix.utils.parallel import WorkerPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PermutationDescriptor:
    """One relabelling of the subjects.

    Attributes:
        index: Position in the permutation sequence.
        order: Row order applied to the design matrix, or None.
        signs: Sign applied to each design row, or None.
        is_identity: True for the unpermuted data.
    """
    index: int
    order: Optional[np.ndarray] = None
    signs: Optional[np.ndarray] = None
    is_identity: bool = False

    def apply_to(self, design: np.ndarray) -> np.ndarray:
        """Permuted copy of ``design`` (the design itself for the identity)."""
        if self.is_identity:
            return design
        if self.order is not None:
            design = design[self.order]
        if self.signs is not None:
            design = design * self.signs[:, None]
        return design


class PermutationGenerator:
    """Thread-safe source of permutation descriptors.

    Issues the identity first, then random permutations of the subject
    labels, or random sign flips when ``sign_flip`` is set. Random
    descriptors may repeat.

    Args:
        n_permutations: Total number of descriptors, the identity included.
        n_subjects: Number of design matrix rows.
        sign_flip: Draw sign flips instead of label permutations.
        random_state: Seed for a reproducible sequence. None seeds from the
            operating system.
    """

    def __init__(
        self,
        n_permutations: int,
        n_subjects: int,
        sign_flip: bool = False,
        random_state: Optional[int] = None,
    ):
        if n_permutations < 1:
            raise ConfigurationError(
                f"n_permutations must be at least 1, got {n_permutations}"
            )
        if n_subjects < 1:
            raise ConfigurationError(f"n_subjects must be at least 1, got {n_subjects}")

        self.n_permutations = int(n_permutations)
        self.n_subjects = int(n_subjects)
        self.sign_flip = sign_flip

        self._rng = np.random.default_rng(random_state)
        self._lock = threading.Lock()
        self._issued = 0

    def __len__(self) -> int:
        return self.n_permutations

    @property
    def remaining(self) -> int:
        with self._lock:
            return self.n_permutations - self._issued

    def next(self) -> Optional[PermutationDescriptor]:
        """Next descriptor, or None once all of them have been issued."""
        with self._lock:
            if self._issued >= self.n_permutations:
                return None

            index = self._issued
            self._issued += 1

            if index == 0:
                return PermutationDescriptor(index=0, is_identity=True)
            if self.sign_flip:
                signs = self._rng.choice(np.array([-1.0, 1.0]), size=self.n_subjects)
                return PermutationDescriptor(index=index, signs=signs)
            return PermutationDescriptor(index=index, order=self._rng.permutation(self.n_subjects))

    def __iter__(self) -> Iterator[PermutationDescriptor]:
        while (descriptor := self.next()) is not None:
            yield descriptor


@dataclass
class PipelineResult:
    """Output of a completed permutation run.

    Attributes:
        statistic: Observed contrast statistic per node.
        tfce_pos: Observed positive-going enhanced image.
        tfce_neg: Observed negative-going enhanced image.
        null_pos: Maximum positive enhanced value of each permutation.
        null_neg: Maximum negative enhanced value of each permutation.
    """
    statistic: np.ndarray
    tfce_pos: np.ndarray
    tfce_neg: np.ndarray
    null_pos: np.ndarray
    null_neg: np.ndarray

    @property
    def n_permutations(self) -> int:
        """Number of permutations, the identity included."""
        return self.null_pos.size + 1


class PermutationAccumulator:
    """Shared state of a run: the null distributions and the observed slot.

    Every update goes through ``record`` under a single lock.
    """

    def __init__(self, n_permutations: int, progress_interval: int = 1000):
        self.n_permutations = n_permutations
        self.progress_interval = progress_interval

        self._lock = threading.Lock()
        self._null_pos: List[float] = []
        self._null_neg: List[float] = []
        self._observed = None
        self._completed = 0

    def record(
        self,
        descriptor: PermutationDescriptor,
        statistic: np.ndarray,
        tfce_pos: np.ndarray,
        tfce_neg: np.ndarray,
    ) -> None:
        """Store the outcome of one permutation.

        ``run_pipeline`` issues the identity exactly once; the duplicate
        check protects callers driving an accumulator by hand.

        Raises:
            PipelineError: If the identity permutation is recorded twice.
        """
        with self._lock:
            if descriptor.is_identity:
                if self._observed is not None:
                    raise PipelineError("Observed result written more than once")
                self._observed = (statistic, tfce_pos, tfce_neg)
            else:
                self._null_pos.append(float(tfce_pos.max()))
                self._null_neg.append(float(tfce_neg.max()))

            self._completed += 1
            if self._completed % self.progress_interval == 0:
                logger.info(f"  Completed {self._completed}/{self.n_permutations} permutations")

    def result(self) -> PipelineResult:
        """Freeze the accumulated values.

        Raises:
            PipelineError: If the run is incomplete.
        """
        with self._lock:
            if self._observed is None:
                raise PipelineError("Identity permutation was never processed")
            if self._completed != self.n_permutations:
                raise PipelineError(
                    f"Only {self._completed} of {self.n_permutations} permutations completed"
                )

            statistic, tfce_pos, tfce_neg = self._observed
            return PipelineResult(
                statistic=statistic,
                tfce_pos=tfce_pos,
                tfce_neg=tfce_neg,
                null_pos=np.array(self._null_pos),
                null_neg=np.array(self._null_neg),
            )


def run_pipeline(
    data: np.ndarray,
    design: np.ndarray,
    contrast: np.ndarray,
    graph: ConnectivityGraph,
    n_permutations: int = 5000,
    dh: float = 0.1,
    E: float = 0.5,
    H: float = 2.0,
    n_workers: Optional[int] = None,
    sign_flip: bool = False,
    random_state: Optional[int] = None,
    progress_interval: int = 1000,
) -> PipelineResult:
    """Run every permutation on a pool of worker threads.

    Args:
        data: Data matrix, shape (n_nodes, n_subjects), rows in graph order.
        design: Design matrix, shape (n_subjects, n_regressors).
        contrast: Contrast vector.
        graph: Connectivity graph shared by all workers.
        n_permutations: Number of permutations, the identity included.
        dh: TFCE height step.
        E: TFCE extent exponent.
        H: TFCE height exponent.
        n_workers: Number of worker threads. None uses all cores.
        sign_flip: Use sign flips instead of label permutations.
        random_state: Seed of the permutation sequence.
        progress_interval: Log progress every this many permutations.

    Returns:
        PipelineResult with the observed images and both null distributions.

    Raises:
        ConfigurationError: If the inputs do not match each other or the
            graph, or the TFCE parameters are not positive.
        Exception: The first failure of any worker, after all have stopped.
    """
    data, design, contrast = check_inputs(data, design, contrast)

    validator = ConfigValidator()
    validator.validate_positive(dh, "dh")
    validator.validate_positive(E, "E")
    validator.validate_positive(H, "H")
    validator.raise_if_errors()

    if data.shape[0] != graph.n_nodes:
        raise ConfigurationError(
            f"Data matrix has {data.shape[0]} rows but the mask defines "
            f"{graph.n_nodes} nodes"
        )

    generator = PermutationGenerator(
        n_permutations,
        design.shape[0],
        sign_flip=sign_flip,
        random_state=random_state,
    )
    accumulator = PermutationAccumulator(n_permutations, progress_interval)

    def process(descriptor: PermutationDescriptor) -> None:
        statistic = compute_statistic(data, design, contrast, descriptor)
        tfce_pos, tfce_neg = enhance_both(statistic, graph, dh=dh, E=E, H=H)
        accumulator.record(descriptor, statistic, tfce_pos, tfce_neg)

    pool = WorkerPool(n_workers)

    logger.info(
        f"Running permutation test: {n_permutations} "
        f"{'sign flips' if sign_flip else 'permutations'}, "
        f"{design.shape[0]} subjects, {graph.n_nodes} nodes, {pool.n_workers} workers"
    )

    with timer(logger, f"Running {n_permutations} permutations"):
        pool.run(generator, process)

    return accumulator.result()
