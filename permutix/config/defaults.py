"""Default configuration dataclasses for Permutix."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class TFCEConfig:
    """Threshold-free cluster enhancement parameters.

    Attributes:
        dh: Height increment of the threshold integration.
        e: Extent exponent.
        h: Height exponent.
    """
    dh: float = 0.1
    e: float = 0.5
    h: float = 2.0


@dataclass
class PermutationConfig:
    """Configuration for a voxel-wise permutation test.

    Attributes:
        n_permutations: Number of permutations, the unpermuted data included.
        tfce: TFCE integration parameters.
        connectivity: Spatial neighbourhood size, 6 (faces) or 26 (corners).
        angle: Angular threshold in degrees between neighbouring orientations
            of the same voxel. Only used with a 4D mask.
        sign_flip: Permutation scheme. ``None`` picks sign flipping for
            intercept-only designs and label permutation otherwise.
        n_jobs: Number of worker threads. ``None`` or -1 uses all cores.
        random_state: Seed of the permutation sequence. ``None`` seeds from
            the operating system.
        progress_interval: Log progress every this many permutations.
        alpha: FWE level used when reporting significant nodes.
        output_prefix: Filename prefix used when saving results.
    """
    n_permutations: int = 5000
    tfce: TFCEConfig = field(default_factory=TFCEConfig)
    connectivity: int = 6
    angle: float = 12.0
    sign_flip: Optional[bool] = None
    n_jobs: Optional[int] = None
    random_state: Optional[int] = None
    progress_interval: int = 1000
    alpha: float = 0.05
    output_prefix: str = "permutix"

    def __post_init__(self):
        # Allow nested dictionaries from config files
        if isinstance(self.tfce, dict):
            self.tfce = TFCEConfig(**self.tfce)

    @property
    def use_26_connectivity(self) -> bool:
        return self.connectivity == 26

    def validate(self) -> None:
        """Validate configuration parameters.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        from permutix.config.validator import ConfigValidator

        validator = ConfigValidator()

        validator.validate_positive_int(self.n_permutations, "n_permutations")
        validator.validate_positive(self.tfce.dh, "tfce.dh")
        validator.validate_positive(self.tfce.e, "tfce.e")
        validator.validate_positive(self.tfce.h, "tfce.h")
        validator.validate_choice(self.connectivity, [6, 26], "connectivity")
        validator.validate_range(self.angle, 0.0, 90.0, "angle")
        validator.validate_choice(self.sign_flip, [None, True, False], "sign_flip")
        validator.validate_positive_int(self.progress_interval, "progress_interval")
        validator.validate_alpha(self.alpha, "alpha")

        validator.validate_n_jobs(self.n_jobs, "n_jobs")
        validator.validate_seed(self.random_state, "random_state")

        validator.raise_if_errors()
