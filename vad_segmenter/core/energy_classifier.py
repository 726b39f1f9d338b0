"""
Energy-based silence classification of analyser snapshots
"""
from typing import Sequence, Union

import numpy as np
import structlog

logger = structlog.get_logger(__name__)

# Byte frequency data is scaled to 0..255
MAX_MAGNITUDE = 255.0

Magnitudes = Union[np.ndarray, Sequence[float]]


class EnergyClassifier:
    """
    Fixed-threshold silence classifier

    Averages the byte-scaled frequency magnitudes of a snapshot, skipping the
    lowest bins where hum and breath noise live, normalizes the average to
    [0, 1] and compares it to the threshold. Stateless: identical snapshots
    always produce identical verdicts.
    """

    def __init__(self, threshold: float = 0.15, low_bin_skip: int = 4):
        if not 0.0 < threshold < 1.0:
            raise ValueError(f"threshold must be in (0, 1), got {threshold}")
        if low_bin_skip < 0:
            raise ValueError(f"low_bin_skip must be >= 0, got {low_bin_skip}")

        self.threshold = threshold
        self.low_bin_skip = low_bin_skip

        logger.debug(
            "EnergyClassifier initialized",
            threshold=threshold,
            low_bin_skip=low_bin_skip
        )

    def measure(self, magnitudes: Magnitudes) -> float:
        """
        Normalized energy of a snapshot

        Args:
            magnitudes: One value per frequency bin, conceptually 0-255

        Returns:
            Mean of bins [low_bin_skip:] divided by 255; 0.0 when no bins remain
        """
        values = np.asarray(magnitudes, dtype=np.float64)
        if values.ndim != 1:
            values = values.ravel()

        usable = values[self.low_bin_skip:]
        if usable.size == 0:
            return 0.0

        return float(usable.sum() / usable.size / MAX_MAGNITUDE)

    def is_silent(self, magnitudes: Magnitudes) -> bool:
        """Silence verdict for one snapshot"""
        return self.measure(magnitudes) < self.threshold

    def __repr__(self):
        return f"EnergyClassifier(threshold={self.threshold}, low_bin_skip={self.low_bin_skip})"
