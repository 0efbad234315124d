"""Error types raised by the raster algorithms and the detection pipeline."""

from __future__ import annotations


class PreconditionError(ValueError):
    """Input grid violates a contract (empty, multi-channel, non-binary...)."""


class CapacityExceededError(RuntimeError):
    """First labeling pass needed more provisional labels than allowed.

    The caller under-provisioned ``max_components`` for a densely
    fragmented image and must retry with a larger value or reject it.
    """

    def __init__(self, label_count: int, max_components: int) -> None:
        self.label_count = label_count
        self.max_components = max_components
        super().__init__(
            f"Current label count [{label_count}] exceeds maximum "
            f"no of components [{max_components}]"
        )
