"""Remote probes and the check registry that runs them."""

from sentinel.probes.probes import (
    ProbeFn,
    check_mirror_node,
    check_oracle,
    check_pool,
    check_rpc,
    check_service,
    check_staking,
    run_guarded,
    service_is_up,
)
from sentinel.probes.registry import CheckRegistry, build_default_registry

__all__ = [
    "CheckRegistry",
    "ProbeFn",
    "build_default_registry",
    "check_mirror_node",
    "check_oracle",
    "check_pool",
    "check_rpc",
    "check_service",
    "check_staking",
    "run_guarded",
    "service_is_up",
]
