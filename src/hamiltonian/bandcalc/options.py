from __future__ import annotations
import math
from dataclasses import dataclass, fields
from typing import Any, Callable
from ..base.aux import yaml_parser

DEFAULT_THRESHOLD = 0.4


@dataclass(slots=True)
class BandOptions:
    """Knobs of the diagonalize-knit-patch band builder.

    eigensolver: ``matrix -> (energies, states)``; dense diagonalization if None
    mapping, postlift: mesh vertex -> Bloch phases transforms
    defects: base-mesh points where band touchings are expected
    patches: maximum number of extra columns inserted to resolve dislocations
    degtol: energy tolerance for degeneracy grouping (sqrt(eps) if None)
    threshold: squared singular value above which two subspaces connect
    """
    eigensolver: Callable | None = None
    mapping: Callable | None = None
    postlift: Callable | None = None
    defects: tuple = ()
    patches: int | float = 0
    degtol: float | None = None
    threshold: float = DEFAULT_THRESHOLD
    warn: bool = True
    showprogress: bool = False
    processes: int = 1

    def __post_init__(self):
        self.defects = tuple(tuple(float(x) for x in d) for d in self.defects)
        if self.patches != math.inf:
            if self.patches < 0 or int(self.patches) != self.patches:
                raise ValueError(f"patches must be a non-negative integer or inf, got {self.patches}")
            self.patches = int(self.patches)
        if self.degtol is not None and self.degtol < 0:
            raise ValueError(f"degtol must be non-negative, got {self.degtol}")
        if not 0 < self.threshold <= 1:
            raise ValueError(f"threshold must lie in (0, 1], got {self.threshold}")
        if self.processes < 1:
            raise ValueError(f"processes must be at least 1, got {self.processes}")

    def replace(self, **overrides: Any) -> "BandOptions":
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        unknown = set(overrides) - set(values)
        if unknown:
            raise ValueError(f"Unknown band options: {sorted(unknown)}")
        values.update(overrides)
        return BandOptions(**values)

    @classmethod
    def from_yaml(cls, source) -> "BandOptions":
        """Read the scalar options (no callables) from YAML text, a path or a dict."""
        cfg = dict(yaml_parser(source))
        allowed = {"defects", "patches", "degtol", "threshold", "warn", "showprogress", "processes"}
        unknown = set(cfg) - allowed
        if unknown:
            raise ValueError(f"Unknown band options in config: {sorted(unknown)}")
        if isinstance(cfg.get("patches"), str) and cfg["patches"].lower() in ("inf", "infinity"):
            cfg["patches"] = math.inf
        return cls(**cfg)
