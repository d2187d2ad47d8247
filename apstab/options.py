"""
APSTAB Run Options

Everything a stab run is configured with, independent of how it was
supplied (command line or code).
"""

from __future__ import annotations

import argparse
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from apstab.codec import ScalarType
from apstab.errors import MalformedInput
from apstab.intervals import IntervalSet, PointSet


logger = logging.getLogger(__name__)


@dataclass
class StabOptions:
    device: Optional[str] = None
    fsm_name: Optional[str] = None
    intervals_file: Optional[str] = None
    points_file: Optional[str] = None
    num_bytes: int = 4
    seed: int = 0
    num_intervals: int = 0
    num_points: int = 0
    max_chunk_size: Optional[int] = None
    real: bool = False
    signed: bool = False

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> StabOptions:
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in vars(args).items() if k in fields})

    @property
    def scalar_type(self) -> ScalarType:
        return ScalarType.from_flags(self.num_bytes, signed=self.signed, real=self.real)

    def validate(self) -> None:
        """Reject unusable options; warn about conflicting ones."""
        for label, path in (("intervals", self.intervals_file), ("points", self.points_file)):
            if path and not Path(path).exists():
                raise MalformedInput(f"Couldn't find the {label} file", source=path)
        if self.intervals_file and self.num_intervals > 0:
            logger.warning('"intervals" and "random-intervals" provided together; "random-intervals" will be ignored')
        if self.points_file and self.num_points > 0:
            logger.warning('"points" and "random-points" provided together; "random-points" will be ignored')
        if self.max_chunk_size is not None and self.max_chunk_size < self.num_bytes:
            raise MalformedInput(
                f"Maximum chunk size {self.max_chunk_size} is smaller than one {self.num_bytes}-byte point"
            )
        # Resolving the type raises UnsupportedWidth early
        self.scalar_type

    def load_intervals(self, rng: random.Random) -> IntervalSet:
        if self.intervals_file:
            return IntervalSet.from_file(self.intervals_file, self.scalar_type)
        if self.num_intervals > 0:
            return IntervalSet.random(self.num_intervals, self.scalar_type, rng)
        raise MalformedInput("No intervals provided")

    def load_points(self, rng: random.Random) -> PointSet:
        if self.points_file:
            return PointSet.from_file(self.points_file, self.scalar_type)
        if self.num_points > 0:
            return PointSet.random(self.num_points, self.scalar_type, rng)
        raise MalformedInput("No points provided")
