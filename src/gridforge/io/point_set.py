"""
Point Set Loading Module

Loads scattered (x, y, z) samples from text and LAS/LAZ files into an
immutable PointSet, and generates synthetic survey data for testing.
"""

from __future__ import annotations

import logging
import re
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from ..core.validation import EmptyResultError, ValidationError, validate_points_array

try:
    import laspy
    HAS_LASPY = True
except ImportError:
    HAS_LASPY = False

logger = logging.getLogger(__name__)

# Header names recognised for each coordinate column
_X_HEADER = re.compile(r"^(x|lon|lng|long|east|e$|xcoor)", re.IGNORECASE)
_Y_HEADER = re.compile(r"^(y|lat|north|n$|ycoor)", re.IGNORECASE)
_Z_HEADER = re.compile(r"^(z|elev|height|alt|val|depth|zcoor)", re.IGNORECASE)


def _extract_crs_from_las(las) -> Optional[str]:
    """
    Extract CRS from LAS file VLRs (Variable Length Records).

    Checks OGC WKT (LAS 1.4+), legacy WKT (LAS 1.0-1.3) and finally the
    GeoTIFF key directory for a projected or geographic EPSG code.

    Returns:
        CRS as WKT string or EPSG code string (e.g., "EPSG:32610"), or None
    """
    vlrs = getattr(las, "vlrs", None)
    if not vlrs:
        return None

    for vlr in vlrs:
        is_wkt = (
            (vlr.user_id == "LASF_WKT" and vlr.record_id == 1) or
            (vlr.user_id == "LASF_Projection" and vlr.record_id == 2112)
        )
        if not is_wkt:
            continue
        try:
            wkt = vlr.record_data.decode("utf-8").rstrip("\x00")
        except (AttributeError, UnicodeDecodeError):
            continue
        if wkt.strip():
            return wkt

    for vlr in vlrs:
        if vlr.user_id != "LASF_Projection" or vlr.record_id != 34735:
            continue
        data = getattr(vlr, "record_data", b"") or b""
        if len(data) < 8:
            continue
        # GeoKeyDirectoryTag: 4-short header, then 4-short entries
        num_keys = struct.unpack("<H", data[6:8])[0]
        offset = 8
        for _ in range(num_keys):
            if offset + 8 > len(data):
                break
            key_id, tiff_tag, _count, value = struct.unpack("<HHHH", data[offset:offset + 8])
            # ProjectedCSTypeGeoKey = 3072, GeographicTypeGeoKey = 2048
            if key_id in (3072, 2048) and tiff_tag == 0:
                return f"EPSG:{value}"
            offset += 8

    return None


@dataclass(frozen=True)
class PointSet:
    """
    Immutable set of scattered samples.

    Attributes:
        xyz: Nx3 read-only array of (x, y, z)
        metadata: Free-form information about the source (path, format, ...)
        crs: Coordinate reference system (EPSG code or WKT)
    """
    xyz: np.ndarray
    metadata: dict = field(default_factory=dict)
    crs: Optional[str] = None

    def __post_init__(self):
        arr = validate_points_array(self.xyz, "point set").copy()
        arr.setflags(write=False)
        object.__setattr__(self, "xyz", arr)

    def __len__(self) -> int:
        return len(self.xyz)

    @property
    def num_points(self) -> int:
        return len(self.xyz)

    @property
    def x(self) -> np.ndarray:
        return self.xyz[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.xyz[:, 1]

    @property
    def z(self) -> np.ndarray:
        return self.xyz[:, 2]

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Get (min_xyz, max_xyz) bounding box."""
        if len(self.xyz) == 0:
            raise EmptyResultError("Point set is empty; it has no bounds")
        return np.min(self.xyz, axis=0), np.max(self.xyz, axis=0)

    @property
    def extent(self) -> Tuple[float, float, float, float]:
        """Plan extent as (min_x, min_y, max_x, max_y)."""
        lo, hi = self.bounds
        return float(lo[0]), float(lo[1]), float(hi[0]), float(hi[1])

    def summary(self) -> dict:
        lo, hi = self.bounds
        return {
            "num_points": self.num_points,
            "min_x": float(lo[0]), "max_x": float(hi[0]),
            "min_y": float(lo[1]), "max_y": float(hi[1]),
            "min_z": float(lo[2]), "max_z": float(hi[2]),
            "crs": self.crs,
        }


class PointSetLoader:
    """
    Factory for loading point sets from various file formats.

    Supported formats:
        - XYZ/TXT (whitespace separated: x y z per line)
        - CSV (comma separated, optional header row)
        - LAS/LAZ (requires laspy)
    """

    @classmethod
    def load(cls, filepath: Union[str, Path], **kwargs) -> PointSet:
        """
        Load a point set from file, auto-detecting format by extension.

        Args:
            filepath: Path to the sample file
            **kwargs: Format-specific options

        Returns:
            PointSet instance

        Raises:
            ValidationError: For unsupported extensions or malformed content
            FileNotFoundError: If the file does not exist
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        loaders = {
            ".xyz": cls._load_xyz,
            ".txt": cls._load_xyz,
            ".csv": cls._load_csv,
            ".las": cls._load_las,
            ".laz": cls._load_las,
        }

        if suffix not in loaders:
            raise ValidationError(
                f"Unsupported format: {suffix or '(none)'}. "
                f"Expected one of {', '.join(sorted(loaders))}"
            )
        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        points = loaders[suffix](filepath, **kwargs)
        logger.info("Loaded %d points from %s", len(points), filepath.name)
        return points

    @classmethod
    def _load_xyz(cls, filepath: Path, skip_header: int = 0, **kwargs) -> PointSet:
        """
        Load whitespace-separated text.

        Expected format: x y z [extra columns ignored] per line
        """
        try:
            data = np.loadtxt(filepath, skiprows=skip_header, ndmin=2)
        except ValueError as e:
            raise ValidationError(f"Could not parse {filepath.name}: {e}") from e
        return PointSet(
            xyz=cls._columns(data, (0, 1, 2), filepath),
            metadata={"source": str(filepath), "format": "xyz"},
        )

    @classmethod
    def _load_csv(cls, filepath: Path, delimiter: str = ",", **kwargs) -> PointSet:
        """
        Load comma-separated text.

        The first row is treated as a header unless most of its fields are
        numeric. With a header, X/Y/Z columns are matched by name (x, east,
        lon, ...); otherwise the first three columns are used, or columns
        1-3 when four columns start with an integer point number.
        """
        with open(filepath, "r", encoding="utf-8") as f:
            lines = [line for line in f.read().splitlines() if line.strip()]
        if not lines:
            raise EmptyResultError(f"{filepath.name} contains no data")

        first = [c.strip().strip("\"'") for c in lines[0].split(delimiter)]
        numeric = sum(1 for c in first if _is_number(c))
        has_header = numeric <= len(first) * 0.5

        if has_header:
            columns = cls._header_columns(first)
            body = lines[1:]
        else:
            columns = (0, 1, 2)
            if len(first) == 4 and all(
                _is_integer(line.split(delimiter)[0].strip()) for line in lines[:10]
            ):
                columns = (1, 2, 3)
            body = lines

        if not body:
            raise EmptyResultError(f"{filepath.name} has a header but no data rows")

        try:
            data = np.loadtxt(body, delimiter=delimiter, usecols=columns, ndmin=2)
        except ValueError as e:
            raise ValidationError(f"Could not parse {filepath.name}: {e}") from e

        return PointSet(
            xyz=data.astype(np.float64),
            metadata={"source": str(filepath), "format": "csv", "header": has_header},
        )

    @staticmethod
    def _header_columns(headers: List[str]) -> Tuple[int, int, int]:
        found = []
        for pattern in (_X_HEADER, _Y_HEADER, _Z_HEADER):
            idx = next((i for i, h in enumerate(headers) if pattern.match(h)), None)
            found.append(idx)
        if None in found:
            if len(headers) < 3:
                raise ValidationError(f"CSV needs X, Y and Z columns, got headers {headers}")
            logger.warning("Could not match X/Y/Z headers in %s; using the first three columns", headers)
            return 0, 1, 2
        return tuple(found)

    @staticmethod
    def _columns(data: np.ndarray, columns, filepath: Path) -> np.ndarray:
        if data.size == 0:
            return np.zeros((0, 3))
        if data.shape[1] < 3:
            raise ValidationError(f"{filepath.name} must have at least 3 columns")
        return data[:, list(columns)].astype(np.float64)

    @classmethod
    def _load_las(cls, filepath: Path, **kwargs) -> PointSet:
        """Load LAS/LAZ file using laspy."""
        if not HAS_LASPY:
            raise ImportError(
                "laspy is required to load LAS/LAZ files. "
                "Install with: pip install gridforge[las] (plus lazrs for LAZ)"
            )

        with laspy.open(filepath) as reader:
            las = reader.read()

        xyz = np.column_stack([las.x, las.y, las.z]).astype(np.float64)
        metadata = {"source": str(filepath), "format": filepath.suffix.lower().lstrip(".")}
        if hasattr(las, "classification"):
            metadata["classes"] = sorted(int(c) for c in np.unique(las.classification))

        return PointSet(xyz=xyz, metadata=metadata, crs=_extract_crs_from_las(las))


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return text != ""


def _is_integer(text: str) -> bool:
    return _is_number(text) and float(text).is_integer()


def generate_sample_points(count: int = 500, seed: Optional[int] = None) -> PointSet:
    """
    Generate a synthetic survey for testing.

    Points are scattered uniformly over a 1000 x 1000 area with a rolling
    surface around elevation 100, plus up to 10 units of noise. Coordinates
    are rounded to 2 decimals.

    Args:
        count: Number of points
        seed: Random seed for reproducibility

    Returns:
        PointSet with synthetic samples
    """
    if count < 0:
        raise ValidationError(f"count must be non-negative, got {count}")

    rng = np.random.default_rng(seed)
    x = rng.random(count) * 1000
    y = rng.random(count) * 1000
    z = (
        50 * np.sin(x / 150) * np.cos(y / 200)
        + 30 * np.sin((x + y) / 100)
        + rng.random(count) * 10
        + 100
    )
    xyz = np.round(np.column_stack([x, y, z]), 2)
    return PointSet(xyz=xyz, metadata={"source": "synthetic", "seed": seed})
