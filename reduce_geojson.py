#!/usr/bin/env python3
"""
Reduce the size of GeoJSON FeatureCollections by dropping properties and rounding coordinates.

Every feature keeps its geometry type and its position in the collection. Only two
things change:

- properties whose key is not in the allowed set are removed
- every coordinate is rounded to a fixed number of decimal places

ROUNDING:
Coordinates are rounded half away from zero on their shortest decimal form, so
2.675 becomes 2.68 and -2.675 becomes -2.68 at precision 2. Python's built-in
round() works on the binary value (round(2.675, 2) == 2.67) and is not used.

Precision guide (degrees):
  6 decimals  ~0.11 m
  5 decimals  ~1.1 m
  4 decimals  ~11 m
  3 decimals  ~110 m

EMPTY PROPERTIES:
A feature whose properties are all filtered out is written with "properties": {}.
The member is never omitted (RFC 7946 requires it on every Feature).

Usage: python3 reduce_geojson.py input.geojson [more.geojson ...] [-p 5] [-k name -k id] [-o ./output]
"""

import argparse
import copy
import json
import math
import os
import sys
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Optional, List, Iterable, FrozenSet, NamedTuple

from geojson_utils import format_file_size, calculate_percentage_reduction, encode_compact_json, get_file_size

# Configuration - defaults for the command line
DEFAULT_PRECISION = 6
OUTPUT_DIR = "./output"

# Nesting depth of the "coordinates" array per geometry type (0 = a single position)
GEOMETRY_DEPTHS = {
    'Point': 0,
    'LineString': 1,
    'MultiPoint': 1,
    'Polygon': 2,
    'MultiLineString': 2,
    'MultiPolygon': 3,
}


class ReductionError(Exception):
    """Base class for all reduction failures."""


class InvalidPolicyError(ReductionError, ValueError):
    """Raised when a reduction policy cannot be applied (e.g. negative precision)."""


class UnsupportedGeometryError(ReductionError):
    """Raised for a geometry type outside the GeoJSON standard set."""

    def __init__(self, geometry_type: Any):
        self.geometry_type = geometry_type
        super().__init__(f"Unsupported geometry type: {geometry_type!r}")


class MalformedGeoJSONError(ReductionError, ValueError):
    """Raised when the input does not have the structure of a FeatureCollection."""


class ReductionPolicy(NamedTuple):
    """Precision and property keys governing one reduction call."""
    precision: int
    allowed_keys: FrozenSet[str]

    @classmethod
    def create(cls, precision: int, allowed_keys: Iterable[str] = ()) -> 'ReductionPolicy':
        """Build a validated policy from any iterable of keys."""
        policy = cls(precision, frozenset(allowed_keys))
        validate_policy(policy)
        return policy


def validate_policy(policy: ReductionPolicy) -> None:
    validate_precision(policy.precision)
    for key in policy.allowed_keys:
        if not isinstance(key, str):
            raise InvalidPolicyError(f"Property keys must be strings, got {key!r}")


def validate_precision(precision: Any) -> None:
    # bool is an int subclass but never a meaningful precision
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InvalidPolicyError(f"Precision must be an integer, got {precision!r}")
    if precision < 0:
        raise InvalidPolicyError(f"Precision must be non-negative, got {precision}")


def round_coordinate(value: float, precision: int) -> float:
    """
    Round a single number to `precision` decimal places, half away from zero.

    Args:
        value: Coordinate component (int or float)
        precision: Number of decimal places to keep

    Returns:
        The rounded value as a float whose repr has at most `precision` decimals
    """
    if not math.isfinite(value):
        return float(value)

    decimal_value = Decimal(repr(value))
    # Already short enough, nothing to round
    if -decimal_value.as_tuple().exponent <= precision:
        return float(value)

    quantum = Decimal(1).scaleb(-precision)
    return float(decimal_value.quantize(quantum, rounding=ROUND_HALF_UP))


def truncate_coordinates(coordinates: Any, precision: int, depth: Optional[int] = None) -> List[Any]:
    """
    Round every number in a nested coordinate array.

    Args:
        coordinates: A position ([x, y] or [x, y, z]) or any nesting of positions
        precision: Number of decimal places to keep
        depth: Expected nesting depth (0 = position); None accepts any depth

    Returns:
        A new nested list with the same shape
    """
    if not isinstance(coordinates, (list, tuple)):
        raise MalformedGeoJSONError(f"Expected a coordinate array, got {coordinates!r}")

    if depth == 0 or (depth is None and coordinates and _is_number(coordinates[0])):
        # Single position [x, y] or [x, y, z]
        if not coordinates or not all(_is_number(c) for c in coordinates):
            raise MalformedGeoJSONError(f"Invalid position: {coordinates!r}")
        return [round_coordinate(c, precision) for c in coordinates]

    child_depth = None if depth is None else depth - 1
    return [truncate_coordinates(coord, precision, child_depth) for coord in coordinates]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def truncate_geometry(geometry: Optional[Dict[str, Any]], precision: int) -> Optional[Dict[str, Any]]:
    """
    Return a copy of a GeoJSON geometry with all coordinates rounded.

    GeometryCollection members are truncated recursively. A null geometry stays null.

    Args:
        geometry: GeoJSON geometry object, or None
        precision: Number of decimal places to keep

    Returns:
        New geometry object of the same type
    """
    validate_precision(precision)
    return _truncate_geometry(geometry, precision)


def _truncate_geometry(geometry: Optional[Dict[str, Any]], precision: int) -> Optional[Dict[str, Any]]:
    if geometry is None:
        return None
    if not isinstance(geometry, dict):
        raise MalformedGeoJSONError(f"Geometry must be an object, got {geometry!r}")

    geometry_type = geometry.get('type')

    if geometry_type == 'GeometryCollection':
        members = geometry.get('geometries')
        if not isinstance(members, list):
            raise MalformedGeoJSONError("GeometryCollection is missing its 'geometries' list")
        truncated_geometry = _copy_members(geometry, skip=('geometries', 'bbox'))
        truncated_geometry['geometries'] = [_truncate_geometry(member, precision) for member in members]
    elif geometry_type in GEOMETRY_DEPTHS:
        if 'coordinates' not in geometry:
            raise MalformedGeoJSONError(f"{geometry_type} geometry has no coordinates")
        truncated_geometry = _copy_members(geometry, skip=('coordinates', 'bbox'))
        truncated_geometry['coordinates'] = truncate_coordinates(
            geometry['coordinates'], precision, GEOMETRY_DEPTHS[geometry_type]
        )
    else:
        raise UnsupportedGeometryError(geometry_type)

    if 'bbox' in geometry:
        truncated_geometry['bbox'] = truncate_coordinates(geometry['bbox'], precision, 0)

    return truncated_geometry


def _copy_members(obj: Dict[str, Any], skip: Iterable[str]) -> Dict[str, Any]:
    """Deep copy every member of a GeoJSON object except the ones in `skip`."""
    return {key: copy.deepcopy(value) for key, value in obj.items() if key not in skip}


def filter_properties(properties: Optional[Dict[str, Any]], allowed_keys: Iterable[str]) -> Dict[str, Any]:
    """
    Keep only the allowed keys of a feature's properties.

    Values are not copied or inspected. Allowed keys missing from the source are
    simply absent from the result, and None properties give an empty dict.
    """
    if properties is None:
        return {}
    if not isinstance(properties, dict):
        raise MalformedGeoJSONError(f"Feature properties must be an object or null, got {properties!r}")

    if not isinstance(allowed_keys, (set, frozenset)):
        allowed_keys = set(allowed_keys)

    return {key: value for key, value in properties.items() if key in allowed_keys}


def reduce_feature(feature: Dict[str, Any], policy: ReductionPolicy) -> Dict[str, Any]:
    """Truncate one feature's geometry and filter its properties."""
    validate_policy(policy)
    return _reduce_feature(feature, policy)


def _reduce_feature(feature: Dict[str, Any], policy: ReductionPolicy) -> Dict[str, Any]:
    if not isinstance(feature, dict):
        raise MalformedGeoJSONError(f"Feature must be an object, got {feature!r}")
    if feature.get('type', 'Feature') != 'Feature':
        raise MalformedGeoJSONError(f"Expected a Feature, got type {feature.get('type')!r}")

    reduced_feature = {'type': 'Feature'}

    # Include ID if present
    if 'id' in feature:
        reduced_feature['id'] = feature['id']
    if 'bbox' in feature:
        reduced_feature['bbox'] = truncate_coordinates(feature['bbox'], policy.precision, 0)

    reduced_feature['geometry'] = _truncate_geometry(feature.get('geometry'), policy.precision)
    reduced_feature['properties'] = filter_properties(feature.get('properties'), policy.allowed_keys)

    # Foreign members travel along untouched
    reduced_feature.update(
        _copy_members(feature, skip=('type', 'id', 'bbox', 'geometry', 'properties'))
    )

    return reduced_feature


def reduce_feature_collection(collection: Dict[str, Any], policy: ReductionPolicy) -> Dict[str, Any]:
    """
    Reduce a GeoJSON FeatureCollection according to a policy.

    The input is never modified. Features keep their order; every feature gets a
    rounded geometry and a filtered properties object (empty dict when nothing is kept).

    Args:
        collection: GeoJSON FeatureCollection
        policy: Precision and allowed property keys

    Returns:
        A new FeatureCollection

    Raises:
        InvalidPolicyError: precision is negative or not an integer
        UnsupportedGeometryError: a geometry type outside the GeoJSON standard
        MalformedGeoJSONError: the collection or one of its features is not well formed
    """
    validate_policy(policy)
    features = get_features(collection)

    reduced = {
        'type': 'FeatureCollection',
        'features': [_reduce_feature(feature, policy) for feature in features]
    }

    if 'bbox' in collection:
        reduced['bbox'] = truncate_coordinates(collection['bbox'], policy.precision, 0)

    return reduced


def get_features(collection: Dict[str, Any]) -> List[Any]:
    """Return the 'features' list of a FeatureCollection, checking its structure."""
    if not isinstance(collection, dict):
        raise MalformedGeoJSONError("Input is not a GeoJSON object")
    if collection.get('type', 'FeatureCollection') != 'FeatureCollection':
        raise MalformedGeoJSONError(f"Input is not a FeatureCollection (type {collection.get('type')!r})")

    features = collection.get('features')
    if not isinstance(features, list):
        raise MalformedGeoJSONError("FeatureCollection is missing its 'features' list")
    return features


def collect_property_keys(collection: Dict[str, Any]) -> List[str]:
    """List the distinct property keys of a collection in first-seen order."""
    keys = {}
    for feature in get_features(collection):
        if not isinstance(feature, dict):
            raise MalformedGeoJSONError(f"Feature must be an object, got {feature!r}")
        properties = feature.get('properties')
        if properties is None:
            continue
        if not isinstance(properties, dict):
            raise MalformedGeoJSONError(f"Feature properties must be an object or null, got {properties!r}")
        for key in properties:
            keys.setdefault(key, None)
    return list(keys)


def load_feature_collection(filepath: str) -> Dict[str, Any]:
    """Load a GeoJSON FeatureCollection from disk."""
    with open(filepath, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise MalformedGeoJSONError(f"{filepath} is not valid JSON: {e}") from e
        except UnicodeDecodeError as e:
            raise MalformedGeoJSONError(f"{filepath} is not UTF-8 encoded: {e}") from e

    # Validate GeoJSON structure
    if not isinstance(data, dict) or data.get('type') != 'FeatureCollection':
        raise MalformedGeoJSONError(f"{filepath} is not a FeatureCollection")

    return data


def write_feature_collection(data: Dict[str, Any], filepath: str) -> int:
    """Write compact GeoJSON and return the number of bytes written."""
    output_dir = os.path.dirname(filepath)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    try:
        encoded = encode_compact_json(data)
    except ValueError as e:
        # NaN and Infinity have no JSON representation
        raise MalformedGeoJSONError(f"Cannot write {filepath}: {e}") from e

    with open(filepath, 'wb') as f:
        f.write(encoded)

    return len(encoded)


def reduce_file(input_file: str, output_dir: str, precision: int,
                keep: Optional[Iterable[str]] = None, drop: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Reduce one GeoJSON file and write the result into `output_dir`.

    When `keep` is None every property key found in the file is retained;
    keys in `drop` are removed either way.

    Returns:
        Summary with feature count, kept keys, sizes and reduction percentage
    """
    data = load_feature_collection(input_file)

    allowed_keys = collect_property_keys(data) if keep is None else list(keep)
    dropped = set(drop)
    allowed_keys = [key for key in allowed_keys if key not in dropped]

    policy = ReductionPolicy.create(precision, allowed_keys)
    reduced = reduce_feature_collection(data, policy)

    output_file = os.path.join(output_dir, os.path.basename(input_file))
    original_size = get_file_size(input_file)
    reduced_size = write_feature_collection(reduced, output_file)

    return {
        'output_file': output_file,
        'feature_count': len(reduced['features']),
        'kept_keys': allowed_keys,
        'original_size': original_size,
        'reduced_size': reduced_size,
        'reduction': calculate_percentage_reduction(original_size, reduced_size),
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Drop GeoJSON feature properties and round coordinates to shrink files."
    )
    parser.add_argument('inputs', nargs='+', help="GeoJSON FeatureCollection file(s)")
    parser.add_argument('-o', '--output-dir', default=OUTPUT_DIR,
                        help=f"Directory for reduced files (default: {OUTPUT_DIR})")
    parser.add_argument('-p', '--precision', type=int, default=DEFAULT_PRECISION,
                        help=f"Decimal places to keep in coordinates (default: {DEFAULT_PRECISION})")
    parser.add_argument('-k', '--keep', action='append', metavar='KEY',
                        help="Property key to keep (repeatable; default: keep every key)")
    parser.add_argument('-d', '--drop', action='append', default=[], metavar='KEY',
                        help="Property key to remove (repeatable)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    print(f"Output directory: {args.output_dir}")
    print(f"Coordinate precision: {args.precision} decimal places")

    for input_file in args.inputs:
        print(f"\nReducing {input_file}")
        try:
            summary = reduce_file(input_file, args.output_dir, args.precision, args.keep, args.drop)
        except (ReductionError, OSError) as e:
            print(f"Error: {e}")
            return 1

        reduction = summary['reduction']
        reduction_text = f"{reduction:.1f}%" if reduction is not None else "n/a"
        kept = ", ".join(summary['kept_keys']) or "(none)"

        print(f"  Features: {summary['feature_count']}")
        print(f"  Kept properties: {kept}")
        print(f"  Size: {format_file_size(summary['original_size'])} -> "
              f"{format_file_size(summary['reduced_size'])} ({reduction_text} reduction)")
        print(f"  Wrote {summary['output_file']}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
