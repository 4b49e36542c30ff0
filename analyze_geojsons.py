#!/usr/bin/env python3
"""
Summarize GeoJSON files before reducing them.

For every .geojson file in a directory this prints the feature count, the geometry
types, the number of coordinate points, how often each property key is used and the
file size. The property key list is what you pick --keep values from.

Usage: python3 analyze_geojsons.py [directory]
"""

import os
import sys
from collections import Counter
from typing import Dict, Any, List, Optional

import geojson

from geojson_utils import format_file_size, get_file_size, get_gzipped_size


def analyze_geojson(filepath: str) -> Dict[str, Any]:
    with open(filepath, 'r', encoding='utf-8') as f:
        data = geojson.load(f)
    return analyze_collection(data)


def analyze_collection(data: Dict[str, Any]) -> Dict[str, Any]:
    features = data.get('features', [])
    geom_types = Counter()
    property_keys = Counter()
    for feat in features:
        geom = feat.get('geometry') or {}
        gtype = geom.get('type', 'Unknown')
        geom_types[gtype] += 1
        property_keys.update(feat.get('properties') or {})
    return {
        'feature_count': len(features),
        'geometry_types': dict(geom_types),
        'point_count': count_total_points(data),
        'property_keys': dict(property_keys)
    }


def count_total_points(geojson_data: Dict[str, Any]) -> int:
    """Count total number of coordinate points in GeoJSON data."""
    total_points = 0

    for feature in geojson_data.get('features', []):
        total_points += count_geometry_points(feature.get('geometry'))

    return total_points


def count_geometry_points(geometry: Optional[Dict[str, Any]]) -> int:
    """Count points in a single geometry, descending into GeometryCollections."""
    if not geometry:
        return 0

    if geometry.get('type') == 'GeometryCollection':
        return sum(count_geometry_points(member) for member in geometry.get('geometries', []))

    return count_positions(geometry.get('coordinates', []))


def count_positions(coordinates: Any) -> int:
    if not coordinates:
        return 0
    if isinstance(coordinates[0], (int, float)):
        return 1
    return sum(count_positions(coord) for coord in coordinates)


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    directory = argv[0] if argv else os.getcwd()
    files = [f for f in os.listdir(directory) if f.endswith('.geojson')]
    print(f"Analyzing {len(files)} GeoJSON files in '{directory}':\n")
    for fname in sorted(files):
        path = os.path.join(directory, fname)
        stats = analyze_geojson(path)
        size = get_file_size(path)
        gzsize = get_gzipped_size(path)
        print(f"{fname}")
        print(f"  Features: {stats['feature_count']}")
        print(f"  Geometry types: {stats['geometry_types']}")
        print(f"  Points: {stats['point_count']}")
        print("  Properties:")
        for key, count in stats['property_keys'].items():
            print(f"    {key}: {count}")
        print(f"  Size: {format_file_size(size)} (uncompressed), {format_file_size(gzsize)} (gzipped)")
        print()
    return 0


if __name__ == '__main__':
    sys.exit(main())
