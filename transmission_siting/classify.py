# classify.py
# maps raw layer attributes onto the routing subcategories used by the
# weight profiles: transmission voltage classes, railroad speed classes and
# NLCD land-cover groups.

import logging

import numpy as np
import pandas as pd

from transmission_siting.models import LayerKind

log = logging.getLogger(__name__)

# (upper bound inclusive, label); voltage in kV
VOLTAGE_CLASSES = [
    (100, "< 100kV"),
    (230, "100-230kV"),
    (np.inf, "> 230kV"),
]

# (upper bound inclusive, label); maximum track speed in mph
RAIL_SPEED_CLASSES = [
    (60, "Low Speed"),
    (110, "Medium Speed"),
    (np.inf, "High Speed"),
]

# NLCD 2019 legend codes grouped into the land-cover subcategories
NLCD_CLASSES = {
    "Developed": [21, 22, 23, 24],
    "Forest": [41, 42, 43],
    "Cropland": [81, 82],
    "Wetlands": [90, 95],
}
NLCD_LOOKUP = {code: name for name, codes in NLCD_CLASSES.items() for code in codes}


def _bin(value, classes):
    for bound, label in classes:
        if value <= bound:
            return label
    return classes[-1][1]


def classify_voltage(kv):
    """voltage class; exactly 100 kV falls in 100-230kV."""
    if kv is None or not np.isfinite(kv) or kv <= 0:
        return None
    if kv < 100:
        return VOLTAGE_CLASSES[0][1]
    return _bin(kv, VOLTAGE_CLASSES[1:])


def classify_rail_speed(mph):
    if mph is None or not np.isfinite(mph) or mph < 0:
        return None
    return _bin(mph, RAIL_SPEED_CLASSES)


def classify_land_cover(code):
    if code is None or not np.isfinite(code):
        return None
    return NLCD_LOOKUP.get(int(code))


CLASSIFIERS = {
    LayerKind.TRANSMISSION_LINE: classify_voltage,
    LayerKind.RAILROAD: classify_rail_speed,
    LayerKind.LAND_COVER: classify_land_cover,
}


def classify_features(frame, field, kind, output_field="subcategory"):
    """
    add a subcategory column derived from `field` and drop rows that do not
    classify (non-numeric, negative or unmapped values).
    """
    kind = LayerKind(kind)
    classifier = CLASSIFIERS[kind]
    values = pd.to_numeric(frame[field], errors="coerce")
    labels = values.map(lambda v: classifier(None if pd.isna(v) else float(v)))

    out = frame.copy()
    out[output_field] = labels
    keep = out[output_field].notna()
    dropped = int((~keep).sum())
    if dropped:
        log.info(f"{kind.value}: dropped {dropped} of {len(out)} features without a usable {field!r}")
    return out[keep].copy()


def combine_layers(frames):
    """stack several classified layer frames (e.g. per-state downloads)."""
    frames = [f for f in frames if len(f)]
    if not frames:
        raise ValueError("no features to combine")
    crs = frames[0].crs
    frames = [f if f.crs == crs else f.to_crs(crs) for f in frames]
    return pd.concat(frames, ignore_index=True)
