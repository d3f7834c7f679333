import json
import logging
import math
from pathlib import Path
from typing import NamedTuple

import numpy as np
import pandas as pd

from config import IMAGE_SIZE

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("images", "annotations", "categories")

IMAGE_COLUMNS = ["id", "file_name", "height", "width"]
BOX_COLUMNS = ["image_id", "category_id", "x_left", "y_top", "bbox_width", "bbox_height"]
CATEGORY_COLUMNS = ["id", "name"]

BOX_CORNERS = ["x_left_scaled", "y_top_scaled", "x_right_scaled", "y_bottom_scaled"]


class ParseError(Exception):
    """Raised when an annotation file cannot be turned into tables."""


class AnnotationTables(NamedTuple):
    images: pd.DataFrame
    boxes: pd.DataFrame
    categories: pd.DataFrame


def _read_json(json_path):
    try:
        with open(json_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ParseError(f"Annotation file not found: {json_path}") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Annotation file is not valid JSON: {json_path} ({e})") from e


def load_annotation_tables(json_path: Path) -> AnnotationTables:
    data = _read_json(json_path)
    if not isinstance(data, dict):
        raise ParseError(f"Expected a JSON object at the top level of {json_path}")
    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise ParseError(f"{json_path} is missing required keys: {', '.join(missing)}")

    try:
        image_rows = []
        for img in data["images"]:
            height, width = int(img["height"]), int(img["width"])
            if height <= 0 or width <= 0:
                raise ValueError(f"image {img['id']} has non-positive size {width}x{height}")
            image_rows.append((int(img["id"]), str(img["file_name"]), height, width))
        box_rows = []
        skipped = 0
        for ann in data["annotations"]:
            bbox = ann["bbox"]
            if len(bbox) < 4:
                raise ValueError(f"bbox needs 4 values, got {bbox!r}")
            x, y, w, h = map(float, bbox[:4])
            if not all(math.isfinite(v) for v in (x, y, w, h)):
                raise ValueError(f"bbox has non-finite values: {bbox!r}")
            if w <= 0 or h <= 0:
                skipped += 1
                continue
            box_rows.append((int(ann["image_id"]), int(ann["category_id"]), x, y, w, h))
        category_rows = [(int(cat["id"]), str(cat["name"])) for cat in data["categories"]]
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"Malformed record in {json_path}: {e!r}") from e

    if skipped:
        logger.warning("Skipped %d boxes with non-positive size in %s", skipped, json_path)

    images = pd.DataFrame(image_rows, columns=IMAGE_COLUMNS).astype(
        {"id": "int64", "height": "int64", "width": "int64"}
    )
    boxes = pd.DataFrame(box_rows, columns=BOX_COLUMNS).astype(
        {"image_id": "int64", "category_id": "int64", "x_left": "float64",
         "y_top": "float64", "bbox_width": "float64", "bbox_height": "float64"}
    )
    categories = pd.DataFrame(category_rows, columns=CATEGORY_COLUMNS).astype({"id": "int64"})
    logger.info(
        "Loaded %d images, %d boxes, %d categories from %s",
        len(images), len(boxes), len(categories), json_path,
    )
    return AnnotationTables(images, boxes, categories)


def _rescale(values, source, target):
    scaled = np.round(values / source * target)
    return scaled.clip(0, target).astype("int64")


def join_annotations(tables: AnnotationTables, target_height=IMAGE_SIZE, target_width=IMAGE_SIZE):
    # dangling image/category ids are dropped, corners are closed pixel intervals
    if target_height <= 0 or target_width <= 0:
        raise ValueError(f"Target size must be positive, got {target_height}x{target_width}")

    categories = tables.categories.sort_values("id", kind="stable")
    categories = categories.rename(columns={"id": "category_id", "name": "category_name"})
    categories = categories.assign(class_index=np.arange(len(categories), dtype="int64"))
    images = tables.images.rename(columns={"id": "image_id"})

    boxes = tables.boxes.assign(_order=np.arange(len(tables.boxes)))
    joined = boxes.merge(images, on="image_id", how="inner")
    joined = joined.merge(categories, on="category_id", how="inner")
    joined = joined.sort_values("_order", kind="stable").drop(columns="_order")
    joined = joined.reset_index(drop=True)

    dropped = len(tables.boxes) - len(joined)
    if dropped:
        logger.info("Dropped %d boxes without a matching image or category", dropped)

    joined["x_right"] = joined["x_left"] + joined["bbox_width"] - 1
    joined["y_bottom"] = joined["y_top"] + joined["bbox_height"] - 1

    for column in ("x_left", "x_right", "bbox_width"):
        joined[f"{column}_scaled"] = _rescale(joined[column], joined["width"], target_width)
    for column in ("y_top", "y_bottom", "bbox_height"):
        joined[f"{column}_scaled"] = _rescale(joined[column], joined["height"], target_height)
    return joined


def primary_objects(joined: pd.DataFrame) -> pd.DataFrame:
    """Largest scaled box per image; first row wins ties."""
    joined = joined.reset_index(drop=True)
    if joined.empty:
        return joined
    area = joined["bbox_width_scaled"] * joined["bbox_height_scaled"]
    best = area.groupby(joined["image_id"], sort=False).idxmax()
    return joined.loc[best.to_numpy()].reset_index(drop=True)


def class_names(categories: pd.DataFrame):
    return categories.sort_values("id", kind="stable")["name"].tolist()


def category_counts(joined: pd.DataFrame) -> pd.Series:
    return joined["category_name"].value_counts().sort_index()


def load_primary_objects(json_path: Path, target_height=IMAGE_SIZE, target_width=IMAGE_SIZE):
    tables = load_annotation_tables(json_path)
    joined = join_annotations(tables, target_height=target_height, target_width=target_width)
    primary = primary_objects(joined)
    logger.info("Selected %d primary objects out of %d boxes", len(primary), len(joined))
    return primary
