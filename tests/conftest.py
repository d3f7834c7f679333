import json

import numpy as np
import pytest
import tensorflow as tf


def write_json(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def write_png(path, height, width, value=128):
    pixels = np.full((height, width, 3), value, dtype=np.uint8)
    tf.io.write_file(str(path), tf.io.encode_png(pixels))
    return path


@pytest.fixture
def voc_payload():
    return {
        "images": [
            {"id": 1, "file_name": "000001.png", "height": 300, "width": 400},
            {"id": 2, "file_name": "000002.png", "height": 200, "width": 200},
            {"id": 3, "file_name": "000003.png", "height": 100, "width": 100},
        ],
        "annotations": [
            {"image_id": 1, "category_id": 12, "bbox": [100, 50, 50, 60], "area": 3000, "ignore": 0},
            {"image_id": 1, "category_id": 15, "bbox": [10, 10, 200, 150]},
            {"image_id": 2, "category_id": 7, "bbox": [0, 0, 20, 20]},
            {"image_id": 2, "category_id": 12, "bbox": [50, 50, 20, 20]},
            # dangling image and category references
            {"image_id": 99, "category_id": 7, "bbox": [0, 0, 5, 5]},
            {"image_id": 1, "category_id": 42, "bbox": [0, 0, 5, 5]},
        ],
        "categories": [
            {"id": 7, "name": "car"},
            {"id": 12, "name": "dog"},
            {"id": 15, "name": "person"},
        ],
    }


@pytest.fixture
def annotation_file(tmp_path, voc_payload):
    return write_json(tmp_path / "annotations.json", voc_payload)


@pytest.fixture
def images_dir(tmp_path, voc_payload):
    directory = tmp_path / "images"
    directory.mkdir()
    for img in voc_payload["images"]:
        write_png(directory / img["file_name"], img["height"] // 10, img["width"] // 10)
    return directory
