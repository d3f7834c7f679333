import pandas as pd
import pytest

import config
from main import main


def test_main_writes_primary_table(annotation_file, images_dir, tmp_path, capsys):
    output = tmp_path / "out" / "primary.csv"
    status = main([
        "--annotations", str(annotation_file),
        "--images-dir", str(images_dir),
        "--output", str(output),
        "--batch-size", "2",
        "--task", config.COMBINED,
        "--sample-batch",
    ])
    assert status == 0

    primary = pd.read_csv(output)
    assert primary["image_id"].tolist() == [1, 2]
    captured = capsys.readouterr().out
    assert "Primary objects: 2" in captured
    assert "Sample batch - Images shape: (2, 224, 224, 3)" in captured
    assert "box_output shape: (2, 4)" in captured


def test_main_reports_parse_error(tmp_path):
    assert main(["--annotations", str(tmp_path / "missing.json")]) == 1


def test_main_rejects_size_mismatch(annotation_file):
    assert main(["--annotations", str(annotation_file), "--target-size", "128"]) == 1


def test_main_missing_image(annotation_file, tmp_path):
    status = main([
        "--annotations", str(annotation_file),
        "--images-dir", str(tmp_path / "no-images"),
        "--sample-batch",
    ])
    assert status == 1


def test_check_input_shape():
    config.check_input_shape(224, 224)
    with pytest.raises(config.InputShapeError):
        config.check_input_shape(224, 200)


def test_main_does_not_swallow_argument_errors(annotation_file, images_dir):
    with pytest.raises(ValueError, match="batch_size"):
        main([
            "--annotations", str(annotation_file),
            "--images-dir", str(images_dir),
            "--batch-size", "0",
            "--sample-batch",
        ])
