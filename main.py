"""
Prepare Pascal VOC annotations for single-object classification and
localization.

Loads an annotation file, joins and rescales its tables, keeps the largest
object of every image, and prints a summary. Optionally writes the
primary-object table to CSV and pulls one batch through the generator to
check the pipeline end to end:

    python main.py --annotations data/pascal_train2007.json \
        --images-dir data/VOC2007/JPEGImages --output outputs/train.csv --sample-batch
"""

import argparse
import logging
import sys
from pathlib import Path

from config import (
    BATCH_SIZE,
    IMAGE_SIZE,
    SEED,
    TASKS,
    TRAIN_IMAGES,
    TRAIN_JSON,
    InputShapeError,
    check_input_shape,
)
from dataset import (
    ParseError,
    category_counts,
    join_annotations,
    load_annotation_tables,
    primary_objects,
)
from generator import BatchGenerator, ImageLoadError

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Build classification/localization tables from VOC annotations.")
    parser.add_argument("--annotations", type=Path, default=TRAIN_JSON, help="Annotation JSON file.")
    parser.add_argument("--images-dir", type=Path, default=TRAIN_IMAGES, help="Directory of the image files.")
    parser.add_argument("--target-size", type=int, default=IMAGE_SIZE, help="Target height and width in pixels.")
    parser.add_argument("--any-size", action="store_true",
                        help="Allow a target size other than the feature extractor input.")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE)
    parser.add_argument("--task", choices=TASKS, default=TASKS[0])
    parser.add_argument("--no-shuffle", action="store_true", help="Walk the table in order.")
    parser.add_argument("--seed", type=int, default=SEED)
    parser.add_argument("--output", type=Path, default=None, help="Write the primary-object table to this CSV.")
    parser.add_argument("--sample-batch", action="store_true", help="Load one batch and report its shapes.")
    return parser


def run(args):
    if not args.any_size:
        check_input_shape(args.target_size, args.target_size)

    tables = load_annotation_tables(args.annotations)
    joined = join_annotations(tables, target_height=args.target_size, target_width=args.target_size)
    primary = primary_objects(joined)

    print(f"Images: {len(tables.images)}")
    print(f"Boxes: {len(tables.boxes)} ({len(joined)} after join)")
    print(f"Categories: {len(tables.categories)}")
    print(f"Primary objects: {len(primary)}")
    print("Boxes per category:")
    for name, count in category_counts(joined).items():
        print(f"  {name}: {count}")

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        primary.to_csv(args.output, index=False)
        logger.info("Wrote %d rows to %s", len(primary), args.output)

    if args.sample_batch and len(primary) > 0:
        gen = BatchGenerator(
            primary,
            args.images_dir,
            target_height=args.target_size,
            target_width=args.target_size,
            shuffle=not args.no_shuffle,
            batch_size=args.batch_size,
            task=args.task,
            seed=args.seed,
        )
        images, targets = next(gen)
        print(f"Sample batch - Images shape: {images.shape}")
        if isinstance(targets, dict):
            for key, value in targets.items():
                print(f"Sample batch - {key} shape: {value.shape}")
        else:
            print(f"Sample batch - Targets shape: {targets.shape}")
        print(f"Steps per epoch: {gen.steps_per_epoch}")
    return primary


def main(argv=None):
    logging.basicConfig(level=logging.INFO)
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except (ParseError, ImageLoadError, InputShapeError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
