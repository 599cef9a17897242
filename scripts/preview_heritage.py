#!/usr/bin/env python3
"""
Score a church profile with the heritage classifier, without storage.

Prints the score, confidence band, heritage flag and each indicator.
Uses the heritage section of the active configuration.

Usage:
    python3 scripts/preview_heritage.py --year 1783 --style "earthquake baroque"
    python3 scripts/preview_heritage.py --classification NCT --keyword "coral stone"
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Preview a heritage classification.")
    parser.add_argument("--config", help="path to a registry YAML config")
    parser.add_argument("--classification", default=None, help="ICP, NCT or none")
    parser.add_argument("--year", type=int, default=None, help="founding year")
    parser.add_argument("--style", default=None, help="architectural style")
    parser.add_argument("--description", default=None)
    parser.add_argument("--notes", default=None, help="heritage notes")
    parser.add_argument("--keyword", action="append", default=[], help="repeatable")
    args = parser.parse_args(argv)

    from church_config import ConfigError, get_active_config
    from church_config.bridges import build_classifier
    from church_kernel.domain.church import ChurchProfile
    from church_kernel.domain.validation import (
        normalize_keywords,
        parse_classification,
        validate_founding_year,
    )
    from church_kernel.exceptions import ValidationError

    try:
        classifier = build_classifier(get_active_config(args.config))
        profile = ChurchProfile(
            classification=parse_classification(args.classification),
            founding_year=validate_founding_year(args.year),
            architectural_style=args.style,
            description=args.description,
            keywords=normalize_keywords(args.keyword),
            heritage_notes=args.notes,
        )
    except (ConfigError, ValidationError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    assessment = classifier.classify(profile)

    print()
    print(f"  Score:       {assessment.score}")
    print(f"  Confidence:  {assessment.confidence.value}")
    print(f"  Heritage:    {'yes' if assessment.is_heritage else 'no'}")
    print()
    for indicator in assessment.indicators:
        mark = "x" if indicator.present else " "
        detail = f"  ({indicator.detail})" if indicator.detail else ""
        print(f"  [{mark}] {indicator.name:<24} +{indicator.weight}{detail}")
    print()
    print(f"  {assessment.reasoning}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
