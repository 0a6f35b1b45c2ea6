from __future__ import annotations

import argparse
import json
import random
from pathlib import Path

import pandas as pd


REPORT_COUNT = 40
EVENT_COUNT = 8
CATEGORIES = ("fire", "flood", "waste", "deforestation", "air")
STATUSES = ("open", "in_progress", "resolved")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Prepare a synthetic report batch and push-event replay file."
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path(__file__).resolve().parents[1] / "sample_data",
        help="Target directory for reports.json and events.jsonl.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=7,
        help="Random seed for reproducible output.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing files.",
    )
    return parser.parse_args()


def _make_report(rng: random.Random, report_id: int, date: pd.Timestamp) -> dict[str, object]:
    category = rng.choice(CATEGORIES)
    return {
        "id": report_id,
        "lat": round(-34.6 + rng.uniform(-0.5, 0.5), 6),
        "lng": round(-58.4 + rng.uniform(-0.5, 0.5), 6),
        "category": category,
        "status": rng.choice(STATUSES),
        "date": date.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "description": f"Reported {category} near sector {rng.randint(1, 30)}",
        "photo": f"photos/{report_id:04d}.jpg",
    }


def generate(output_dir: Path, seed: int) -> tuple[Path, Path]:
    rng = random.Random(seed)
    dates = pd.date_range("2024-01-01", periods=REPORT_COUNT + EVENT_COUNT, freq="3D", tz="UTC")

    # The backend returns newest first.
    reports = [_make_report(rng, idx + 1, dates[idx]) for idx in range(REPORT_COUNT)]
    reports.reverse()

    events = []
    for offset in range(EVENT_COUNT):
        if offset % 3 == 2:
            # Status update for an existing report.
            existing = dict(rng.choice(reports))
            existing["status"] = "resolved"
            events.append(existing)
        else:
            report_id = REPORT_COUNT + offset + 1
            events.append(_make_report(rng, report_id, dates[report_id - 1]))

    output_dir.mkdir(parents=True, exist_ok=True)
    reports_path = output_dir / "reports.json"
    events_path = output_dir / "events.jsonl"
    reports_path.write_text(json.dumps(reports, indent=2), encoding="utf-8")
    events_path.write_text(
        "\n".join(json.dumps(event) for event in events) + "\n", encoding="utf-8"
    )
    return reports_path, events_path


def main() -> None:
    args = parse_args()
    output_dir = args.output_dir.expanduser().resolve()
    reports_path = output_dir / "reports.json"
    if reports_path.exists() and not args.force:
        print(f"Sample data already present at: {output_dir}")
        return

    reports_path, events_path = generate(output_dir, args.seed)
    print(f"reports={reports_path}")
    print(f"events={events_path}")


if __name__ == "__main__":
    main()
