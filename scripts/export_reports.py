from __future__ import annotations

import sys

try:
    from report_feed.cli import main as cli_main
except ModuleNotFoundError as exc:
    if exc.name == "report_feed":
        raise SystemExit(
            "Unable to import 'report_feed'. Install the project first "
            "(for example: `python -m pip install -e .`) and rerun this script."
        ) from exc
    raise


def main() -> int:
    return cli_main(["export", *sys.argv[1:]])


if __name__ == "__main__":
    raise SystemExit(main())
