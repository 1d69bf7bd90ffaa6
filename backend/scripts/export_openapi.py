"""Write the OpenAPI schema of the API to stdout or a file."""

import argparse
import json
from pathlib import Path

from app.main import app


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-o", "--output", type=Path, help="file to write instead of stdout")
    args = parser.parse_args()

    schema = json.dumps(app.openapi(), indent=2)
    if args.output:
        args.output.write_text(schema + "\n")
    else:
        print(schema)


if __name__ == "__main__":
    main()
