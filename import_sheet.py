"""Import a personnel spreadsheet from the command line.

Usage:
    python import_sheet.py path/to/sheet.xlsx

Writes into the configured database (run init_db.py first) and prints the
import report as JSON.
"""

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from be.db import AsyncSessionMaker, engine
from be.logging_config import setup_logging
from be.parsers import ParseError
from be.pipelines.importing import ImportAbortedError, import_file, report_to_dict
from be.repository import SqlPersonnelStore


async def run_import(path: Path) -> dict:
    content = path.read_bytes()
    async with AsyncSessionMaker() as session:
        with path.open("rb") as file_obj:
            report = await import_file(SqlPersonnelStore(session), file_obj, path.name, content=content)
    await engine.dispose()
    return report_to_dict(report)


def main() -> int:
    if len(sys.argv) != 2:
        print(__doc__)
        return 2

    setup_logging()
    path = Path(sys.argv[1])
    if not path.is_file():
        print(f"❌ No such file: {path}")
        return 2

    try:
        result = asyncio.run(run_import(path))
    except ParseError as e:
        print(f"❌ Could not read spreadsheet: {e}")
        return 1
    except ImportAbortedError as e:
        print(f"❌ Import aborted at row {e.row_number} after {e.inserted} inserts: {e}")
        return 1

    print(json.dumps(result, indent=2, default=str, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
