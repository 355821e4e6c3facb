import json

from lademittel.config import get_settings
from lademittel.ledger.report import report_json_schema

out = get_settings().output_dir / "schema" / "ledger_report.schema.json"
out.parent.mkdir(parents=True, exist_ok=True)
out.write_text(json.dumps(report_json_schema(), indent=2), encoding="utf-8")
print(f"Wrote {out}")
