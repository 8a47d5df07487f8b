"""Validate the ZIP code CSV before loading."""
import sys
from pathlib import Path
from typing import List, Tuple

from zipgeo.etl.ingest import COLUMNS, NUMERIC_COLUMNS, parse_rows, read_frame
from zipgeo.exceptions import IngestError


def validate_csv(file_path: str) -> Tuple[bool, List[str]]:
    """
    Validate CSV structure and row contents.
    Returns (is_valid, list_of_issues)
    """
    issues = []

    try:
        text = Path(file_path).read_text(encoding="utf-8-sig")
        df = read_frame(text)
    except (OSError, IngestError) as e:
        return False, [f"Failed to read CSV: {e}"]

    print(f"✅ Successfully read CSV with {len(df)} rows")

    extra_cols = set(df.columns) - set(COLUMNS)
    if extra_cols:
        print(f"⚠️  Extra columns found (will be ignored): {extra_cols}")

    # Blank cells per numeric column
    print("\n📊 Column Analysis:")
    for col in NUMERIC_COLUMNS:
        blank = (df[col].str.strip() == "").sum()
        print(f"  {col}: {blank}/{len(df)} blank")

    result = parse_rows(text)
    for error in result.errors:
        issues.append(f"line {error.line} ({error.zip or '?'}): {error.message}")

    print(f"\n📝 {len(result.records)} valid records, {result.skipped} rejected")
    if result.records:
        sample = result.records[0]
        print(f"   First: {sample.zip} {sample.city}, {sample.state} ({sample.latitude}, {sample.longitude})")

    return len(issues) == 0, issues


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python validate_csv.py <path_to_csv>")
        sys.exit(1)

    csv_path = sys.argv[1]
    is_valid, issues = validate_csv(csv_path)

    if is_valid:
        print("\n✅ CSV validation successful!")
    else:
        print("\n❌ CSV validation failed:")
        for issue in issues[:20]:
            print(f"  - {issue}")
        sys.exit(1)
