"""Turn the raw ZIP code CSV into typed records."""
import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List

import pandas as pd
from pydantic import ValidationError

from zipgeo.exceptions import IngestError
from zipgeo.schemas import RowError, ZipRecord

logger = logging.getLogger(__name__)

COLUMNS = list(ZipRecord.model_fields)
LIST_COLUMNS = ("acceptable_cities", "unacceptable_cities", "area_codes")
NUMERIC_COLUMNS = ("latitude", "longitude", "irs_estimated_population")
TRUE_VALUES = {"1", "true", "yes", "y"}
FALSE_VALUES = {"", "0", "false", "no", "n"}


@dataclass
class IngestResult:
    """Records that parsed, in source order, and the rows that did not."""
    records: List[ZipRecord] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.errors)


def read_frame(text: str) -> pd.DataFrame:
    """Read CSV text into a frame of untouched string cells."""
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise IngestError(f"Unreadable CSV: {e}") from e
    # Short rows still come back as NaN
    df = df.fillna("")

    # Clean column names (lowercase and replace spaces)
    df.columns = [str(col).strip().lower().replace(" ", "_") for col in df.columns]

    missing = [col for col in COLUMNS if col not in df.columns]
    if missing:
        raise IngestError(f"Missing columns: {', '.join(missing)}")
    return df


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _parse_flag(value: str) -> bool:
    flag = value.strip().lower()
    if flag in TRUE_VALUES:
        return True
    if flag in FALSE_VALUES:
        return False
    raise ValueError(f"decommissioned: not a boolean: {value!r}")


def _parse_number(name: str, value: str) -> float:
    try:
        return float(value.strip())
    except ValueError:
        raise ValueError(f"{name}: not a number: {value!r}") from None


def parse_row(row: Dict[str, str]) -> ZipRecord:
    """Build one record from a CSV row; raises ValueError if it does not conform."""
    zip_code = row["zip"].strip()
    # Spreadsheet exports drop leading zeros
    if zip_code.isdigit() and len(zip_code) < 5:
        zip_code = zip_code.zfill(5)

    values = {col: row[col].strip() for col in COLUMNS}
    values["zip"] = zip_code
    values["decommissioned"] = _parse_flag(row["decommissioned"])
    for col in LIST_COLUMNS:
        values[col] = _split_list(row[col])
    for col in NUMERIC_COLUMNS:
        values[col] = _parse_number(col, row[col])
    return ZipRecord(**values)


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
        for err in exc.errors()
    )


def parse_rows(text: str) -> IngestResult:
    """
    Parse the raw CSV into records.

    Rows that fail to parse, or repeat an earlier ZIP code, are reported in
    ``errors`` instead of being passed on.
    """
    df = read_frame(text)
    result = IngestResult()
    seen = set()

    for offset, row in enumerate(df.to_dict(orient="records")):
        line = offset + 2  # header is line 1
        raw_zip = str(row.get("zip", "")).strip()
        try:
            record = parse_row(row)
        except ValidationError as e:
            result.errors.append(RowError(line=line, zip=raw_zip, message=_describe(e)))
            continue
        except ValueError as e:
            result.errors.append(RowError(line=line, zip=raw_zip, message=str(e)))
            continue

        if record.zip in seen:
            result.errors.append(
                RowError(line=line, zip=record.zip, message="duplicate ZIP code")
            )
            continue
        seen.add(record.zip)
        result.records.append(record)

    if result.errors:
        logger.warning(
            "Rejected %d of %d rows", result.skipped, len(df)
        )
        for error in result.errors[:5]:
            logger.warning("  line %d (%s): %s", error.line, error.zip or "?", error.message)

    logger.info("Parsed %d ZIP records", len(result.records))
    return result
