#!/usr/bin/env python
"""ETL script to load the ZIP code directory from CSV."""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from zipgeo.config import get_settings
from zipgeo.database import build_engine, build_session_factory, init_db
from zipgeo.etl.ingest import IngestResult, parse_rows
from zipgeo.exceptions import AssetUnavailableError, IngestError
from zipgeo.services.asset_source import AssetSource
from zipgeo.services.dataset_service import DatasetService, PopulateResult, bulk_entries
from zipgeo.services.kv_store import KVStore


class ZipCodeETL:
    """ETL pipeline for the ZIP code snapshot."""

    def __init__(self, source: str, bulk_out: Optional[Path] = None):
        """Initialize ETL with a CSV path or URL."""
        self.settings = get_settings()
        self.source = source
        self.bulk_out = bulk_out
        self.parsed: Optional[IngestResult] = None
        self.result: Optional[PopulateResult] = None

    async def run(self) -> int:
        """Run the pipeline; returns a process exit code."""
        print("🚀 Starting ZIP code ETL Pipeline...")
        print(f"   Source: {self.source}")

        try:
            await self.load_csv()
            if self.bulk_out:
                self.write_bulk_file()
            else:
                await self.publish()
        except (AssetUnavailableError, IngestError) as e:
            print(f"❌ ETL failed: {e}")
            return 1

        self.print_summary()
        return 0

    async def load_csv(self):
        """Fetch and parse the CSV."""
        print("\n📁 Loading CSV data...")
        assets = AssetSource.from_settings(self.settings)
        text = await assets.fetch_text(self.source)
        self.parsed = parse_rows(text)
        print(f"   ✅ Parsed {len(self.parsed.records)} records")
        if self.parsed.errors:
            print(f"   ⚠️  Skipped {self.parsed.skipped} rows")

    def write_bulk_file(self):
        """Write per-ZIP entries for an external bulk load."""
        print(f"\n📦 Writing bulk file {self.bulk_out}...")
        entries = bulk_entries(self.parsed.records)
        self.bulk_out.write_text(json.dumps(entries))
        print(f"   ✅ Wrote {len(entries)} entries")

    async def publish(self):
        """Publish the parsed records as the current snapshot."""
        print("\n🗺️  Publishing snapshot...")
        engine = build_engine(self.settings)
        try:
            await init_db(engine)
            store = KVStore(build_session_factory(engine))
            service = DatasetService(store, write_zip_entries=self.settings.write_zip_entries)
            self.result = await service.populate(
                self.parsed.records, skipped=self.parsed.skipped
            )
        finally:
            await engine.dispose()
        print(f"   ✅ {self.result.message}")

    def print_summary(self):
        """Print ETL summary."""
        print("\n" + "=" * 50)
        print("📊 ETL Pipeline Summary")
        print("=" * 50)
        print(f"✅ Records parsed: {len(self.parsed.records)}")
        if self.result:
            print(f"✅ Snapshot epoch: {self.result.epoch}")

        if self.parsed.errors:
            print(f"\n⚠️  Rows rejected: {self.parsed.skipped}")
            for error in self.parsed.errors[:5]:  # Show first 5 errors
                print(f"   - line {error.line} ({error.zip or '?'}): {error.message}")

        print("\n🎉 ETL pipeline completed successfully!")


async def main(argv=None) -> int:
    """Main ETL execution."""
    parser = argparse.ArgumentParser(description='ZIP code ETL Pipeline')
    parser.add_argument(
        '--csv',
        default=None,
        help='CSV path (relative to the assets directory) or URL'
    )
    parser.add_argument(
        '--bulk-out',
        type=Path,
        default=None,
        help='Write bulk-load JSON to this file instead of publishing'
    )
    args = parser.parse_args(argv)

    etl = ZipCodeETL(args.csv or get_settings().source_csv, bulk_out=args.bulk_out)
    return await etl.run()


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
