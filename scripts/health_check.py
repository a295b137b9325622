#!/usr/bin/env python3
"""SignalBoard data folder health check."""

import argparse
import json
import os
import sys

# Add project to path
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from config.settings import DATA_DIR, MASTER_DIRECTORY
from core.data_loader import records_from_payload
from core.directory_scanner import DirectoryScanError, find_master, iter_nodes, scan_directories


def _count_records(path):
    """Return (record_count, error) for one data file; parse errors are reported, not hidden."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as e:
        return 0, str(e)
    return len(records_from_payload(payload, path)), None


def check_data_tree(data_dir):
    """Report every data file with its record count; False when any file is unreadable."""
    print("\n📊 SignalBoard Data Report")
    print("=" * 70)

    try:
        nodes = scan_directories(data_dir)
    except DirectoryScanError as e:
        print(f"  ✗ Scan failed: {e}")
        return False

    if not nodes:
        print(f"  No data files found under {data_dir}")
        return True

    total_files = 0
    total_records = 0
    broken = []

    for node in iter_nodes(nodes):
        for file_name in node.files:
            total_files += 1
            relative = f"{node.path}/{file_name}"
            count, error = _count_records(os.path.join(data_dir, *relative.split("/")))
            if error:
                broken.append((relative, error))
                print(f"  ✗ Error          {relative:45} | {error[:40]}")
                continue
            total_records += count
            print(f"  ✓ OK             {relative:45} | records={count:6}")

    master = find_master(nodes, MASTER_DIRECTORY)

    print("\n" + "=" * 70)
    print("Summary:")
    print(f"  Files:                {total_files:6}")
    print(f"  Records:              {total_records:6}")
    print(f"  Unreadable files:     {len(broken):6}")
    if master is not None:
        print(f"  Master directory:     {master.path} ({len(master.files)} files)")
    else:
        print(f"  Master directory:     missing ('{MASTER_DIRECTORY}' not found)")

    return not broken


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check SignalBoard data files")
    parser.add_argument("--data-dir", default=DATA_DIR, help="Data folder to scan (default: configured DATA_DIR)")
    args = parser.parse_args(argv)

    print("\n" + "=" * 70)
    print("  SignalBoard Health Check")
    print("=" * 70)

    healthy = check_data_tree(args.data_dir)

    print("\n" + "=" * 70)
    if healthy:
        print("✓ All data files parsed.")
    else:
        print("⚠ Some data files could not be parsed. Review above for details.")
    print("=" * 70 + "\n")

    return 0 if healthy else 1


if __name__ == "__main__":
    sys.exit(main())
