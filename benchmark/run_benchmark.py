# -*- coding: utf-8 -*-
"""
Smart Search Benchmark

Runs the matcher over a labelled CSV of customer queries and reports how
often the accepted model agrees with the expected one.

Input CSV columns: query, expected_model

Usage:
    python -m benchmark.run_benchmark queries.csv
    python -m benchmark.run_benchmark queries.csv --catalog catalog.json --year 2025
"""
import argparse
import csv
import json
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional

# Add parent directory to path so we can import project modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from match_types import Candidate, Confidence, FailureKind
from matcher import smart_search
from mongodb_client import load_candidates, record_to_candidate

# ============================================================================
# CONFIGURATION
# ============================================================================

OUTPUT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)))
MAX_WORKERS = 5

OUTPUT_COLUMNS = [
    'query', 'expected_model', 'matched_model', 'score', 'confidence',
    'alternatives', 'failure', 'agreement',
]


def load_input_csv(path: str) -> List[Dict]:
    """Load the labelled query CSV into a list of dicts."""
    with open(path, 'r', encoding='utf-8') as f:
        return list(csv.DictReader(f))


def load_catalog_file(path: str) -> List[Candidate]:
    """Load a JSON array of catalog documents (same shape as MongoDB)."""
    with open(path, 'r', encoding='utf-8') as f:
        records = json.load(f)
    return [record_to_candidate(rec) for rec in records if rec.get('active', True)]


def process_row(row: Dict, candidates: List[Candidate], reference_year: int) -> Dict:
    """Match a single query and return the output row dict."""
    query = row.get('query', '')
    expected = (row.get('expected_model') or '').strip()
    result = smart_search(query, reference_year, candidates)

    out = {
        'query': query,
        'expected_model': expected,
        'matched_model': '',
        'score': '',
        'confidence': '',
        'alternatives': '',
        'failure': result.failure or '',
        'agreement': False,
    }

    if result.success:
        matched = result.match.candidate.name
        out['matched_model'] = matched
        out['score'] = result.match.score
        out['confidence'] = result.confidence
        out['alternatives'] = result.alternative_count
        out['agreement'] = bool(expected) and matched.upper() == expected.upper()
    elif result.diagnostics:
        out['score'] = result.diagnostics[0].score

    return out


def summarize(results: List[Dict]) -> Dict[str, int]:
    """Count accepted rows, agreements, failures and confidence tiers."""
    summary = {
        'total': len(results),
        'accepted': sum(1 for r in results if not r['failure']),
        'agreement': sum(1 for r in results if r['agreement']),
    }
    for kind in (FailureKind.EMPTY_QUERY, FailureKind.EMPTY_CATALOG, FailureKind.NO_CONFIDENT_MATCH):
        summary[kind] = sum(1 for r in results if r['failure'] == kind)
    for conf in (Confidence.HIGH, Confidence.MEDIUM, Confidence.LOW, Confidence.VERY_LOW):
        summary[conf] = sum(1 for r in results if r['confidence'] == conf)
    return summary


def run(rows: List[Dict], candidates: List[Candidate], reference_year: int, workers: int = MAX_WORKERS) -> List[Dict]:
    """Match every row in a thread pool, keeping input order."""
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(lambda row: process_row(row, candidates, reference_year), rows))


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="Benchmark smart search against labelled queries")
    parser.add_argument('input_csv', help="CSV with query,expected_model columns")
    parser.add_argument('--catalog', help="JSON catalog file (default: read from MongoDB)")
    parser.add_argument('--year', type=int, default=datetime.now().year, help="Reference year")
    parser.add_argument('--workers', type=int, default=MAX_WORKERS)
    args = parser.parse_args(argv)

    print("=" * 70)
    print("Smart Search Benchmark")
    print("=" * 70)

    # 1. Load input CSV
    print(f"\n[1/4] Loading input CSV...")
    if not os.path.exists(args.input_csv):
        print(f"ERROR: Input CSV not found: {args.input_csv}")
        sys.exit(1)

    rows = load_input_csv(args.input_csv)
    total = len(rows)
    print(f"  Loaded {total} queries")

    # 2. Load catalog
    if args.catalog:
        print(f"\n[2/4] Loading catalog from {args.catalog}...")
        candidates = load_catalog_file(args.catalog)
    else:
        print(f"\n[2/4] Loading catalog from MongoDB...")
        candidates = load_candidates()
    if not candidates:
        print("ERROR: Catalog is empty. Check the catalog source.")
        sys.exit(1)
    print(f"  Active models: {len(candidates)}")

    # 3. Match
    print(f"\n[3/4] Matching ({args.workers} workers, reference year {args.year})...")
    start_time = time.time()
    results = run(rows, candidates, args.year, workers=args.workers)
    print(f"  Matching complete: {time.time() - start_time:.2f}s")

    # 4. Write output CSV
    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    output_path = os.path.join(OUTPUT_DIR, f"benchmark_smart_search_{timestamp}.csv")

    print(f"\n[4/4] Writing output CSV...")
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=OUTPUT_COLUMNS)
        writer.writeheader()
        for result in results:
            writer.writerow(result)
    print(f"  Output: {output_path}")

    # --- Summary stats ---
    summary = summarize(results)
    print("\n" + "=" * 70)
    print("SUMMARY")
    print("=" * 70)

    if not total:
        print("\nNo rows to summarize.")
        return

    accepted = summary['accepted']
    print(f"\nTotal queries:        {total}")
    print(f"Accepted:             {accepted} ({accepted/total*100:.1f}%)")
    print(f"No confident match:   {summary[FailureKind.NO_CONFIDENT_MATCH]}")
    print(f"Empty query:          {summary[FailureKind.EMPTY_QUERY]}")
    if accepted > 0:
        print(f"Agreement:            {summary['agreement']}/{accepted} ({summary['agreement']/accepted*100:.1f}%)")

    print(f"\nConfidence distribution:")
    for conf in (Confidence.HIGH, Confidence.MEDIUM, Confidence.LOW, Confidence.VERY_LOW):
        count = summary[conf]
        if count > 0:
            print(f"  {conf:<15} {count:>4} ({count/total*100:.1f}%)")

    print(f"\nDone! Total time: {time.time() - start_time:.1f}s")


if __name__ == "__main__":
    main()
