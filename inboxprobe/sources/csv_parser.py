"""
CSV Parser for loading target URLs from CSV files.
Only requires a 'url' column - an 'email' column is optional, everything else is ignored.
"""

import csv
from pathlib import Path
from typing import List, Dict, Any
from loguru import logger

# Acceptable column names (case-insensitive, with common variations)
URL_COLUMNS = ['url', 'urls', 'link', 'links', 'landing_page', 'website', 'site', 'target', 'target_url']
EMAIL_COLUMNS = ['email', 'test_email', 'testemail', 'email_address']


class CSVParser:
    """
    Parse target URLs from CSV files.
    Only the 'url' column is required.
    """

    def __init__(self, csv_path: str):
        self.csv_path = Path(csv_path)

    @staticmethod
    def _find_column(fieldnames: List[str], variants: List[str]):
        for col in fieldnames:
            if col and col.strip().lower() in variants:
                return col
        return None

    def parse(self) -> List[Dict[str, Any]]:
        """
        Parse CSV file and extract targets.

        Returns:
            List of target dictionaries with 'url', 'email' (may be None) and 'source' keys
        """
        targets = []

        if not self.csv_path.exists():
            logger.error(f"CSV file not found: {self.csv_path}")
            return targets

        try:
            # Use utf-8-sig to handle Excel BOM (Byte Order Mark)
            with open(self.csv_path, 'r', encoding='utf-8-sig', newline='') as f:
                reader = csv.DictReader(f)
                fieldnames = reader.fieldnames or []

                url_column = self._find_column(fieldnames, URL_COLUMNS)
                if not url_column:
                    logger.error("No URL column found in CSV. Looking for: url, link, landing_page, or website")
                    logger.error(f"Available columns: {fieldnames}")
                    return targets
                email_column = self._find_column(fieldnames, EMAIL_COLUMNS)

                seen = set()
                for row in reader:
                    url = (row.get(url_column) or "").strip()
                    if not url or not url.startswith("http") or url in seen:
                        continue
                    seen.add(url)
                    email = (row.get(email_column) or "").strip() if email_column else ""
                    targets.append({
                        "url": url,
                        "email": email or None,
                        "source": "csv"
                    })

            logger.info(f"✅ Parsed {len(targets)} URLs from CSV")

        except (OSError, csv.Error, UnicodeDecodeError) as e:
            logger.error(f"Error parsing CSV: {e}")

        return targets
