"""Data loaders and record normalization for option chains."""

import csv
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping

import pandas as pd

from ..models.quote import Quote
from ..utils.error_handling import DataValidationError, validate_quote_record

logger = logging.getLogger("spx_screener.loaders")

# Canonical field -> accepted source column names (provider camelCase, CSV snake_case)
COLUMN_ALIASES = {
    'strike': ('strike',),
    'bid': ('bid',),
    'ask': ('ask',),
    'last_price': ('lastPrice', 'last_price', 'last'),
    'volume': ('volume',),
    'open_interest': ('openInterest', 'open_interest'),
    'implied_volatility': ('impliedVolatility', 'implied_volatility', 'implied_vol', 'iv'),
    'expiration': ('expiration', 'expirationDate', 'expiration_date'),
    'contract_symbol': ('contractSymbol', 'contract_symbol', 'symbol'),
}

# Required CSV columns (canonical names)
REQUIRED_FIELDS = {'strike', 'bid'}


def safe_float(value: Any, default: float = 0.0) -> float:
    """Convert value to float, mapping None, NaN, blanks and junk to default."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return float(default)
    try:
        if pd.isna(value):
            return float(default)
    except (TypeError, ValueError):
        return float(default)
    try:
        return float(value)
    except (ValueError, TypeError):
        return float(default)


def safe_int(value: Any, default: int = 0) -> int:
    """Convert value to int, mapping None, NaN, blanks and junk to default."""
    return int(safe_float(value, default))


def parse_date(value: Any) -> date | None:
    """Parse an expiration value (date, datetime, ISO or MM/DD/YYYY string, epoch seconds)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        if pd.isna(value):
            return None
        return datetime.fromtimestamp(value, tz=timezone.utc).date()

    text = str(value).strip()
    if not text or text.lower() in ('null', 'none', 'nan'):
        return None
    for fmt in ('%Y-%m-%d', '%m/%d/%Y'):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid expiration date format: {text}")


def _pick(record: Mapping[str, Any], field: str) -> Any:
    for column in COLUMN_ALIASES[field]:
        if column in record:
            return record[column]
    return None


def quote_from_record(
    record: Mapping[str, Any],
    iv_scale: float = 100.0,
    expiration: date | None = None,
) -> Quote:
    """Normalize a raw provider/CSV record into a Quote.

    Missing numeric values become 0. Implied volatility is multiplied by
    iv_scale (providers report a decimal, Quote stores a percentage).

    Args:
        record: Mapping using provider (camelCase) or CSV (snake_case) names
        iv_scale: Multiplier applied to the source implied volatility
        expiration: Expiration to use when the record carries none

    Returns:
        Quote object

    Raises:
        DataValidationError: If strike is missing or values fail sanity checks
    """
    strike = safe_float(_pick(record, 'strike'), 0.0)
    normalized = {
        'strike': strike,
        'bid': safe_float(_pick(record, 'bid')),
        'ask': safe_float(_pick(record, 'ask')),
        'last_price': safe_float(_pick(record, 'last_price')),
        'volume': safe_int(_pick(record, 'volume')),
        'open_interest': safe_int(_pick(record, 'open_interest')),
    }

    is_valid, error = validate_quote_record(normalized)
    if not is_valid:
        raise DataValidationError(error)
    if 0 < normalized['ask'] < normalized['bid']:
        logger.debug("Crossed quote kept at strike %g: bid %.2f > ask %.2f",
                     strike, normalized['bid'], normalized['ask'])

    symbol = _pick(record, 'contract_symbol')
    return Quote(
        implied_volatility=safe_float(_pick(record, 'implied_volatility')) * iv_scale,
        expiration=parse_date(_pick(record, 'expiration')) or expiration,
        contract_symbol=str(symbol).strip() if symbol else None,
        **normalized,
    )


def load_quotes_from_csv(csv_path: str | Path, iv_scale: float = 100.0) -> List[Quote]:
    """Load a put chain from CSV file.

    Expected CSV format (camelCase or snake_case headers):
        strike,bid,ask,lastPrice,volume,openInterest,impliedVolatility,expiration

    Only strike and bid are required; other numeric columns default to 0.

    Args:
        csv_path: Path to CSV file
        iv_scale: Multiplier for the implied volatility column

    Returns:
        List of Quote objects in file order

    Raises:
        FileNotFoundError: If CSV file doesn't exist
        DataValidationError: If required columns are missing or no rows are valid
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        logger.error("CSV file not found: %s", csv_path)
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    logger.info("Loading option chain from CSV: %s", csv_path)

    quotes = []
    try:
        with open(csv_path, 'r', newline='') as f:
            reader = csv.DictReader(f)
            headers = {h.strip() for h in (reader.fieldnames or [])}

            missing = {
                field for field in REQUIRED_FIELDS
                if not headers.intersection(COLUMN_ALIASES[field])
            }
            if missing:
                logger.error("CSV missing required fields: %s", missing)
                raise DataValidationError(f"CSV missing required fields: {sorted(missing)}")

            skipped_rows = 0
            row_num = 1
            for row_num, row in enumerate(reader, start=2):  # Header is row 1
                row = {(k or '').strip(): v for k, v in row.items()}
                try:
                    quotes.append(quote_from_record(row, iv_scale=iv_scale))
                except (DataValidationError, ValueError) as e:
                    logger.warning(
                        "Skipping row %d in %s due to error: %s",
                        row_num, csv_path.name, e
                    )
                    skipped_rows += 1

            if skipped_rows > 0:
                logger.warning(
                    "Skipped %d invalid rows out of %d total rows in %s",
                    skipped_rows, row_num - 1, csv_path.name
                )

    except (FileNotFoundError, DataValidationError):
        raise
    except (OSError, csv.Error) as e:
        logger.error("Error reading CSV file %s: %s", csv_path, e)
        raise DataValidationError(f"Failed to read CSV file {csv_path}: {e}")

    if not quotes:
        logger.error("No valid quotes found in %s", csv_path)
        raise DataValidationError(f"No valid quotes found in {csv_path}")

    logger.info("Successfully loaded %d quotes from %s", len(quotes), csv_path.name)
    return quotes
