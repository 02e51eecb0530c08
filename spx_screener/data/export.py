"""Write put chains to CSV in the format the CSV loader reads back."""

import csv
import logging
from pathlib import Path
from typing import Iterable

from ..models.quote import Quote

logger = logging.getLogger("spx_screener.export")

CSV_FIELDNAMES = [
    'contract_symbol', 'expiration', 'strike', 'bid', 'ask', 'last_price',
    'volume', 'open_interest', 'implied_volatility',
]


def quote_to_row(quote: Quote) -> dict:
    """Flatten a Quote into a CSV row.

    Implied volatility is written as a decimal (0.21), matching what
    providers deliver, so the loader's default scaling applies on the way back.
    """
    return {
        'contract_symbol': quote.contract_symbol or '',
        'expiration': quote.expiration.isoformat() if quote.expiration else '',
        'strike': f"{quote.strike:g}",
        'bid': f"{quote.bid:.2f}",
        'ask': f"{quote.ask:.2f}",
        'last_price': f"{quote.last_price:.2f}",
        'volume': quote.volume,
        'open_interest': quote.open_interest,
        'implied_volatility': f"{quote.implied_volatility / 100.0:.4f}",
    }


def save_chain_to_csv(quotes: Iterable[Quote], output_file: str | Path) -> int:
    """Save quotes to a CSV file, creating parent directories.

    Args:
        quotes: Put quotes (any number of expirations)
        output_file: Output file path

    Returns:
        Number of rows written
    """
    output_file = Path(output_file)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(output_file, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
        writer.writeheader()
        for quote in quotes:
            writer.writerow(quote_to_row(quote))
            count += 1

    logger.info("Wrote %d quotes to %s", count, output_file)
    return count
