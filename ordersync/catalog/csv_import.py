"""
CSV product import and export.
Rows are validated one by one; a bad row is reported, never fatal for the file.
"""
import csv
import io
import json
from typing import Any, Dict, List, Optional, Sequence

from ordersync.catalog.header_mapping import auto_map_headers
from ordersync.errors import RecordValidationError
from ordersync.logger import logger
from ordersync.models.analysis import CSVImportResult, RowError
from ordersync.models.product import Product
from ordersync.normalizers.canonical import CanonicalMapper
from ordersync.vocabulary import vocabulary


REQUIRED_FIELDS = ("title", "sku", "price")


def _consumed_columns(row: Dict[str, Any], mapping: Optional[Dict[str, Optional[str]]]) -> set:
    if mapping:
        return {mapping[f] for f in REQUIRED_FIELDS if mapping.get(f)}
    aliases = set()
    for f in REQUIRED_FIELDS:
        aliases.update(vocabulary.csv_header_aliases.get(f, ()))
    return {k for k in row if k is not None and str(k).strip().lower() in aliases}


def map_csv_row_to_product(
    row: Dict[str, Any],
    seller_id: Optional[str] = None,
    mapping: Optional[Dict[str, Optional[str]]] = None,
) -> Product:
    """
    Map one CSV row to a Product.

    Args:
        row: Header -> cell value
        seller_id: Owner of the imported catalog
        mapping: Canonical field -> header; header aliases are used when omitted

    Raises:
        RecordValidationError: If title or SKU is missing
    """
    if mapping:
        canonical_row = {
            f: row.get(mapping[f]) if mapping.get(f) else None
            for f in REQUIRED_FIELDS
        }
    else:
        canonical_row = row

    canonical = CanonicalMapper.map_to_canonical_product(canonical_row, "csv")
    if not canonical.primary_variant.sku:
        raise RecordValidationError("Missing required fields: Title and SKU are required")

    product = CanonicalMapper.canonical_to_product(canonical, seller_id)

    consumed = _consumed_columns(row, mapping)
    product.attributes = {
        key: value for key, value in row.items()
        if key is not None and key not in consumed
    }
    return product


def parse_csv(
    text: str,
    seller_id: Optional[str] = None,
    mapping: Optional[Dict[str, Optional[str]]] = None,
) -> CSVImportResult:
    """
    Parse CSV text with a header row into products.
    Blank lines are skipped and do not count as rows.
    """
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        return CSVImportResult(success=False, errors=[RowError(row=0, message="CSV has no header row")])

    headers = [h.strip() for h in reader.fieldnames]
    reader.fieldnames = headers

    if mapping is None:
        mapping = auto_map_headers(headers)
        logger.info(f"Auto-mapped CSV headers: {mapping}")

    products: List[Product] = []
    errors: List[RowError] = []
    row_number = 0

    for row in reader:
        if not any(str(v).strip() for k, v in row.items() if k is not None and v is not None):
            continue
        row_number += 1
        try:
            products.append(map_csv_row_to_product(row, seller_id, mapping))
        except RecordValidationError as e:
            errors.append(RowError(row=row_number, message=str(e)))

    if errors:
        logger.warning(f"CSV import rejected {len(errors)} of {row_number} rows")

    return CSVImportResult(
        success=not errors,
        products=products,
        errors=errors,
        total_rows=len(products) + len(errors),
        imported_rows=len(products),
        mapping=dict(mapping),
    )


def validate_csv_structure(headers: Sequence[str]) -> Dict[str, Any]:
    """Check that title, sku and price can be located among the headers."""
    mapping = auto_map_headers(headers)
    mapped = {f: mapping[f] for f in REQUIRED_FIELDS if mapping.get(f)}
    missing = [f for f in REQUIRED_FIELDS if f not in mapped]
    return {"valid": not missing, "missing": missing, "mapped": mapped}


def export_products_to_csv(products: List[Product]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Title", "SKU", "Price", "Source", "Attributes"])
    for product in products:
        writer.writerow([
            product.name,
            product.sku,
            f"{product.price:.2f}",
            product.source,
            json.dumps(product.attributes, sort_keys=True),
        ])
    return buffer.getvalue()
