"""HTML rendering of contract tables."""

from .tables import (
    TableRenderer,
    format_currency,
    format_specs,
    render_exhibit_list,
    render_payment_schedule,
    render_pricing_table,
    render_signature_block,
    render_unit_details,
)

__all__ = [
    "TableRenderer",
    "format_currency",
    "format_specs",
    "render_exhibit_list",
    "render_payment_schedule",
    "render_pricing_table",
    "render_signature_block",
    "render_unit_details",
]
