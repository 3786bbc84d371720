# src/filters/query_builder.py

"""Derive the web-search queries run for one product."""

import logging

from src.models.product import Product

logger = logging.getLogger("trustmart.filters")


class QueryBuilder:
    """Build the web-search fan-out for a product's evidence run."""

    @staticmethod
    def build_queries(product: Product) -> list[str]:
        """Return the price/spec query plus brand and seller queries.

        Brand and seller queries are only built for declared values.
        Duplicates are removed while keeping order.
        """
        name = " ".join(product.name.split())
        queries = [f"{name} India price and specs"]

        brand = product.brand.strip()
        if brand:
            queries.append(f"{brand} official {name}")

        seller = product.seller.strip()
        if seller:
            queries.append(f"{seller} seller reviews")

        unique = list(dict.fromkeys(q for q in queries if q.strip()))
        logger.debug(
            "Built %d queries for '%s': %s", len(unique), name, unique,
        )
        return unique
