"""Catalog admin dashboard: product/category editing over a GraphQL API."""
