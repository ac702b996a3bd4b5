"""
elb_trust_store_exporter: Prometheus exporter for AWS ELB trust stores.

Periodically describes ELBv2 trust stores, downloads their CA certificate
bundles, extracts per-certificate facts (identity, key size, validity)
and serves them as gauges for Prometheus to scrape.

Built on the Railway-Oriented Programming (ROP) framework for
explicit, composable, functional error handling.
"""

__version__ = "0.1.0"
