"""
Signature definitions sub-package for order-sheet-ingest.

Contains YAML files that describe each known order export: how the sheet
is recognized from its header row and which header synonyms map to each
canonical order field. The loader module (signature_registry.py in the
parent package) reads these files at runtime.
"""
