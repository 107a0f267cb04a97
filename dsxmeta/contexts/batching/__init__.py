"""
Batching Context

Responsibilities:
- Reads uploaded documents and expands archives into job documents
- Runs the extraction pipeline per document, sequentially or with a bounded worker pool
- Caches successful results keyed by document name and modification time
- Exports results as a bundle of pretty-printed JSON files

Owns: Document intake, per-document status, the result cache and export
Never: Interprets DSX text (see extraction context)
"""
