"""
Extraction Context

Responsibilities:
- Scans DSX documents into record, subrecord and multi-line value spans
- Extracts job identity, parameters, connectors, lookups, transforms and flow
- Decodes specialized stage configurations (sort, join, aggregate, ...)
- Assembles and validates one JobMetadata per document

Owns: DSX dialect knowledge and the job-metadata model
Never: Reads files, expands archives or caches results (see batching context)
"""
