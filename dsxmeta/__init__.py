"""
dsxmeta - DataStage export metadata extraction

Recovers a normalized job-metadata model from DataStage DSX exports, a
record-oriented dialect with no published grammar.

Architecture:
- Extraction Context: record scanning, field extraction, stage decoding,
  assembly and structural validation of a single document
- Batching Context: archive expansion, per-document caching, sequential and
  bounded-concurrency processing, JSON bundle export
"""

__version__ = "0.1.0"
