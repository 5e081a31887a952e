"""
Exporter App - Bulk Redis export to a streamed JSON array

Responsibilities:
- Enumerate every key with cursor-based SCAN (bounded memory)
- Resolve type, value and TTL per key with a pool of concurrent workers
- Stream records into one JSON array through a single writer
- Report progress and throughput while running
- Graceful cancellation on SIGINT/SIGTERM

Output:
- One JSON file: [{"key": ..., "type": ..., "value": ..., "ttl": ...}, ...]
"""
