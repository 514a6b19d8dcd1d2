from prometheus_client import Counter, Histogram

emit_counter = Counter('peridex_emit_total', 'Total number of emit operations', ['index'])
entries_written_counter = Counter('peridex_index_entries_written_total',
                                  'Index entries (forward/reverse pairs) written', ['index'])
entries_deleted_counter = Counter('peridex_index_entries_deleted_total',
                                  'Index entries (forward/reverse pairs) deleted', ['index'])
query_counter = Counter('peridex_query_total', 'Total number of index queries', ['index'])
query_latency = Histogram('peridex_query_latency', 'Index query latency')
rebuild_batch_counter = Counter('peridex_rebuild_batches_total', 'Rebuild batches committed')
rebuild_document_counter = Counter('peridex_rebuild_documents_total', 'Documents re-indexed by rebuild')
