"""Document ingestion pipeline for the policy knowledge base.

Orchestrates the full pipeline: **extract -> chunk -> embed -> store -> facts**.

Pipeline stages overview:

1. **Extract** (providers/text_extraction/) -- Format-specific extractors
   turn an uploaded PDF or text file into one plain-text string plus a
   page count.

2. **Chunk** (chunker.py / TextChunker) -- Splits the text into fixed
   1000-character windows that overlap by 200 characters, each tagged
   with an estimated page number.

3. **Embed** (services/embedding_pipeline.py) -- Generates one vector
   per window, sequentially, through the configured embedding provider.

4. **Store** (via IRecordStore) -- Persists all of a document's chunks in
   a single transaction.

5. **Facts** (services/fact_extractor.py) -- Asks the generation provider
   for typed policy facts and appends them to the store.

The IngestionQueue class owns a FIFO of jobs and the single worker task
that runs all five stages for one document at a time.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_queue import IngestionQueue

__all__ = [
    "IngestionQueue",
    "TextChunker",
]
