# =============================================================================
# src/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Operator command-line interface for the policyLens knowledge base. The CLI
# drives the same PolicyEngine facade an HTTP layer would, built once per
# invocation from environment settings.
#
#   ingest         Register files, queue them, wait for the worker, report.
#   search         Ranked similarity search over stored chunks.
#   ask            Cited RAG answer to a natural-language question.
#   extract-facts  Re-run structured fact extraction for one document.
#   status         Store totals, then documents and their processing status.
#   regions        Fact-category coverage score and level per region.
#
# argparse is used for argument parsing (not Click/Typer).
# =============================================================================

"""Command-line tools for policyLens (``python -m src.cli``)."""
