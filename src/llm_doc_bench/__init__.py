"""
llm-doc-bench

Evaluates LLM configurations on document-analysis prompts across the
{model x prompt x document} cross-product.
"""

__version__ = "0.1.0"
