"""Core records, tokenization and extraction.

WHY: The core package holds the pure, storage-agnostic heart of FlowRead:
the record dataclasses, the syllabifier and tokenizer, and file-to-text
extraction. Everything else (stores, server, CLI, playback) consumes it.

HOW: models.py defines the records, syllables.py and tokenizer.py build
word annotations from text, extraction.py turns uploaded bytes into text.

RULES:
- Nothing in core performs persistence or network I/O
- Tokenization is total over strings; only extraction raises
"""
