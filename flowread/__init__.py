"""FlowRead: syllable-coloured speed reading for uploaded documents.

WHY: Reading one word at a time at a fixed pace (RSVP) is faster when the
eye can chunk each word into syllables. FlowRead turns an uploaded PDF,
DOCX or text file into a sequence of syllable-annotated words and plays
them back at a chosen words-per-minute rate, tracking progress per document.

HOW: Four layers: extract (file bytes to text), annotate (core tokenizer
and syllabifier), store (SQL or JSON-file persistence), and play (session
state machine driven by a cooperative clock). The HTTP server and CLI are
thin shells over the library service.

RULES:
- Word annotations are created once per upload and never mutated
- Session progress is the only mutable state and is saved as snapshots
- The playback clock can be driven by asyncio or manually in tests
"""

__version__ = "0.1.0"
