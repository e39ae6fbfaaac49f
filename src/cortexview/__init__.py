"""cortexview -- Change-gated window analysis.

This package watches a single application window, captures it on a
schedule or on demand, decides whether the capture changed enough to
be worth analyzing, and forwards the worthwhile captures to a
multimodal LLM. Successful analyses are optionally stored on disk
together with an append-only audit log.
"""

__version__ = "0.1.0"
